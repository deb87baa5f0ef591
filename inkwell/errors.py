"""Error taxonomy shared by the pipeline, stream consumer and editor."""

from __future__ import annotations

from typing import Optional


class InkwellError(Exception):
    """Base class for all engine errors."""


class ValidationError(InkwellError, ValueError):
    """Required pipeline input is missing or malformed. The stage does not advance."""


class InvalidTransitionError(InkwellError):
    """The requested stage transition is not in the transition table."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Transition {current} -> {target} is not allowed")
        self.current = current
        self.target = target


class StreamIncompleteError(InkwellError):
    """The content stream ended without a ``complete`` event."""

    def __init__(self, message: str = "Stream ended without a completion event", article_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.article_id = article_id


class ProviderFailure(InkwellError):
    """A generation provider (topics, outline, writer, edit, links) failed."""


class PersistenceFailure(InkwellError):
    """Writing the document to the store failed."""


class StaleRangeWarning(UserWarning):
    """An edit range no longer fits the live document and was applied best-effort."""
