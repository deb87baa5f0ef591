"""Selection-scoped AI edits applied to a live document.

Lifecycle of one edit:
  request_edit → span marked "pending", provider stream runs in a child scope
  → result accumulated → apply_if_valid swaps the span for the result.

Only one edit is in flight per document. A new request first aborts the
outstanding one and clears its pending mark, so the original text is back
exactly as it was before the new edit starts.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

from inkwell.concurrency import CancelScope
from inkwell.config import settings
from inkwell.editor.document import DocumentPosition, Range
from inkwell.errors import ProviderFailure, StaleRangeWarning, ValidationError
from inkwell.prompts.edit import EditAction, build_edit_prompt

logger = logging.getLogger(__name__)


class EditProvider(Protocol):
    def stream_edit(self, prompt: str) -> AsyncIterator[str]:
        """Yield the replacement text as raw chunks until the body ends."""
        ...


class EditStatus(str, Enum):
    PENDING = "pending"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"


_IN_FLIGHT = (EditStatus.PENDING, EditStatus.APPLYING)


@dataclass
class EditOperation:
    range: Range
    original_text: str
    action: EditAction = "rewrite"
    custom_prompt: Optional[str] = None
    result_text: str = ""
    status: EditStatus = EditStatus.PENDING
    error: Optional[Exception] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def mark_key(self) -> str:
        return f"pending-edit:{self.id}"

    @property
    def in_flight(self) -> bool:
        return self.status in _IN_FLIGHT


@dataclass
class _Inflight:
    op: EditOperation
    document: DocumentPosition
    scope: CancelScope


class DocumentMutationEngine:
    def __init__(
        self,
        provider: EditProvider,
        *,
        scope: Optional[CancelScope] = None,
        context_chars: Optional[int] = None,
        tone: str = "",
        article_type: str = "",
    ) -> None:
        self._provider = provider
        self._scope = scope or CancelScope(name="editor")
        self._context_chars = settings.edit_context_chars if context_chars is None else context_chars
        self._tone = tone
        self._article_type = article_type
        self._inflight: dict[int, _Inflight] = {}

    # ------------------------------------------------------------------
    # Requesting
    # ------------------------------------------------------------------

    def request_edit(
        self,
        document: DocumentPosition,
        range: Range,
        action: EditAction = "rewrite",
        custom_prompt: Optional[str] = None,
    ) -> EditOperation:
        start, end = range
        if not document.is_valid_range(start, end) or start == end:
            raise ValidationError(f"No text selected (range {start}-{end}, document size {document.size})")
        if action == "custom" and not (custom_prompt and custom_prompt.strip()):
            raise ValidationError("A custom edit needs an instruction")

        self.cancel(document)

        op = EditOperation(
            range=(start, end),
            original_text=document.text_between(start, end),
            action=action,
            custom_prompt=custom_prompt,
        )
        document.add_mark(op.mark_key, start, end)

        prompt = build_edit_prompt(
            action,
            op.original_text,
            before=document.text_between(start - self._context_chars, start),
            after=document.text_between(end, end + self._context_chars),
            custom_prompt=custom_prompt,
            tone=self._tone,
            article_type=self._article_type,
        )
        entry = _Inflight(op=op, document=document, scope=self._scope.child(f"edit-{op.id}"))
        self._inflight[id(document)] = entry
        op.task = entry.scope.spawn(self._run(document, entry, prompt), name=f"edit-{op.id}")
        logger.info("AI edit %s requested: action=%s range=%s", op.id, action, op.range)
        return op

    async def _run(self, document: DocumentPosition, entry: _Inflight, prompt: str) -> EditOperation:
        op = entry.op
        try:
            chunks: list[str] = []
            async for chunk in self._provider.stream_edit(prompt):
                chunks.append(chunk)
                op.result_text = "".join(chunks)
        except asyncio.CancelledError:
            self._restore(document, op, EditStatus.ABORTED)
            raise
        except Exception as exc:
            logger.warning("AI edit %s failed: %s", op.id, exc)
            self._restore(document, op, EditStatus.FAILED, ProviderFailure(f"Edit request failed: {exc}"))
        else:
            self.apply_if_valid(document, op)
        finally:
            entry.scope.close()
            if self._inflight.get(id(document)) is entry:
                del self._inflight[id(document)]
        return op

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def apply_if_valid(self, document: DocumentPosition, op: EditOperation) -> bool:
        """Swap the pending span for ``op.result_text``. Returns True when applied."""
        if not op.in_flight:
            return False

        result = op.result_text.strip()
        if not result:
            self._restore(document, op, EditStatus.FAILED, ProviderFailure("Edit returned no text"))
            return False

        op.status = EditStatus.APPLYING
        start, end = document.mark_range(op.mark_key) or op.range
        start, end = document.clamp(start), document.clamp(end)
        document.remove_mark(op.mark_key)

        if start >= end:
            message = (
                f"Edit range {op.range} no longer fits the document (size {document.size}); "
                f"inserting result at {start}"
            )
            logger.warning(message)
            warnings.warn(message, StaleRangeWarning, stacklevel=2)
        else:
            document.delete(start, end)
        document.insert(start, result)
        document.set_cursor(start + len(result))

        op.status = EditStatus.DONE
        logger.info("AI edit %s applied at %d (%d -> %d chars)", op.id, start, end - start, len(result))
        return True

    def _restore(
        self,
        document: DocumentPosition,
        op: EditOperation,
        status: EditStatus,
        error: Optional[Exception] = None,
    ) -> None:
        # The original text never left the document; dropping the mark restores it.
        if not op.in_flight:
            return
        document.remove_mark(op.mark_key)
        op.status = status
        op.error = error

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def current(self, document: DocumentPosition) -> Optional[EditOperation]:
        entry = self._inflight.get(id(document))
        return entry.op if entry else None

    def cancel(self, document: Optional[DocumentPosition] = None) -> None:
        """Abort the outstanding edit for ``document`` (or every document)."""
        keys = [id(document)] if document is not None else list(self._inflight)
        for key in keys:
            entry = self._inflight.pop(key, None)
            if entry is None:
                continue
            self._restore(entry.document, entry.op, EditStatus.ABORTED)
            entry.scope.cancel()
            logger.info("AI edit %s cancelled", entry.op.id)

    async def wait(self, op: EditOperation) -> EditOperation:
        """Wait until ``op`` settles. Raises the provider error for failed edits."""
        if op.task is not None and not op.task.done():
            await asyncio.wait({op.task})
        if op.status is EditStatus.FAILED and op.error is not None:
            raise op.error
        return op

    async def aclose(self) -> None:
        tasks = [e.op.task for e in self._inflight.values() if e.op.task is not None]
        self.cancel()
        self._scope.cancel()
        if tasks:
            await asyncio.wait(tasks)
