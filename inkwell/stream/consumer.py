"""Incremental consumer for the article writer stream.

Reads a chunked body, splits it into events and assembles the live
StreamedContent (hook / ordered sections / conclusion) as tokens arrive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from inkwell.concurrency import CancelScope
from inkwell.config import settings
from inkwell.errors import ProviderFailure, StreamIncompleteError
from inkwell.schemas import FinalArticle, StreamedContent, StreamProgress
from inkwell.stream.frames import FrameDecoder

logger = logging.getLogger(__name__)


class _MalformedFrame(Exception):
    """A frame that parsed as JSON but whose fields have the wrong shape."""


def _text(event: dict[str, Any], key: str) -> str:
    value = event.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _MalformedFrame(f"{key} is {type(value).__name__}, not text")
    return value


def _number(event: dict[str, Any], key: str) -> Optional[int]:
    value = event.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise _MalformedFrame(f"{key} is a boolean, not a number")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise _MalformedFrame(f"{key} is not a number: {value!r:.40}") from None


class StreamCallbacks:
    """Hooks fired while a stream is consumed. Override what you need."""

    def on_progress(self, progress: StreamProgress, content: StreamedContent) -> None: ...
    def on_article_created(self, article_id: str) -> None: ...
    def on_article_ready(self, article: FinalArticle) -> None: ...
    def on_warning(self, message: str) -> None: ...


class StreamConsumer:
    def __init__(self, callbacks: Optional[StreamCallbacks] = None, *, title: str = "") -> None:
        self._callbacks = callbacks or StreamCallbacks()
        self._scope: Optional[CancelScope] = None
        self.title = title
        self.content = StreamedContent()
        self.progress: Optional[StreamProgress] = None
        self.article_id: Optional[str] = None

    async def consume(
        self,
        chunks: AsyncIterator[bytes],
        scope: Optional[CancelScope] = None,
    ) -> FinalArticle:
        """Consume ``chunks`` until the ``complete`` event and return the final article.

        Raises StreamIncompleteError when the body ends without completion,
        ProviderFailure on an ``error`` event, CancelledError when cancelled.
        Partial content stays on ``self.content``; discarding it is the caller's job.
        """
        self._scope = scope
        decoder = FrameDecoder()
        try:
            async for chunk in chunks:
                self._check_cancelled()
                for event in decoder.feed(chunk):
                    article = self._handle(event)
                    if article is not None:
                        return article
            for event in decoder.flush():
                article = self._handle(event)
                if article is not None:
                    return article
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.warning("Writer stream ended without completion (article_id=%s)", self.article_id)
        raise StreamIncompleteError(article_id=self.article_id)

    def _check_cancelled(self) -> None:
        if self._scope is not None:
            self._scope.raise_if_cancelled()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _handle(self, event: dict[str, Any]) -> Optional[FinalArticle]:
        self._check_cancelled()
        try:
            return self._apply(event)
        except _MalformedFrame as exc:
            logger.warning("Skipping malformed %r frame: %s", event.get("type"), exc)
            return None

    def _apply(self, event: dict[str, Any]) -> Optional[FinalArticle]:
        kind = event["type"]

        if kind == "article_created":
            article_id = _text(event, "article_id") or _text(event, "articleId")
            if article_id:
                self.article_id = article_id
                self._callbacks.on_article_created(article_id)

        elif kind == "progress":
            stage = event.get("stage") or "hook"
            if stage not in ("hook", "section", "conclusion", "complete"):
                # e.g. "saving": keep reporting the stage we were in
                stage = self.progress.stage if self.progress else "hook"
            section = _number(event, "section")
            progress = StreamProgress(
                stage=stage,
                message=_text(event, "message"),
                progress=max(0, min(100, _number(event, "progress") or 0)),
                section=section,
                total=_number(event, "total"),
                section_title=_text(event, "section_title") or _text(event, "sectionTitle") or None,
            )
            if stage == "section" and section:
                self._begin_section(section)
            self.progress = progress
            self._emit_progress()

        elif kind == "token":
            if self._append_token(event.get("stage"), _text(event, "content"), _number(event, "section")):
                self._emit_progress()

        elif kind == "complete":
            return self._complete(event)

        elif kind == "error":
            raise ProviderFailure(_text(event, "message") or "Article generation failed")

        elif kind == "warning":
            message = _text(event, "message")
            logger.warning("Writer stream warning: %s", message)
            self._callbacks.on_warning(message)

        return None

    def _begin_section(self, number: int) -> None:
        """Make ``number`` (1-based) the section receiving tokens."""
        index = max(0, number - 1)
        while len(self.content.sections) <= index:
            self.content.sections.append("")
        self.content.current_section = index

    def _append_token(self, stage: Any, token: str, section: Optional[int]) -> bool:
        if stage == "hook":
            self.content.hook += token
        elif stage == "section":
            if section:
                self._begin_section(section)
            elif self.content.current_section < 0:
                self._begin_section(1)
            index = self.content.current_section
            self.content.sections[index] += token
        elif stage == "conclusion":
            self.content.conclusion += token
        else:
            logger.warning("Token frame without a known stage: %r", stage)
            return False

        if self.progress is None or self.progress.stage != stage or (
            stage == "section" and self.progress.section != self.content.current_section + 1
        ):
            self.progress = StreamProgress(
                stage=stage,
                progress=self.progress.progress if self.progress else 0,
                section=self.content.current_section + 1 if stage == "section" else None,
                total=self.progress.total if self.progress else None,
            )
        return True

    def _emit_progress(self) -> None:
        if self.progress is not None:
            self._callbacks.on_progress(self.progress, self.content.model_copy(deep=True))

    def _complete(self, event: dict[str, Any]) -> FinalArticle:
        payload = event.get("article") or {}
        if not isinstance(payload, dict):
            raise _MalformedFrame(f"article is {type(payload).__name__}, not an object")
        article_id = payload.get("id") or _text(event, "article_id") or self.article_id
        if not article_id:
            raise ProviderFailure("Completion event carried no article id")
        content = payload.get("content") or self.content.as_markdown(self.title)
        try:
            article = FinalArticle(
                id=article_id,
                title=payload.get("title") or self.title,
                content=content,
                status=payload.get("status") or "draft",
                outline_id=payload.get("outline_id"),
                word_count=payload.get("word_count") or len(str(content).split()),
            )
        except PydanticValidationError as exc:
            raise _MalformedFrame(f"article payload rejected ({exc.error_count()} error(s))") from exc
        self.article_id = article.id
        self.progress = StreamProgress(stage="complete", message="Article complete", progress=100)
        self._emit_progress()
        self._callbacks.on_article_ready(article)
        logger.info("Writer stream complete: article %s (%d words)", article.id, article.word_count)
        return article


async def recover_incomplete(
    error: StreamIncompleteError,
    fetch: Callable[[str], Awaitable[Optional[FinalArticle]]],
    delay: Optional[float] = None,
) -> FinalArticle:
    """One best-effort re-fetch of the persisted article after an incomplete stream.

    Never retries more than once: if the article is missing or empty after the
    delay, the original error is raised again.
    """
    if not error.article_id:
        raise error
    await asyncio.sleep(settings.refetch_delay_seconds if delay is None else delay)
    try:
        article = await fetch(error.article_id)
    except Exception as exc:
        logger.warning("Re-fetch of article %s failed: %s", error.article_id, exc)
        raise error from exc
    if article is None or not article.content.strip():
        logger.warning("Article %s has no persisted content; giving up", error.article_id)
        raise error
    logger.info("Recovered article %s from the store after incomplete stream", article.id)
    return article
