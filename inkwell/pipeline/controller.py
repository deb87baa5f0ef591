"""Drives a GenerationSession through the authoring stages.

advance(session, command) validates the command against the current stage,
calls the agents and the store, and returns the updated session. The input
session is never modified; on error it is still the valid current state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from inkwell.concurrency import CancelScope
from inkwell.errors import InkwellError, PersistenceFailure, StreamIncompleteError, ValidationError
from inkwell.linking.engine import LinkInsertionEngine
from inkwell.pipeline.commands import (
    ApplyLinks,
    ApproveOutline,
    DiscoverTopics,
    GoBack,
    RejectTopic,
    ReviseOutline,
    SelectTopic,
    SkipLinks,
)
from inkwell.pipeline.ports import Agents, PipelineStore
from inkwell.pipeline.session import GenerationSession, Stage, check_go_back, check_transition
from inkwell.schemas import (
    DIRECT_TOPIC_TYPES,
    FinalArticle,
    GenerationConfig,
    Outline,
    StreamedContent,
    StreamProgress,
    TopicCandidate,
)
from inkwell.stream.consumer import StreamCallbacks, StreamConsumer, recover_incomplete

logger = logging.getLogger(__name__)

SessionListener = Callable[[GenerationSession], Union[None, Awaitable[None]]]
ProgressListener = Callable[[StreamProgress, StreamedContent], None]


def has_selection_criteria(config: GenerationConfig) -> bool:
    if config.clean_keywords() or config.industry.strip():
        return True
    return config.article_type in DIRECT_TOPIC_TYPES and bool(config.topic_query.strip())


class _ProgressRelay(StreamCallbacks):
    def __init__(self, on_progress: Optional[ProgressListener]) -> None:
        self._on_progress = on_progress

    def on_progress(self, progress: StreamProgress, content: StreamedContent) -> None:
        if self._on_progress is not None:
            self._on_progress(progress, content)

    def on_article_created(self, article_id: str) -> None:
        logger.info("Article %s created, streaming content", article_id)


class PipelineController:
    def __init__(
        self,
        agents: Agents,
        store: PipelineStore,
        *,
        scope: Optional[CancelScope] = None,
        on_transition: Optional[SessionListener] = None,
        on_progress: Optional[ProgressListener] = None,
        refetch_delay: Optional[float] = None,
        link_engine: Optional[LinkInsertionEngine] = None,
    ) -> None:
        self._agents = agents
        self._store = store
        self._scope = scope or CancelScope(name="pipeline")
        self._on_transition = on_transition
        self._on_progress = on_progress
        self._refetch_delay = refetch_delay
        self._links = link_engine or LinkInsertionEngine()
        self._stream_scope: Optional[CancelScope] = None
        # temp id → durable topic, so a retried selection does not persist twice
        self._durable_topics: dict[str, TopicCandidate] = {}
        self._handlers = {
            DiscoverTopics: self._discover_topics,
            SelectTopic: self._select_topic,
            RejectTopic: self._reject_topic,
            ReviseOutline: self._revise_outline,
            ApproveOutline: self._approve_outline,
            ApplyLinks: self._apply_links,
            SkipLinks: self._skip_links,
            GoBack: self._go_back,
        }

    async def advance(self, session: GenerationSession, command) -> GenerationSession:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise ValidationError(f"Unknown command {command!r}")
        return await handler(session, command)

    def cancel(self) -> None:
        """Abort the active content stream, if any."""
        if self._stream_scope is not None:
            self._stream_scope.cancel()

    async def aclose(self) -> None:
        self._scope.cancel()

    async def _notify(self, session: GenerationSession) -> None:
        if self._on_transition is None:
            return
        result = self._on_transition(session)
        if asyncio.iscoroutine(result):
            await result

    async def _move(self, session: GenerationSession, **changes) -> GenerationSession:
        updated = session.evolve(**changes)
        if updated.stage is not session.stage:
            logger.info("Stage %s -> %s", session.stage.value, updated.stage.value)
        await self._notify(updated)
        return updated

    # ------------------------------------------------------------------
    # Config → Topics
    # ------------------------------------------------------------------

    async def _discover_topics(self, session: GenerationSession, command: DiscoverTopics) -> GenerationSession:
        check_transition(session.stage, Stage.TOPICS)
        config = command.config
        if not has_selection_criteria(config):
            raise ValidationError("Enter at least one keyword, an industry, or a topic for this article type")

        result = await self._agents.discover_topics(config)
        if not result.topics:
            raise ValidationError("No topics were found for this configuration; try other keywords")

        return await self._move(
            session,
            stage=Stage.TOPICS,
            config=config,
            topic_candidates=result.topics,
            research_metadata={"duplicates_filtered": len(result.duplicates), "duplicates": result.duplicates},
            error=None,
        )

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def _find_topic(self, session: GenerationSession, topic_id: str) -> TopicCandidate:
        for topic in session.topic_candidates:
            if topic.id == topic_id:
                return topic
        raise ValidationError(f"Topic {topic_id} is not among the candidates")

    async def _ensure_durable(self, topic: TopicCandidate) -> TopicCandidate:
        if topic.is_durable:
            return topic
        durable = self._durable_topics.get(topic.id)
        if durable is None:
            durable = await self._store.save_topic(topic)
            if not durable.is_durable:
                raise PersistenceFailure(f"Store returned a temporary id for topic {topic.title!r}")
            self._durable_topics[topic.id] = durable
        return durable

    async def _select_topic(self, session: GenerationSession, command: SelectTopic) -> GenerationSession:
        check_transition(session.stage, Stage.OUTLINE)
        topic = self._find_topic(session, command.topic_id)
        durable = await self._ensure_durable(topic)

        outline = await self._agents.generate_outline(durable, session.config)
        outline = await self._store.save_outline(outline.model_copy(update={"topic_id": durable.id, "approved": False}))

        candidates = [durable if t.id == topic.id else t for t in session.topic_candidates]
        return await self._move(
            session,
            stage=Stage.OUTLINE,
            topic_candidates=candidates,
            selected_topic=durable.model_copy(update={"status": "approved"}),
            outline=outline,
            error=None,
        )

    async def _reject_topic(self, session: GenerationSession, command: RejectTopic) -> GenerationSession:
        if session.stage is not Stage.TOPICS:
            raise ValidationError("Topics can only be rejected while choosing a topic")
        topic = self._find_topic(session, command.topic_id)
        durable = self._durable_topics.get(topic.id, topic)
        if durable.is_durable:
            await self._store.reject_topic(durable.id)
        remaining = [t for t in session.topic_candidates if t.id != topic.id]
        logger.info("Topic %r rejected, %d candidate(s) left", topic.title, len(remaining))
        return await self._move(session, topic_candidates=remaining)

    # ------------------------------------------------------------------
    # Outline
    # ------------------------------------------------------------------

    async def _revise_outline(self, session: GenerationSession, command: ReviseOutline) -> GenerationSession:
        if session.stage is not Stage.OUTLINE or session.outline is None or session.selected_topic is None:
            raise ValidationError("There is no outline to revise")
        topic = session.selected_topic
        if command.outline is not None:
            revised = command.outline.model_copy(update={"id": session.outline.id, "topic_id": topic.id})
        else:
            revised = await self._agents.generate_outline(
                topic, session.config, feedback=command.feedback, previous=session.outline
            )
        revised = await self._store.save_outline(revised.model_copy(update={"topic_id": topic.id, "approved": False}))
        return await self._move(session, outline=revised, error=None)

    async def _approve_outline(self, session: GenerationSession, command: ApproveOutline) -> GenerationSession:
        check_transition(session.stage, Stage.CONTENT)
        if session.outline is None:
            raise ValidationError("Generate an outline before approving it")

        await self._store.approve_outline(session.outline.id)
        outline = session.outline.model_copy(update={"approved": True})
        at_outline = session.evolve(outline=outline, error=None)

        # Content is entered before the stream starts so the live view can render.
        content_session = await self._move(at_outline, stage=Stage.CONTENT, streamed_content=StreamedContent())

        if self._stream_scope is not None:
            self._stream_scope.cancel()
        scope = self._scope.child("writer")
        self._stream_scope = scope
        try:
            article, consumer = await self._stream(outline, session.config, scope)
        except asyncio.CancelledError:
            if not scope.cancelled or self._scope.cancelled:
                raise
            logger.info("Content stream cancelled; back to outline")
            return await self._rollback(content_session, None)
        except InkwellError as exc:
            return await self._rollback(content_session, exc)
        finally:
            scope.close()
            if self._stream_scope is scope:
                self._stream_scope = None

        done = content_session.evolve(
            streamed_content=consumer.content,
            progress=consumer.progress,
            article_id=article.id,
        )
        return await self._after_content(done, article)

    async def _stream(
        self,
        outline: Outline,
        config: GenerationConfig,
        scope: CancelScope,
    ) -> tuple[FinalArticle, StreamConsumer]:
        consumer = StreamConsumer(_ProgressRelay(self._on_progress), title=outline.title)
        chunks = self._agents.stream_article(outline, config)
        task = scope.spawn(consumer.consume(chunks, scope), name="writer-stream")
        try:
            article = await task
        except StreamIncompleteError as exc:
            # Exactly one re-fetch, inside the writer scope so cancel() reaches it.
            recovery = scope.spawn(
                recover_incomplete(exc, self._store.get_article, self._refetch_delay), name="writer-refetch"
            )
            article = await recovery
        return article, consumer

    async def _rollback(self, content_session: GenerationSession, error: Optional[Exception]) -> GenerationSession:
        check_transition(content_session.stage, Stage.OUTLINE)
        if error is not None:
            logger.warning("Content generation failed, back to outline: %s", error)
        outline = content_session.outline
        if outline is not None and outline.approved:
            outline = outline.model_copy(update={"approved": False})
            try:
                outline = await self._store.save_outline(outline)
            except InkwellError as exc:
                logger.warning("Could not reopen outline %s: %s", outline.id, exc)
        return await self._move(content_session, stage=Stage.OUTLINE, outline=outline, streamed_content=None,
                                progress=None, article_id=None, error=str(error) if error else None)

    # ------------------------------------------------------------------
    # Content → Linking | Done
    # ------------------------------------------------------------------

    async def _after_content(self, session: GenerationSession, article: FinalArticle) -> GenerationSession:
        try:
            suggestions = await self._agents.suggest_links(article)
        except Exception as exc:
            logger.warning("Link suggestions unavailable, finishing without links: %s", exc)
            suggestions = []

        target = Stage.LINKING if suggestions else Stage.DONE
        check_transition(session.stage, target)
        return await self._move(session, stage=target, final_article=article, link_suggestions=suggestions)

    async def _apply_links(self, session: GenerationSession, command: ApplyLinks) -> GenerationSession:
        check_transition(session.stage, Stage.DONE)
        article = session.final_article
        if article is None:
            raise ValidationError("There is no article to add links to")

        result = self._links.insert(article.content, session.link_suggestions, command.selected_ids)
        if result.applied_count:
            article = await self._store.save_article(
                article.id,
                result.result_text,
                snapshot=True,
                edited_by="links",
                change_summary=f"Inserted {result.applied_count} link(s)",
            )
            await self._store.record_links(article.id, [
                {"target_id": link.target_id, "anchor_text": link.anchor_text, "context": link.context}
                for link in result.applied
            ])
        logger.info("Links: %d applied, %d skipped", result.applied_count, result.skipped_count)
        return await self._move(
            session,
            stage=Stage.DONE,
            final_article=article,
            applied_link_count=result.applied_count,
            skipped_links=result.skipped,
        )

    async def _skip_links(self, session: GenerationSession, command: SkipLinks) -> GenerationSession:
        check_transition(session.stage, Stage.DONE)
        return await self._move(session, stage=Stage.DONE)

    # ------------------------------------------------------------------
    # Go back
    # ------------------------------------------------------------------

    async def _go_back(self, session: GenerationSession, command: GoBack) -> GenerationSession:
        check_go_back(session, command.stage)
        if session.stage is Stage.CONTENT:
            self.cancel()
        updated = session.discard_after(command.stage)
        logger.info("Went back %s -> %s", session.stage.value, command.stage.value)
        await self._notify(updated)
        return updated
