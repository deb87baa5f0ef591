"""Builders and in-memory fakes shared by the tests."""

from __future__ import annotations

import asyncio
import uuid
from typing import AsyncIterator, Optional

from inkwell.errors import PersistenceFailure
from inkwell.pipeline.ports import DiscoveryResult
from inkwell.schemas import (
    FinalArticle,
    GenerationConfig,
    LinkSuggestion,
    Outline,
    OutlineConclusion,
    OutlineSection,
    TopicCandidate,
)
from inkwell.stream.frames import encode_frame


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------


def make_topic(topic_id: str = "temp-1", title: str = "Why AI safety matters", score: float = 0.9) -> TopicCandidate:
    return TopicCandidate(id=topic_id, title=title, summary="An overview.", relevance_score=score)


def make_outline(topic_id: str, title: str = "Why AI safety matters", sections: int = 3) -> Outline:
    return Outline(
        id=f"outline-{uuid.uuid4().hex[:8]}",
        topic_id=topic_id,
        title=title,
        hook="Open with a surprising statistic.",
        sections=[
            OutlineSection(heading=f"Part {i}", key_points=[f"point {i}"], word_target=300)
            for i in range(1, sections + 1)
        ],
        conclusion=OutlineConclusion(summary="Recap", call_to_action="Subscribe"),
    )


def writer_events(article_id: str = "article-1", title: str = "Why AI safety matters") -> list[dict]:
    return [
        {"type": "article_created", "article_id": article_id},
        {"type": "progress", "stage": "hook", "message": "Writing introduction...", "progress": 5},
        {"type": "token", "stage": "hook", "content": "AI is everywhere."},
        {"type": "progress", "stage": "section", "progress": 10, "section": 1, "total": 1, "section_title": "Part 1"},
        {"type": "token", "stage": "section", "section": 1, "content": "## Part 1\n"},
        {"type": "token", "stage": "section", "section": 1, "content": "Alignment is "},
        {"type": "token", "stage": "section", "section": 1, "content": "hard."},
        {"type": "complete", "article": {
            "id": article_id,
            "title": title,
            "content": "AI is everywhere. Read about alignment research and model evaluation.",
            "status": "draft",
        }},
    ]


async def chunked(frames: list[bytes], size: Optional[int] = None) -> AsyncIterator[bytes]:
    """Yield the joined frames, optionally re-split into ``size``-byte reads."""
    body = b"".join(frames)
    if size is None:
        for frame in frames:
            await asyncio.sleep(0)
            yield frame
        return
    for i in range(0, len(body), size):
        await asyncio.sleep(0)
        yield body[i:i + size]


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class FakeAgents:
    """Agents double: canned topics/outlines, scripted writer frames, canned links."""

    def __init__(
        self,
        topics: Optional[list[TopicCandidate]] = None,
        events: Optional[list[dict]] = None,
        suggestions: Optional[list[LinkSuggestion]] = None,
        links_error: Optional[Exception] = None,
    ) -> None:
        self.topics = topics if topics is not None else [make_topic()]
        self.events = events if events is not None else writer_events()
        self.suggestions = suggestions or []
        self.links_error = links_error
        self.outline_calls: list[dict] = []
        self.discover_calls: list[GenerationConfig] = []
        self.stream_calls = 0

    async def discover_topics(self, config: GenerationConfig) -> DiscoveryResult:
        self.discover_calls.append(config)
        return DiscoveryResult(topics=self.topics, duplicates=[{"title": "Old", "similar_to": "Old", "similarity": 0.9}])

    async def generate_outline(self, topic, config, feedback=None, previous=None) -> Outline:
        self.outline_calls.append({"topic_id": topic.id, "feedback": feedback, "previous": previous})
        title = f"{topic.title} (revised)" if feedback else topic.title
        return make_outline(topic.id, title=title, sections=1)

    async def stream_article(self, outline, config) -> AsyncIterator[bytes]:
        self.stream_calls += 1
        for event in self.events:
            await asyncio.sleep(0)
            yield encode_frame(event)

    async def suggest_links(self, article: FinalArticle) -> list[LinkSuggestion]:
        if self.links_error is not None:
            raise self.links_error
        return self.suggestions


class FakeStore:
    """PipelineStore double keeping everything in dicts."""

    def __init__(self) -> None:
        self.topics: dict[str, TopicCandidate] = {}
        self.rejected: list[str] = []
        self.outlines: dict[str, Outline] = {}
        self.approved: list[str] = []
        self.articles: dict[str, FinalArticle] = {}
        self.saves: list[dict] = []
        self.links: list[dict] = []
        self.events: list[str] = []
        self.fail_saves = False

    async def save_topic(self, topic: TopicCandidate) -> TopicCandidate:
        durable = topic.model_copy(update={"id": f"topic-{len(self.topics) + 1}"})
        self.topics[durable.id] = durable
        self.events.append(f"save_topic:{durable.id}")
        return durable

    async def reject_topic(self, topic_id: str) -> None:
        self.rejected.append(topic_id)

    async def save_outline(self, outline: Outline) -> Outline:
        self.outlines[outline.id] = outline
        return outline

    async def approve_outline(self, outline_id: str) -> None:
        self.approved.append(outline_id)

    async def get_article(self, article_id: str) -> Optional[FinalArticle]:
        return self.articles.get(article_id)

    async def save_article(self, article_id, content, *, snapshot=False, edited_by="user", change_summary=None):
        if self.fail_saves:
            raise PersistenceFailure("disk full")
        self.saves.append({"article_id": article_id, "content": content, "snapshot": snapshot})
        article = FinalArticle(id=article_id, content=content, word_count=len(content.split()))
        self.articles[article_id] = article
        return article

    async def record_links(self, source_article_id: str, links: list[dict]) -> int:
        self.links.extend(links)
        return len(links)


class ScriptedEditProvider:
    """EditProvider double. Each call takes the next reply; a gate holds it back until set."""

    def __init__(self, *replies: object) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.gates: list[asyncio.Event] = []

    async def stream_edit(self, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        if isinstance(reply, Exception):
            raise reply
        for part in reply:
            yield part

    def release_all(self) -> None:
        for gate in self.gates:
            gate.set()

