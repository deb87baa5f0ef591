"""Collaborators the PipelineController depends on.

GraphAgents + Repository implement them in-process; ApiClient implements
them over HTTP. Tests pass in-memory fakes.
"""

from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol

from pydantic import BaseModel, Field

from inkwell.schemas import FinalArticle, GenerationConfig, LinkSuggestion, Outline, TopicCandidate


class DiscoveryResult(BaseModel):
    topics: list[TopicCandidate] = Field(default_factory=list)
    duplicates: list[dict] = Field(default_factory=list)


class Agents(Protocol):
    async def discover_topics(self, config: GenerationConfig) -> DiscoveryResult: ...

    async def generate_outline(
        self,
        topic: TopicCandidate,
        config: GenerationConfig,
        feedback: Optional[str] = None,
        previous: Optional[Outline] = None,
    ) -> Outline: ...

    def stream_article(self, outline: Outline, config: GenerationConfig) -> AsyncIterator[bytes]:
        """Chunked NDJSON body of the writer stream."""
        ...

    async def suggest_links(self, article: FinalArticle) -> list[LinkSuggestion]: ...


class PipelineStore(Protocol):
    async def save_topic(self, topic: TopicCandidate) -> TopicCandidate: ...
    async def reject_topic(self, topic_id: str) -> None: ...
    async def save_outline(self, outline: Outline) -> Outline: ...
    async def approve_outline(self, outline_id: str) -> None: ...
    async def get_article(self, article_id: str) -> Optional[FinalArticle]: ...

    async def save_article(
        self,
        article_id: str,
        content: str,
        *,
        snapshot: bool = False,
        edited_by: str = "user",
        change_summary: Optional[str] = None,
    ) -> FinalArticle: ...

    async def record_links(self, source_article_id: str, links: list[dict]) -> int: ...
