"""In-process Agents implementation: LangGraph graphs plus the writer and link agents."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from inkwell.agents import links, writer
from inkwell.errors import InkwellError, ProviderFailure
from inkwell.graph.graph import CompiledGraphs
from inkwell.pipeline.ports import DiscoveryResult
from inkwell.schemas import FinalArticle, GenerationConfig, LinkSuggestion, Outline, TopicCandidate
from inkwell.store.repository import Repository

logger = logging.getLogger(__name__)


class GraphAgents:
    def __init__(self, graphs: CompiledGraphs, repository: Repository) -> None:
        self._graphs = graphs
        self._repository = repository

    async def discover_topics(self, config: GenerationConfig) -> DiscoveryResult:
        try:
            state = await self._graphs.discovery.ainvoke({"config": config.model_dump()})
        except InkwellError:
            raise
        except Exception as exc:
            raise ProviderFailure(f"Topic discovery failed: {exc}") from exc
        return DiscoveryResult(
            topics=[TopicCandidate.model_validate(t) for t in state.get("topics", [])],
            duplicates=state.get("duplicates", []),
        )

    async def generate_outline(
        self,
        topic: TopicCandidate,
        config: GenerationConfig,
        feedback: Optional[str] = None,
        previous: Optional[Outline] = None,
    ) -> Outline:
        graph_config = {"configurable": {"thread_id": f"outline-{topic.id}"}}
        try:
            state = await self._graphs.outline.ainvoke(
                {
                    "topic": topic.model_dump(),
                    "config": config.model_dump(),
                    "feedback": feedback,
                    "previous_outline": previous.model_dump() if previous else None,
                },
                config=graph_config,
            )
        except InkwellError:
            raise
        except Exception as exc:
            raise ProviderFailure(f"Outline generation failed: {exc}") from exc
        return Outline.model_validate(state["outline"])

    def stream_article(self, outline: Outline, config: GenerationConfig) -> AsyncIterator[bytes]:
        return writer.stream_article_frames(outline, config, self._repository)

    async def suggest_links(self, article: FinalArticle) -> list[LinkSuggestion]:
        try:
            return await links.suggest_links(article)
        except Exception as exc:
            raise ProviderFailure(f"Link suggestion failed: {exc}") from exc
