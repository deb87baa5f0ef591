import logging
import uuid

from pydantic import BaseModel, Field

from inkwell.agents.llm import get_llm
from inkwell.config import settings
from inkwell.graph.state import DiscoveryState
from inkwell.prompts.topics import DIRECT_TOPIC_PROMPT, DISCOVER_PROMPT
from inkwell.schemas import DIRECT_TOPIC_TYPES, GenerationConfig, Source

logger = logging.getLogger(__name__)


class TopicProposal(BaseModel):
    title: str
    summary: str = ""
    angle: str = ""
    relevance_score: float = Field(ge=0.0, le=1.0)
    sources: list[Source] = Field(default_factory=list)


class TopicProposals(BaseModel):
    topics: list[TopicProposal]


def _is_direct(config: GenerationConfig) -> bool:
    return (
        config.topic_mode == "direct"
        and config.article_type in DIRECT_TOPIC_TYPES
        and bool(config.topic_query.strip())
    )


def build_research_prompt(config: GenerationConfig) -> str:
    keywords = ", ".join(config.clean_keywords()) or "(none)"
    custom = f"\nADDITIONAL INSTRUCTIONS: {config.custom_instructions}" if config.custom_instructions else ""
    if _is_direct(config):
        return DIRECT_TOPIC_PROMPT.format(
            topic_query=config.topic_query.strip(),
            article_type=config.article_type,
            keywords=keywords,
            tone=config.tone,
            custom_instructions=custom,
        )
    return DISCOVER_PROMPT.format(
        industry=config.industry or "(any)",
        keywords=keywords,
        article_type=config.article_type,
        tone=config.tone,
        count=settings.max_topics,
        custom_instructions=custom,
    )


async def research_node(state: DiscoveryState) -> dict:
    """
    Ask the research model for topic proposals matching the configuration.

    Direct mode (tutorial/affiliate/personal with a topic query) yields a
    single sharpened topic instead of a discovery list.
    """
    config = GenerationConfig.model_validate(state["config"])
    llm = get_llm(settings.research_model, max_tokens=2000, temperature=0.8)
    structured = llm.with_structured_output(TopicProposals)

    result: TopicProposals = await structured.ainvoke(build_research_prompt(config))
    limit = 1 if _is_direct(config) else settings.max_topics
    proposals = [p for p in result.topics if p.title.strip()][:limit]
    logger.info("Research proposed %d topic(s)", len(proposals))

    return {
        "raw_topics": [
            {"id": f"temp-{uuid.uuid4().hex}", **p.model_dump()}
            for p in proposals
        ]
    }
