import json
import logging
import uuid

from pydantic import BaseModel, Field

from inkwell.agents.llm import get_llm
from inkwell.config import settings
from inkwell.graph.state import OutlineState
from inkwell.prompts.outline import OUTLINE_PROMPT, REVISION_BLOCK, SECTION_RANGES
from inkwell.schemas import GenerationConfig, OutlineConclusion, OutlineSection, TopicCandidate

logger = logging.getLogger(__name__)


class OutlineDraft(BaseModel):
    title: str
    hook: str
    sections: list[OutlineSection] = Field(min_length=1)
    conclusion: OutlineConclusion = Field(default_factory=OutlineConclusion)
    seo_keywords: list[str] = Field(default_factory=list)


def build_outline_prompt(
    topic: TopicCandidate,
    config: GenerationConfig,
    feedback: str | None = None,
    previous: dict | None = None,
) -> str:
    min_sections, max_sections = SECTION_RANGES[config.target_length]
    custom = f"\nADDITIONAL INSTRUCTIONS: {config.custom_instructions}" if config.custom_instructions else ""
    prompt = OUTLINE_PROMPT.format(
        title=topic.title,
        summary=topic.summary,
        angle=topic.angle,
        article_type=config.article_type,
        tone=config.tone,
        keywords=", ".join(config.clean_keywords()) or "(none)",
        word_target=config.total_word_target(),
        min_sections=min_sections,
        max_sections=max_sections,
        custom_instructions=custom,
    )
    if feedback and previous:
        prompt += REVISION_BLOCK.format(
            previous_outline=json.dumps(previous, ensure_ascii=False, indent=2),
            feedback=feedback,
        )
    return prompt


async def outline_node(state: OutlineState) -> dict:
    """
    Generate the article outline for the selected topic.
    On regeneration, the checkpointed outline and the user's note steer the revision.
    """
    topic = TopicCandidate.model_validate(state["topic"])
    config = GenerationConfig.model_validate(state["config"])
    feedback = state.get("feedback")
    previous = state.get("previous_outline") or state.get("outline")

    llm = get_llm(settings.outline_model, max_tokens=2000, temperature=0.5)
    structured = llm.with_structured_output(OutlineDraft)
    draft: OutlineDraft = await structured.ainvoke(build_outline_prompt(topic, config, feedback, previous))

    logger.info("Outline for %r: %d section(s)%s", topic.title, len(draft.sections),
                " (revised)" if feedback else "")
    return {
        "outline": {
            "id": str(uuid.uuid4()),
            "topic_id": topic.id,
            **draft.model_dump(),
            "approved": False,
        }
    }
