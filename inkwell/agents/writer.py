"""Article writer: streams an approved outline into a full article.

Produces the event sequence read by StreamConsumer:

  article_created → progress(hook) + tokens → per section progress + tokens
  → progress(conclusion) + tokens → progress(saving) → complete

The article row is created first so a client that loses the stream can still
re-fetch the saved text by id. Any failure after that becomes an ``error`` event.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from inkwell.agents.llm import chunk_text, get_llm
from inkwell.config import settings
from inkwell.prompts.writer import CONCLUSION_PROMPT, HOOK_PROMPT, SECTION_PROMPT, WRITER_SYSTEM_PROMPT
from inkwell.schemas import GenerationConfig, Outline, StreamedContent
from inkwell.store.repository import Repository
from inkwell.stream.frames import encode_frame

logger = logging.getLogger(__name__)


def _progress(stage: str, message: str, progress: int, **extra: Any) -> dict[str, Any]:
    return {"type": "progress", "stage": stage, "message": message, "progress": progress, **extra}


async def _stream_part(llm, prompt: str) -> AsyncIterator[str]:
    messages = [SystemMessage(content=WRITER_SYSTEM_PROMPT), HumanMessage(content=prompt)]
    async for chunk in llm.astream(messages):
        text = chunk_text(chunk)
        if text:
            yield text


async def stream_article_events(
    outline: Outline,
    config: GenerationConfig,
    repository: Repository,
    *,
    llm=None,
) -> AsyncIterator[dict[str, Any]]:
    llm = llm or get_llm(settings.draft_model, max_tokens=4000, temperature=0.7, streaming=True)
    article = await repository.create_article(outline.id, outline.title)
    yield {"type": "article_created", "article_id": article.id}

    common = {
        "title": outline.title,
        "article_type": config.article_type,
        "tone": config.tone,
        "keywords": ", ".join(outline.seo_keywords or config.clean_keywords()),
    }
    content = StreamedContent()
    total = len(outline.sections)

    try:
        yield _progress("hook", "Writing introduction...", 5)
        async for token in _stream_part(llm, HOOK_PROMPT.format(hook=outline.hook, **common)):
            content.hook += token
            yield {"type": "token", "stage": "hook", "content": token}

        for number, section in enumerate(outline.sections, start=1):
            content.sections.append("")
            content.current_section = number - 1
            yield _progress(
                "section",
                f"Writing section {number} of {total}: {section.heading}",
                10 + int(80 * (number - 1) / total),
                section=number,
                total=total,
                section_title=section.heading,
            )
            prompt = SECTION_PROMPT.format(
                number=number,
                total=total,
                heading=section.heading,
                word_target=section.word_target,
                key_points="\n".join(f"- {p}" for p in section.key_points) or "- (author's choice)",
                previous_headings=", ".join(s.heading for s in outline.sections[:number - 1]) or "none",
                **common,
            )
            async for token in _stream_part(llm, prompt):
                content.sections[-1] += token
                yield {"type": "token", "stage": "section", "section": number, "content": token}

        yield _progress("conclusion", "Writing conclusion...", 92)
        prompt = CONCLUSION_PROMPT.format(
            summary=outline.conclusion.summary or "the key takeaways",
            call_to_action=outline.conclusion.call_to_action or "invite the reader to act on what they learned",
            **common,
        )
        async for token in _stream_part(llm, prompt):
            content.conclusion += token
            yield {"type": "token", "stage": "conclusion", "content": token}

        yield _progress("saving", "Saving article...", 97)
        saved = await repository.save_article(
            article.id,
            content.as_markdown(outline.title),
            snapshot=True,
            edited_by="ai",
            change_summary="Generated draft",
        )
        logger.info("Article %s written: %d words", saved.id, saved.word_count)
        yield {"type": "complete", "article": saved.model_dump()}

    except Exception as exc:
        logger.exception("Article generation failed for outline %s", outline.id)
        yield {"type": "error", "message": str(exc) or exc.__class__.__name__, "article_id": article.id}


async def stream_article_frames(
    outline: Outline,
    config: GenerationConfig,
    repository: Repository,
    *,
    llm: Optional[Any] = None,
) -> AsyncIterator[bytes]:
    """The writer stream as an NDJSON body."""
    async for event in stream_article_events(outline, config, repository, llm=llm):
        yield encode_frame(event)
