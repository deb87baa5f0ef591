"""Cross-article link suggestions.

Candidates come from the Chroma article collection; the model picks anchors
for them. Anchors that do not occur unlinked in the text are dropped here so
the user is never offered a link that cannot be applied.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from inkwell.agents.llm import get_llm
from inkwell.config import settings
from inkwell.linking.matcher import TextAnchorMatcher
from inkwell.prompts.links import LINK_SUGGESTION_PROMPT
from inkwell.schemas import FinalArticle, LinkSuggestion
from inkwell.store.chroma import get_or_create_article_collection, query_similar

logger = logging.getLogger(__name__)

_CANDIDATE_POOL = 10


class LinkDraft(BaseModel):
    anchor_text: str
    target_id: str
    relevance_score: float = Field(default=0.8, ge=0.0, le=1.0)
    reason: str = ""


class LinkDrafts(BaseModel):
    links: list[LinkDraft] = Field(default_factory=list)


def find_candidates(article: FinalArticle) -> list[dict]:
    matches = query_similar(
        get_or_create_article_collection(),
        f"{article.title}\n{article.content[:2000]}",
        _CANDIDATE_POOL,
    )
    return [
        m for m in matches
        if m["id"] != article.id and m.get("url") and m["similarity"] >= settings.link_candidate_threshold
    ]


def to_suggestions(
    drafts: list[LinkDraft],
    candidates: list[dict],
    content: str,
    limit: int,
) -> list[LinkSuggestion]:
    """Keep drafts that point at a known candidate and whose anchor occurs unlinked."""
    by_id = {c["id"]: c for c in candidates}
    matcher = TextAnchorMatcher(content)
    suggestions: list[LinkSuggestion] = []
    used_targets: set[str] = set()
    for draft in drafts:
        target = by_id.get(draft.target_id)
        if target is None or draft.target_id in used_targets:
            continue
        if not draft.anchor_text.strip() or not matcher.find_unlinked(draft.anchor_text):
            logger.debug("Dropping suggestion with unusable anchor %r", draft.anchor_text)
            continue
        used_targets.add(draft.target_id)
        suggestions.append(LinkSuggestion(
            id=uuid.uuid4().hex,
            anchor_text=draft.anchor_text.strip(),
            target_id=draft.target_id,
            target_title=target.get("title", ""),
            target_url=target["url"],
            relevance_score=draft.relevance_score,
            reason=draft.reason,
        ))
        if len(suggestions) >= limit:
            break
    return suggestions


async def suggest_links(article: FinalArticle, *, limit: Optional[int] = None, llm=None) -> list[LinkSuggestion]:
    limit = limit or settings.max_link_suggestions
    candidates = await asyncio.to_thread(find_candidates, article)
    if not candidates:
        logger.info("No link candidates for article %s", article.id)
        return []

    listing = "\n".join(
        f"{c['id']} | {c.get('title', '')} | {c['url']} | {c.get('excerpt', '')[:200]}" for c in candidates
    )
    llm = llm or get_llm(settings.research_model, max_tokens=1500, temperature=0.3)
    structured = llm.with_structured_output(LinkDrafts)
    drafts: LinkDrafts = await structured.ainvoke(LINK_SUGGESTION_PROMPT.format(
        content=article.content[:6000],
        candidates=listing,
        limit=limit,
    ))
    suggestions = to_suggestions(drafts.links, candidates, article.content, limit)
    logger.info("%d link suggestion(s) for article %s", len(suggestions), article.id)
    return suggestions
