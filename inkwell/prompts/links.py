"""Prompts for cross-article link suggestions."""

from __future__ import annotations

LINK_SUGGESTION_PROMPT = """You are an SEO editor adding internal links to an article.

ARTICLE:
---
{content}
---

CANDIDATE TARGET ARTICLES (id | title | url | excerpt):
{candidates}

Suggest at most {limit} links. For each link:
- anchor_text must be a phrase copied EXACTLY from the article (2-6 words)
- the anchor must not already be part of a link
- pick the single most relevant target for it
- give a relevance score between 0 and 1 and a one sentence reason

Use each target at most once. Suggest nothing if no candidate is genuinely relevant."""
