"""Prompts for topic discovery (research node)."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Discovery prompt
# ---------------------------------------------------------------------------
# Filled by research_node. The model answers through with_structured_output,
# so the prompt describes content, not the JSON layout.

DISCOVER_PROMPT = """You are a content strategist planning the next articles for a blog.

INDUSTRY: {industry}
KEYWORDS: {keywords}
ARTICLE TYPE: {article_type}
TONE: {tone}

Propose {count} distinct article topics. For each topic give:
- a specific, compelling title (not generic)
- a two or three sentence summary of what the article covers
- the unique angle that sets it apart from existing coverage
- a relevance score between 0 and 1 for how well it matches the keywords and industry
- up to three supporting sources (title and URL) you are confident exist

Prefer topics with search demand and a clear reader benefit. Avoid near-duplicates.
{custom_instructions}"""

# ---------------------------------------------------------------------------
# Direct mode
# ---------------------------------------------------------------------------
# Tutorial, affiliate and personal articles can start from the user's own
# topic; the model only sharpens it into a single candidate.

DIRECT_TOPIC_PROMPT = """You are a content strategist. The author already knows what to write about.

TOPIC REQUEST: {topic_query}
ARTICLE TYPE: {article_type}
KEYWORDS: {keywords}
TONE: {tone}

Turn the request into exactly one article topic with a clear title, a short summary,
the angle the article takes and a relevance score between 0 and 1.
{custom_instructions}"""
