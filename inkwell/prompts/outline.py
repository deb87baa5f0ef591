"""Prompts for the outline node."""

from __future__ import annotations

OUTLINE_PROMPT = """You are a senior editor. Build a detailed outline for the article below.

TITLE: {title}
SUMMARY: {summary}
ANGLE: {angle}
ARTICLE TYPE: {article_type}
TONE: {tone}
KEYWORDS: {keywords}
TARGET LENGTH: about {word_target} words in total

REQUIREMENTS:
- A hook: one or two sentences describing how the article opens
- {min_sections} to {max_sections} sections, each with a heading, 2-5 key points and a word target
- Section word targets should add up to roughly the total
- A conclusion with a summary and a call to action
- Three to six SEO keywords
{custom_instructions}"""

# ---------------------------------------------------------------------------
# Revision
# ---------------------------------------------------------------------------
# Appended when the user rejects an outline with a note. The previous outline
# is a strong prior: change what the note asks for, keep the rest.

REVISION_BLOCK = """
The previous outline was:
---
{previous_outline}
---

The author asked for these changes:
---
{feedback}
---

Apply the requested changes as closely as possible and keep everything else."""

# Section counts per length bucket.
SECTION_RANGES: dict[str, tuple[int, int]] = {
    "short": (2, 4),
    "medium": (3, 6),
    "long": (5, 8),
}
