"""Prompts for the streaming article writer.

The article is written part by part (hook, each section, conclusion) so that
progress can be reported per section and tokens routed to the right part.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------

WRITER_SYSTEM_PROMPT = """You are a professional writer producing one part of a longer article.
Write in Markdown. Use the tone and article type you are given.
Write active, concrete sentences; back claims with specifics, not filler.
Output ONLY the requested part: no headings for other parts, no commentary,
no preamble such as "Here is the section"."""

# ---------------------------------------------------------------------------
# Part prompts
# ---------------------------------------------------------------------------

HOOK_PROMPT = """ARTICLE: {title}
TYPE: {article_type} | TONE: {tone}
KEYWORDS: {keywords}

Write the opening of the article (60-150 words). The outline describes the hook as:
{hook}

Do not add a title or a heading."""

SECTION_PROMPT = """ARTICLE: {title}
TYPE: {article_type} | TONE: {tone}
KEYWORDS: {keywords}

Write section {number} of {total}, about {word_target} words.
Start with the heading line "## {heading}".
Cover these points:
{key_points}

Sections already written: {previous_headings}
Do not repeat material from them."""

CONCLUSION_PROMPT = """ARTICLE: {title}
TYPE: {article_type} | TONE: {tone}

Write the conclusion (80-200 words) under the heading "## Conclusion".
Summary to convey: {summary}
End with this call to action: {call_to_action}"""
