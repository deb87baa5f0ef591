"""Prompts for selection-scoped AI edits in the editor."""

from __future__ import annotations

from typing import Literal, Optional

EditAction = Literal["rewrite", "expand", "simplify", "fix_grammar", "change_tone", "custom"]

# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------
# Sent as SystemMessage by the edit provider. The reply is streamed back to the
# editor verbatim, so the model must answer with replacement text only.

EDIT_SYSTEM_PROMPT = """You are an expert editor working inside a long-form article.
You receive one selected passage and the text around it.
Return ONLY the replacement for the selected passage: no quotes, no preamble,
no explanation, no markdown code fences. Keep links and inline formatting intact."""

# ---------------------------------------------------------------------------
# Per-action instructions
# ---------------------------------------------------------------------------

ACTION_INSTRUCTIONS: dict[str, str] = {
    "rewrite": (
        "Rewrite the passage to improve clarity, flow and engagement. Keep the same meaning, "
        "voice and approximate length. Prefer active voice and varied sentence structure."
    ),
    "expand": (
        "Expand the passage by 50-100% with relevant details, examples or data points. "
        "Keep the original points and tone; every addition must add value."
    ),
    "simplify": (
        "Simplify the passage: shorter sentences, plain language instead of jargon, "
        "the same core message."
    ),
    "fix_grammar": (
        "Fix grammar, spelling, punctuation and syntax errors only. Do not change style or meaning."
    ),
    "change_tone": (
        "Rewrite the passage in the target tone, keeping every fact intact."
    ),
    "custom": "Follow the user's instruction precisely and keep the passage consistent with its surroundings.",
}

TONE_DESCRIPTIONS: dict[str, str] = {
    "professional": "formal, authoritative, business-appropriate",
    "casual": "conversational, friendly, approachable",
    "friendly": "warm, encouraging, personable",
    "technical": "precise, detailed, domain-specific",
    "persuasive": "compelling, convincing, action-oriented",
}


def build_edit_prompt(
    action: EditAction,
    selected_text: str,
    *,
    before: str = "",
    after: str = "",
    custom_prompt: Optional[str] = None,
    tone: str = "",
    article_type: str = "",
) -> str:
    """Build the user message for one edit request."""
    instruction = ACTION_INSTRUCTIONS.get(action, ACTION_INSTRUCTIONS["custom"])
    if action == "custom" and custom_prompt:
        instruction = f"{instruction}\nInstruction: {custom_prompt.strip()}"
    if tone:
        label = "Target tone" if action == "change_tone" else "Article tone"
        instruction = f"{instruction}\n{label}: {tone} ({TONE_DESCRIPTIONS.get(tone, tone)})"
    if article_type:
        instruction = f"{instruction}\nArticle type: {article_type}"

    return f"""## TASK
{instruction}

## TEXT BEFORE THE SELECTION
{before or "(start of article)"}

## SELECTED PASSAGE
{selected_text}

## TEXT AFTER THE SELECTION
{after or "(end of article)"}

Return only the new version of the selected passage."""
