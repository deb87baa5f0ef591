"""Convert selected link suggestions into markdown links inside article text.

The engine is a pure function of (text, suggestions, selection): spans are
claimed against the original text, then all claimed spans are rewritten
right-to-left so earlier insertions never shift later offsets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from inkwell.linking.matcher import Span, TextAnchorMatcher, inside_any
from inkwell.schemas import LinkSuggestion

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 50

SKIP_NOT_FOUND = "not_found"
SKIP_ALREADY_LINKED = "already_linked"
SKIP_OVERLAPS_CLAIMED = "overlaps_claimed"


@dataclass(frozen=True)
class AppliedLink:
    suggestion_id: str
    anchor_text: str        # as it appears in the document (original case)
    target_id: str
    target_url: str
    span: Span              # offsets in the original text
    context: str


@dataclass(frozen=True)
class LinkInsertionResult:
    result_text: str
    applied: tuple[AppliedLink, ...] = ()
    skipped: dict[str, str] = field(default_factory=dict)   # suggestion id -> reason

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def prioritize(suggestions: Iterable[LinkSuggestion]) -> list[LinkSuggestion]:
    """Highest relevance first; ties keep their input order."""
    return sorted(suggestions, key=lambda s: -s.relevance_score)


def render_link(anchor: str, url: str) -> str:
    return f"[{anchor}]({url})"


class LinkInsertionEngine:
    def insert(
        self,
        document_text: str,
        suggestions: Iterable[LinkSuggestion],
        selected_ids: Iterable[str],
    ) -> LinkInsertionResult:
        selected = set(selected_ids)
        matcher = TextAnchorMatcher(document_text)
        claimed: list[tuple[Span, LinkSuggestion]] = []
        skipped: dict[str, str] = {}

        for suggestion in prioritize(s for s in suggestions if s.id in selected):
            occurrences = matcher.find(suggestion.anchor_text)
            if not occurrences:
                skipped[suggestion.id] = SKIP_NOT_FOUND
                continue
            unlinked = [s for s in occurrences if not inside_any(s, matcher.existing_links)]
            if not unlinked:
                skipped[suggestion.id] = SKIP_ALREADY_LINKED
                continue
            span = unlinked[0]
            if inside_any(span, [c[0] for c in claimed]):
                skipped[suggestion.id] = SKIP_OVERLAPS_CLAIMED
                continue
            claimed.append((span, suggestion))

        result_text = document_text
        applied: list[AppliedLink] = []
        for (start, end), suggestion in sorted(claimed, key=lambda c: c[0][0], reverse=True):
            anchor = document_text[start:end]
            result_text = result_text[:start] + render_link(anchor, suggestion.target_url) + result_text[end:]
            applied.append(AppliedLink(
                suggestion_id=suggestion.id,
                anchor_text=anchor,
                target_id=suggestion.target_id,
                target_url=suggestion.target_url,
                span=(start, end),
                context=document_text[max(0, start - CONTEXT_CHARS):min(len(document_text), end + CONTEXT_CHARS)],
            ))

        applied.sort(key=lambda a: a.span[0])
        if skipped:
            logger.info("Link insertion: %d applied, %d skipped (%s)",
                        len(applied), len(skipped), ", ".join(sorted(set(skipped.values()))))
        return LinkInsertionResult(result_text=result_text, applied=tuple(applied), skipped=skipped)
