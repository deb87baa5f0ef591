"""Locate anchor phrases inside the plain-text projection of a document."""

from __future__ import annotations

import re

Span = tuple[int, int]

# [anchor](target); the anchor part may not contain brackets.
_MARKDOWN_LINK_RE = re.compile(r"\[[^\[\]]*\]\([^()\s]*(?:\s+\"[^\"]*\")?\)")


def _phrase_pattern(phrase: str) -> re.Pattern:
    """Literal, case-insensitive pattern where any whitespace run matches any whitespace run."""
    words = phrase.split()
    return re.compile(r"\s+".join(re.escape(w) for w in words), re.IGNORECASE)


def find_spans(text: str, phrase: str) -> list[Span]:
    """Return non-overlapping (start, end) spans of ``phrase`` in ``text``, left to right."""
    if not phrase or not phrase.strip():
        return []
    return [m.span() for m in _phrase_pattern(phrase).finditer(text)]


def link_spans(text: str) -> list[Span]:
    """Spans of markdown links already present in ``text``."""
    return [m.span() for m in _MARKDOWN_LINK_RE.finditer(text)]


def spans_overlap(a: Span, b: Span) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def inside_any(span: Span, others: list[Span]) -> bool:
    return any(spans_overlap(span, other) for other in others)


class TextAnchorMatcher:
    """Matcher bound to one document text; caches the existing link spans."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._links = link_spans(text)

    @property
    def existing_links(self) -> list[Span]:
        return list(self._links)

    def find(self, phrase: str) -> list[Span]:
        return find_spans(self.text, phrase)

    def find_unlinked(self, phrase: str) -> list[Span]:
        """Occurrences of ``phrase`` that are not part of an existing link."""
        return [s for s in self.find(phrase) if not inside_any(s, self._links)]
