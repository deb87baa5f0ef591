"""Document position capability and a plain-text implementation of it.

The mutation engine only talks to ``DocumentPosition``; a rich-text editor
binding implements the same protocol over its own position model.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

Range = tuple[int, int]


@runtime_checkable
class DocumentPosition(Protocol):
    @property
    def size(self) -> int: ...

    def text_between(self, start: int, end: int) -> str: ...
    def clamp(self, pos: int) -> int: ...
    def is_valid_range(self, start: int, end: int) -> bool: ...
    def insert(self, pos: int, text: str) -> None: ...
    def delete(self, start: int, end: int) -> None: ...
    def add_mark(self, key: str, start: int, end: int) -> None: ...
    def remove_mark(self, key: str) -> Optional[Range]: ...
    def mark_range(self, key: str) -> Optional[Range]: ...
    def set_cursor(self, pos: int) -> None: ...


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def _shift_for_insert(pos: int, at: int, length: int, *, inclusive: bool) -> int:
    if pos > at or (inclusive and pos == at):
        return pos + length
    return pos


def _shift_for_delete(pos: int, start: int, end: int) -> int:
    if pos <= start:
        return pos
    if pos >= end:
        return pos - (end - start)
    return start


@dataclass
class TextDocument:
    """Plain-text document with advisory marks that follow edits.

    Marks are annotations (for example the "pending AI edit" highlight); they
    never lock the text, and they are remapped after every insert/delete.
    """

    text: str = ""
    cursor: int = 0
    version_id: int = 1
    marks: dict[str, Range] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.text)

    @property
    def content_hash(self) -> str:
        return _hash_text(self.text)

    def text_between(self, start: int, end: int) -> str:
        return self.text[self.clamp(start):self.clamp(end)]

    def clamp(self, pos: int) -> int:
        return max(0, min(pos, self.size))

    def is_valid_range(self, start: int, end: int) -> bool:
        return 0 <= start <= end <= self.size

    def insert(self, pos: int, text: str) -> None:
        if not text:
            return
        pos = self.clamp(pos)
        self.text = self.text[:pos] + text + self.text[pos:]
        n = len(text)
        self.marks = {
            key: (_shift_for_insert(s, pos, n, inclusive=True), _shift_for_insert(e, pos, n, inclusive=False))
            for key, (s, e) in self.marks.items()
        }
        self.cursor = _shift_for_insert(self.cursor, pos, n, inclusive=True)
        self.version_id += 1

    def delete(self, start: int, end: int) -> None:
        start, end = self.clamp(start), self.clamp(end)
        if start >= end:
            return
        self.text = self.text[:start] + self.text[end:]
        self.marks = {
            key: (_shift_for_delete(s, start, end), _shift_for_delete(e, start, end))
            for key, (s, e) in self.marks.items()
        }
        self.cursor = _shift_for_delete(self.cursor, start, end)
        self.version_id += 1

    def add_mark(self, key: str, start: int, end: int) -> None:
        self.marks[key] = (self.clamp(start), self.clamp(end))

    def remove_mark(self, key: str) -> Optional[Range]:
        return self.marks.pop(key, None)

    def mark_range(self, key: str) -> Optional[Range]:
        return self.marks.get(key)

    def set_cursor(self, pos: int) -> None:
        self.cursor = self.clamp(pos)
