"""
inkwell/pipeline/session.py — GenerationSession and the Stage state machine.

A session is an immutable value: the controller returns an updated copy from
every advance() call and never mutates the one it was given.

Transition table:

  CONFIG  → TOPICS
  TOPICS  → OUTLINE                (after explicit topic selection)
  OUTLINE → CONTENT                (after explicit outline approval)
  CONTENT → LINKING | DONE | OUTLINE (rollback when the stream fails)
  LINKING → DONE

Going back is allowed to any strictly earlier stage except CONTENT, which is
only ever entered by approving an outline.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from inkwell.errors import InvalidTransitionError
from inkwell.schemas import (
    FinalArticle,
    GenerationConfig,
    LinkSuggestion,
    Outline,
    StreamedContent,
    StreamProgress,
    TopicCandidate,
)


class Stage(str, Enum):
    CONFIG = "config"
    TOPICS = "topics"
    OUTLINE = "outline"
    CONTENT = "content"
    LINKING = "linking"
    DONE = "done"

    @property
    def index(self) -> int:
        return _ORDER.index(self)


_ORDER = list(Stage)

TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.CONFIG: frozenset({Stage.TOPICS}),
    Stage.TOPICS: frozenset({Stage.OUTLINE}),
    Stage.OUTLINE: frozenset({Stage.CONTENT}),
    Stage.CONTENT: frozenset({Stage.LINKING, Stage.DONE, Stage.OUTLINE}),
    Stage.LINKING: frozenset({Stage.DONE}),
    Stage.DONE: frozenset(),
}

# Approval gates: these transitions only happen on an explicit user command.
GATED: frozenset[tuple[Stage, Stage]] = frozenset({
    (Stage.TOPICS, Stage.OUTLINE),
    (Stage.OUTLINE, Stage.CONTENT),
})

_ARTICLE_STAGES = frozenset({Stage.LINKING, Stage.DONE})


def check_transition(current: Stage, target: Stage) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


def check_go_back(session: "GenerationSession", target: Stage) -> None:
    if target.index >= session.stage.index or target is Stage.CONTENT:
        raise InvalidTransitionError(session.stage.value, target.value)
    if target is Stage.LINKING and not session.link_suggestions:
        raise InvalidTransitionError(session.stage.value, target.value)


class GenerationSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: Stage = Stage.CONFIG
    config: GenerationConfig = Field(default_factory=GenerationConfig)

    # --- Topics ---
    topic_candidates: list[TopicCandidate] = Field(default_factory=list)
    research_metadata: dict[str, Any] = Field(default_factory=dict)
    selected_topic: Optional[TopicCandidate] = None

    # --- Outline ---
    outline: Optional[Outline] = None

    # --- Content ---
    streamed_content: Optional[StreamedContent] = None
    progress: Optional[StreamProgress] = None
    article_id: Optional[str] = None
    final_article: Optional[FinalArticle] = None

    # --- Linking ---
    link_suggestions: list[LinkSuggestion] = Field(default_factory=list)
    applied_link_count: int = 0
    skipped_links: dict[str, str] = Field(default_factory=dict)

    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "GenerationSession":
        if self.outline is not None and self.selected_topic is None:
            raise ValueError("An outline requires a selected topic")
        if self.final_article is not None and self.stage not in _ARTICLE_STAGES:
            raise ValueError(f"A final article cannot exist at stage {self.stage.value}")
        return self

    def evolve(self, **changes: Any) -> "GenerationSession":
        """Copy with ``changes`` applied; invariants are checked again."""
        return GenerationSession(**{**dict(self), **changes})

    def discard_after(self, target: Stage) -> "GenerationSession":
        """Return the session moved back to ``target`` without the state of later stages."""
        keep: dict[str, Any] = {"stage": target, "config": self.config}
        if target.index >= Stage.TOPICS.index:
            keep.update(topic_candidates=self.topic_candidates, research_metadata=self.research_metadata)
        if target.index >= Stage.OUTLINE.index:
            outline = self.outline.model_copy(update={"approved": False}) if self.outline else None
            keep.update(selected_topic=self.selected_topic, outline=outline)
        if target is Stage.LINKING:
            keep.update(
                outline=self.outline,
                streamed_content=self.streamed_content,
                article_id=self.article_id,
                final_article=self.final_article,
                link_suggestions=self.link_suggestions,
            )
        return GenerationSession(**keep)
