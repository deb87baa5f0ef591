"""User commands accepted by PipelineController.advance().

Each command is a pydantic model tagged by ``action``; ``parse_command``
turns a JSON payload into the right one.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from inkwell.pipeline.session import Stage
from inkwell.schemas import GenerationConfig, Outline


class DiscoverTopics(BaseModel):
    action: Literal["discover_topics"] = "discover_topics"
    config: GenerationConfig


class SelectTopic(BaseModel):
    action: Literal["select_topic"] = "select_topic"
    topic_id: str


class RejectTopic(BaseModel):
    action: Literal["reject_topic"] = "reject_topic"
    topic_id: str


class ReviseOutline(BaseModel):
    """Regenerate the outline from a note, or replace it with a user-edited one."""

    action: Literal["revise_outline"] = "revise_outline"
    feedback: Optional[str] = None
    outline: Optional[Outline] = None

    @model_validator(mode="after")
    def _one_of(self) -> "ReviseOutline":
        has_feedback = bool(self.feedback and self.feedback.strip())
        if has_feedback == (self.outline is not None):
            raise ValueError("Provide either feedback or an edited outline")
        return self


class ApproveOutline(BaseModel):
    action: Literal["approve_outline"] = "approve_outline"


class ApplyLinks(BaseModel):
    action: Literal["apply_links"] = "apply_links"
    selected_ids: list[str] = Field(default_factory=list)


class SkipLinks(BaseModel):
    action: Literal["skip_links"] = "skip_links"


class GoBack(BaseModel):
    action: Literal["go_back"] = "go_back"
    stage: Stage


Command = Annotated[
    Union[DiscoverTopics, SelectTopic, RejectTopic, ReviseOutline, ApproveOutline, ApplyLinks, SkipLinks, GoBack],
    Field(discriminator="action"),
]

_command_adapter: TypeAdapter = TypeAdapter(Command)


def parse_command(payload: dict):
    return _command_adapter.validate_python(payload)
