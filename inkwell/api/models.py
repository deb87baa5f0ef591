from typing import Optional

from pydantic import BaseModel, Field

from inkwell.schemas import FinalArticle, GenerationConfig, LinkSuggestion, Outline


class OutlineRequest(BaseModel):
    topic_id: str
    config: GenerationConfig
    feedback: Optional[str] = None
    previous_outline: Optional[Outline] = None


class WriterRequest(BaseModel):
    outline_id: str
    config: GenerationConfig


class EditRequest(BaseModel):
    prompt: str


class LinkSuggestRequest(BaseModel):
    article_id: str
    title: str = ""
    content: str


class LinkApplyRequest(BaseModel):
    article_id: str
    suggestions: list[LinkSuggestion]
    selected_ids: list[str] = Field(default_factory=list)


class LinkApplyResponse(BaseModel):
    article: FinalArticle
    applied_count: int
    skipped: dict[str, str] = Field(default_factory=dict)


class LinkRecord(BaseModel):
    target_id: str
    anchor_text: str
    context: str = ""


class RecordLinksRequest(BaseModel):
    links: list[LinkRecord]


class ArticleSaveRequest(BaseModel):
    article_id: str
    content: str
    snapshot: bool = False
    edited_by: str = "user"
    change_summary: Optional[str] = None


class PublishRequest(BaseModel):
    url: str


class TopicRejected(BaseModel):
    topic_id: str
    status: str = "rejected"
