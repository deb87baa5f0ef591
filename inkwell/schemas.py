"""
inkwell/schemas.py — Domain records exchanged between the pipeline stages.

Kept separate from:
- inkwell/pipeline/session.py → GenerationSession and the Stage state machine
- inkwell/api/models.py       → REST request bodies

TopicCandidate / Outline / FinalArticle mirror what the agents return and the
store persists. LinkSuggestion is immutable once produced.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ArticleType = Literal[
    "blog", "technical", "news", "opinion", "tutorial", "listicle", "affiliate", "personal",
]
TargetLength = Literal["short", "medium", "long"]
ArticleStatus = Literal["draft", "review", "published"]
TopicMode = Literal["discover", "direct"]

# Topics returned by discovery are not persisted until the user picks one.
TEMP_ID_PREFIX = "temp-"

# Article types that may skip discovery and go straight from a topic query.
DIRECT_TOPIC_TYPES = frozenset({"tutorial", "affiliate", "personal"})

# Default total word targets per length bucket.
WORD_TARGETS: dict[str, int] = {"short": 800, "medium": 1500, "long": 2500}


class GenerationConfig(BaseModel):
    """
    User-facing configuration collected at the Config stage.

    At least one selection criterion is required before discovery can run:
    a keyword, an industry, or (direct mode for tutorial/affiliate/personal
    articles) a topic query. The controller enforces this, not the model,
    so a half-filled form can still be represented.
    """

    model_config = ConfigDict(extra="forbid")

    industry: str = ""
    keywords: list[str] = Field(default_factory=list)
    article_type: ArticleType = "blog"
    target_length: TargetLength = "medium"
    tone: str = "professional"
    word_count: Annotated[Optional[int], Field(default=None, ge=250)]
    topic_mode: TopicMode = "discover"
    topic_query: str = ""
    custom_instructions: str = ""

    def clean_keywords(self) -> list[str]:
        return [k.strip() for k in self.keywords if k and k.strip()]

    def total_word_target(self) -> int:
        return self.word_count or WORD_TARGETS[self.target_length]


class Source(BaseModel):
    title: str = ""
    url: str


class SimilarityWarning(BaseModel):
    """An existing topic/article that a candidate resembles."""

    title: str
    similarity: Annotated[float, Field(ge=0.0, le=1.0)]


class TopicCandidate(BaseModel):
    id: str
    title: str
    summary: str = ""
    angle: str = ""
    relevance_score: Annotated[float, Field(ge=0.0, le=1.0)]
    sources: list[Source] = Field(default_factory=list)
    similar_topics: list[SimilarityWarning] = Field(default_factory=list)
    status: Literal["pending", "approved", "rejected", "used"] = "pending"

    @property
    def is_durable(self) -> bool:
        """False while the topic only lives on the client (never persisted)."""
        return bool(self.id) and not self.id.startswith(TEMP_ID_PREFIX)


class OutlineSection(BaseModel):
    heading: str
    key_points: list[str] = Field(default_factory=list)
    word_target: Annotated[int, Field(gt=0)]


class OutlineConclusion(BaseModel):
    summary: str = ""
    call_to_action: str = ""


class Outline(BaseModel):
    id: str
    topic_id: str
    title: str
    hook: str
    sections: list[OutlineSection] = Field(min_length=1)
    conclusion: OutlineConclusion = Field(default_factory=OutlineConclusion)
    seo_keywords: list[str] = Field(default_factory=list)
    approved: bool = False

    @property
    def total_word_target(self) -> int:
        return sum(s.word_target for s in self.sections)


class FinalArticle(BaseModel):
    id: str
    title: str = ""
    content: str = ""
    status: ArticleStatus = "draft"
    outline_id: Optional[str] = None
    word_count: int = 0


class LinkSuggestion(BaseModel):
    """A proposed cross-reference: turn ``anchor_text`` into a link to the target."""

    model_config = ConfigDict(frozen=True)

    id: str
    anchor_text: Annotated[str, Field(min_length=1)]
    target_id: str
    target_title: str = ""
    target_url: str
    relevance_score: Annotated[float, Field(ge=0.0, le=1.0)] = 0.8
    reason: str = ""


StreamStage = Literal["hook", "section", "conclusion", "complete"]


class StreamProgress(BaseModel):
    """Snapshot of where content generation currently is. Never persisted."""

    model_config = ConfigDict(frozen=True)

    stage: StreamStage
    message: str = ""
    progress: Annotated[int, Field(ge=0, le=100)] = 0
    section: Optional[int] = None       # 1-based, only for stage == "section"
    total: Optional[int] = None
    section_title: Optional[str] = None


class StreamedContent(BaseModel):
    """Live article assembled from token frames; each part completes independently."""

    hook: str = ""
    sections: list[str] = Field(default_factory=list)
    conclusion: str = ""
    current_section: int = -1          # 0-based index of the section being written

    def as_markdown(self, title: str = "") -> str:
        parts = [f"# {title}"] if title else []
        parts.extend(p for p in [self.hook, *self.sections, self.conclusion] if p)
        return "\n\n".join(parts)
