"""
Pydantic schemas for content, analysis and search.

These are the plain data shapes passed between the pipeline, the store,
the workers and the API. ORM rows never leave the store layer.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Column widths of content_items.type / content_items.title
TYPE_MAX_LENGTH = 50
TITLE_MAX_LENGTH = 500


def clip(value: Optional[str], limit: int) -> Optional[str]:
    """Cut a model- or fallback-supplied value down to its column width."""
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


# ========================================
# Content Schemas
# ========================================

class ContentRecord(BaseModel):
    """A persisted content item as returned by the primary store."""

    id: int = Field(description="Content ID")
    type: str = Field(description="Content category")
    title: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = Field(default=None, description="AI-generated summary")
    content: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    labels: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ContentCreate(BaseModel):
    """Request schema for creating a content item."""

    title: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = Field(default=None, max_length=2048)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    image_data: Optional[str] = Field(
        default=None,
        description="Base64-encoded image bytes, used only for analysis"
    )
    image_media_type: str = Field(default="image/jpeg")
    type: Optional[str] = Field(
        default=None,
        max_length=TYPE_MAX_LENGTH,
        description="Overrides the analyzed type when given"
    )
    labels: Optional[List[str]] = Field(
        default=None,
        description="Overrides the analyzed labels when given"
    )

    def has_payload(self) -> bool:
        return bool(self.content or self.url or self.image_url or self.image_data)


class ContentUpdate(BaseModel):
    """
    Partial update. Only fields explicitly set by the caller are applied
    (see model_dump(exclude_unset=True)). `type` may be omitted but not
    cleared.
    """

    title: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = Field(default=None, max_length=2048)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    type: Optional[str] = Field(default=None, max_length=TYPE_MAX_LENGTH)
    summary: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    labels: Optional[List[str]] = None


class ContentListResponse(BaseModel):
    """Response schema for a page of content items."""

    items: List[ContentRecord]
    total: int
    limit: int
    offset: int


# ========================================
# Analysis Schemas
# ========================================

class AnalysisResult(BaseModel):
    """Categorization produced by the analysis oracle."""

    model_config = ConfigDict(extra="ignore")

    type: str = "text"
    generated_title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("generated_title", "generatedTitle"),
    )
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "generated_description", "generatedDescription"),
    )
    metadata: Dict[str, Any] = Field(default_factory=lambda: {"tags": []})
    labels: List[str] = Field(default_factory=lambda: ["uncategorized"])

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return "text"
        return v.strip()

    @field_validator("labels", mode="before")
    @classmethod
    def coerce_labels(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [v]
        if not isinstance(v, (list, tuple)):
            return ["uncategorized"]
        return [str(label) for label in v if label is not None]

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, v: Any) -> Dict[str, Any]:
        if not isinstance(v, dict):
            return {"tags": []}
        return v

    @classmethod
    def fallback(cls, kind: Literal["text", "image", "url"], url: Optional[str] = None) -> "AnalysisResult":
        """Safe default used when analysis fails."""
        if kind == "image":
            return cls(type="image", generated_title="Untitled Image", description="An image")
        if kind == "url":
            return cls(type="link", generated_title=url, description="A web link")
        return cls(type="text")


# ========================================
# Search / RAG Schemas
# ========================================

class SearchFilters(BaseModel):
    """Exact type match and any-match labels."""

    type: Optional[str] = None
    labels: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return not self.type and not self.labels


class SearchRequest(BaseModel):
    """Request schema for semantic search / RAG."""

    query: str = Field(description="Natural-language query", max_length=4000)
    limit: int = Field(default=10, ge=1, le=100)
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    filters: Optional[SearchFilters] = None
    raw: bool = Field(default=False, description="Return ranked records without generation")


class RankedContent(BaseModel):
    """A hydrated record with its similarity score."""

    record: ContentRecord
    score: float


class SearchSource(BaseModel):
    """Source entry attached to a generated answer."""

    id: int
    title: Optional[str] = None
    type: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    score: float

    @classmethod
    def from_ranked(cls, ranked: RankedContent) -> "SearchSource":
        record = ranked.record
        return cls(
            id=record.id,
            title=record.title,
            type=record.type,
            url=record.url,
            image_url=record.image_url,
            description=record.description,
            score=ranked.score,
        )


class SearchResponse(BaseModel):
    """Answer plus the sources it was grounded on."""

    success: bool = True
    query: str
    answer: str
    source_count: int
    sources: List[SearchSource] = Field(default_factory=list)


class RawSearchResponse(BaseModel):
    """Ranked records without answer generation."""

    success: bool = True
    query: str
    results: List[RankedContent] = Field(default_factory=list)
