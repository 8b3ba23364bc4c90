"""Pydantic schemas shared by the pipeline, workers and API."""

from contentvault.schemas.content import (
    AnalysisResult,
    ContentCreate,
    ContentListResponse,
    ContentRecord,
    ContentUpdate,
    RankedContent,
    RawSearchResponse,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    SearchSource,
)

__all__ = [
    "AnalysisResult",
    "ContentCreate",
    "ContentListResponse",
    "ContentRecord",
    "ContentUpdate",
    "RankedContent",
    "RawSearchResponse",
    "SearchFilters",
    "SearchRequest",
    "SearchResponse",
    "SearchSource",
]
