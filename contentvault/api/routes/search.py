"""
Search API Routes

Semantic search with retrieval-augmented answers, plus read-only
inspection of exhausted embedding jobs.
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Query

from contentvault.api.deps import FailedJobsDep, SearchEngineDep
from contentvault.schemas.content import (
    RawSearchResponse,
    SearchFilters,
    SearchRequest,
    SearchResponse,
)
from contentvault.services.pipeline.jobs import FailedJob

router = APIRouter(tags=["search"])


@router.post("/search", response_model=Union[SearchResponse, RawSearchResponse])
async def search(request: SearchRequest, engine: SearchEngineDep):
    """
    Answer a question from saved content.

    With raw=true the ranked records are returned without answer generation.
    """
    return await engine.search(
        request.query,
        limit=request.limit,
        threshold=request.threshold,
        filters=request.filters,
        raw=request.raw,
    )


@router.get("/search", response_model=Union[SearchResponse, RawSearchResponse])
async def search_get(
    engine: SearchEngineDep,
    q: str = Query(default="", max_length=4000),
    limit: int = Query(default=10, ge=1, le=100),
    threshold: float = Query(default=0.5, ge=0.0, le=1.0),
    type: Optional[str] = None,
    labels: Optional[List[str]] = Query(default=None),
    raw: bool = False,
):
    filters = SearchFilters(type=type, labels=labels)
    return await engine.search(q, limit=limit, threshold=threshold, filters=filters, raw=raw)


@router.get("/embedding/failed-jobs", response_model=List[FailedJob])
async def list_failed_jobs(failed_jobs: FailedJobsDep, limit: int = Query(default=50, ge=1, le=500)):
    """Exhausted embedding jobs, most recent first."""
    return await failed_jobs.list_failed(limit=limit)
