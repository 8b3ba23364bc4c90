"""
Content API Routes

CRUD over saved content. Writes return as soon as the primary store is
updated; embedding happens in the background (queued mode), so a freshly
created item may not show up in semantic search for a short while.

Errors raised by the pipeline (InvalidInput, NotFound, ...) are mapped to
HTTP responses by the handlers registered in contentvault.main.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, Response, status

from contentvault.api.deps import PipelineDep
from contentvault.schemas.content import (
    ContentCreate,
    ContentListResponse,
    ContentRecord,
    ContentUpdate,
)

router = APIRouter(prefix="/content", tags=["content"])


@router.post("", response_model=ContentRecord, status_code=status.HTTP_201_CREATED)
async def create_content(item: ContentCreate, pipeline: PipelineDep):
    """
    Save a new content item.

    At least one of content, url, image_url or image_data is required.
    Type, labels, title and description are filled in by AI analysis
    unless provided.
    """
    return await pipeline.create(item)


@router.get("", response_model=ContentListResponse)
async def list_content(
    pipeline: PipelineDep,
    type: Optional[str] = None,
    labels: Optional[List[str]] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """List content newest first, optionally filtered by type and labels (any-match)."""
    items, total = await pipeline.list(type=type, labels=labels, limit=limit, offset=offset)
    return ContentListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{content_id}", response_model=ContentRecord)
async def get_content(content_id: int, pipeline: PipelineDep):
    return await pipeline.get(content_id)


@router.patch("/{content_id}", response_model=ContentRecord)
async def update_content(content_id: int, update: ContentUpdate, pipeline: PipelineDep):
    """Apply a partial update; only fields present in the body change."""
    return await pipeline.update(content_id, update)


@router.delete("/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(content_id: int, pipeline: PipelineDep):
    await pipeline.delete(content_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{content_id}/reindex", status_code=status.HTTP_202_ACCEPTED)
async def reindex_content(content_id: int, pipeline: PipelineDep):
    """Schedule a fresh embedding job for an item."""
    job = await pipeline.reindex(content_id)
    return {"success": True, "content_id": content_id, "job_id": job.job_id}
