"""
Content Pipeline

Write path for content items. The primary store is updated synchronously;
the vector index follows asynchronously through the embedding strategy.

Create:  validate -> analyze (degrades on failure) -> insert -> embed job
Update:  load -> apply provided fields -> embed job if text-affecting fields changed
Delete:  delete record (authoritative) -> best-effort vector delete
"""

from typing import Any, Dict, List, Optional, Tuple

from contentvault.core.exceptions import IndexFailure, InvalidInput, NotFound, OracleFailure
from contentvault.core.logging import get_logger
from contentvault.schemas.content import (
    TITLE_MAX_LENGTH,
    TYPE_MAX_LENGTH,
    AnalysisResult,
    ContentCreate,
    ContentRecord,
    ContentUpdate,
    clip,
)
from contentvault.services.oracle import Oracle
from contentvault.services.pipeline.jobs import EmbeddingJob
from contentvault.services.pipeline.strategy import EmbeddingStrategy
from contentvault.services.store import ContentStore
from contentvault.services.vector.base import VectorIndex

logger = get_logger(__name__)

# Fields that feed the combined text or the vector payload
EMBEDDED_FIELDS = ("title", "summary", "description", "content", "labels", "metadata", "type")

_EMPTY_DEFAULTS: Dict[str, Any] = {"labels": [], "metadata": {}}


class ContentPipeline:
    """
    Usage:
    ------
    pipeline = ContentPipeline(store, oracle, index, strategy)
    record = await pipeline.create(ContentCreate(content="..."))
    record = await pipeline.update(record.id, ContentUpdate(title="New title"))
    await pipeline.delete(record.id)
    """

    def __init__(
        self,
        store: ContentStore,
        oracle: Oracle,
        index: VectorIndex,
        strategy: EmbeddingStrategy,
    ):
        self.store = store
        self.oracle = oracle
        self.index = index
        self.strategy = strategy

    # ========================================
    # Writes
    # ========================================

    async def create(self, item: ContentCreate) -> ContentRecord:
        """
        Persist a new content item and schedule its embedding.

        Raises:
            InvalidInput: If none of content, url, image_url or image data is given
            StoreFailure: If the insert fails
        """
        if not item.has_payload():
            raise InvalidInput("One of content, url or image_url is required")

        analysis = await self._analyze(item)

        record = await self.store.insert({
            "type": item.type or clip(analysis.type, TYPE_MAX_LENGTH),
            "title": item.title or clip(analysis.generated_title, TITLE_MAX_LENGTH),
            "description": item.description or analysis.description,
            "summary": analysis.description,
            "content": item.content,
            "url": item.url,
            "image_url": item.image_url,
            "metadata": analysis.metadata,
            "labels": item.labels if item.labels is not None else analysis.labels,
        })
        logger.info("content_created", content_id=record.id, type=record.type, labels=record.labels)

        await self.strategy.submit(EmbeddingJob.from_record(record))
        return record

    async def update(self, content_id: int, update: ContentUpdate) -> ContentRecord:
        """
        Apply the fields the caller set; re-embed only if one of them
        actually changed a text-affecting field.

        Raises:
            InvalidInput: If `type` is explicitly set to null
            NotFound: If the item does not exist
        """
        fields = update.model_dump(exclude_unset=True)
        if "type" in fields and not fields["type"]:
            raise InvalidInput("type cannot be cleared")

        current = await self.store.get_by_id(content_id)
        if current is None:
            raise NotFound(content_id)

        changes = {
            field: (_EMPTY_DEFAULTS[field] if value is None and field in _EMPTY_DEFAULTS else value)
            for field, value in fields.items()
        }
        changed = {field for field, value in changes.items() if getattr(current, field) != value}
        if not changed:
            logger.debug("content_update_noop", content_id=content_id)
            return current

        record = await self.store.update(content_id, {field: changes[field] for field in changed})
        if record is None:
            # Deleted between the read and the write
            raise NotFound(content_id)

        reembed = bool(changed.intersection(EMBEDDED_FIELDS))
        logger.info(
            "content_updated",
            content_id=content_id,
            fields=sorted(changed),
            reembed=reembed,
        )
        if reembed:
            await self.strategy.submit(EmbeddingJob.from_record(record))
        return record

    async def delete(self, content_id: int) -> None:
        """
        Delete the record, then its vector. A vector delete failure is
        logged and left for the orphan cleanup task.

        Raises:
            NotFound: If the item does not exist
        """
        if not await self.store.delete(content_id):
            raise NotFound(content_id)

        try:
            await self.index.delete(content_id)
        except IndexFailure as e:
            logger.warning("vector_delete_failed", content_id=content_id, error=str(e))

        logger.info("content_deleted", content_id=content_id)

    async def reindex(self, content_id: int) -> EmbeddingJob:
        """Schedule a fresh embedding job from the current record."""
        record = await self.get(content_id)
        job = EmbeddingJob.from_record(record)
        await self.strategy.submit(job)
        logger.info("content_reindex_requested", content_id=content_id, job_id=job.job_id)
        return job

    # ========================================
    # Reads
    # ========================================

    async def get(self, content_id: int) -> ContentRecord:
        record = await self.store.get_by_id(content_id)
        if record is None:
            raise NotFound(content_id)
        return record

    async def list(
        self,
        type: Optional[str] = None,
        labels: Optional[List[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ContentRecord], int]:
        """Newest first. Returns the page and the total matching count."""
        records = await self.store.list_filtered(type=type, labels=labels, limit=limit, offset=offset)
        total = await self.store.count(type=type, labels=labels)
        return records, total

    # ========================================
    # Analysis
    # ========================================

    async def _analyze(self, item: ContentCreate) -> AnalysisResult:
        """Pick the analysis by input kind; any oracle failure degrades to a default."""
        if item.image_data or item.image_url:
            kind = "image"
        elif item.url and not item.content:
            kind = "url"
        else:
            kind = "text"

        try:
            if kind == "image":
                return await self.oracle.analyze_image(
                    image_data=item.image_data,
                    image_url=item.image_url,
                    media_type=item.image_media_type,
                )
            if kind == "url":
                return await self.oracle.analyze_url(item.url)
            return await self.oracle.analyze_text(
                item.content or "",
                title=item.title,
                description=item.description,
            )
        except OracleFailure as e:
            logger.warning("content_analysis_degraded", kind=kind, error=str(e))
            return AnalysisResult.fallback(kind, url=item.url)
