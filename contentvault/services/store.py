"""
Content Store

Primary (authoritative) store for content records, backed by PostgreSQL via
SQLAlchemy async. Every method opens its own short session; ORM rows are
converted to ContentRecord before they leave this module.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from contentvault.core.exceptions import StoreFailure
from contentvault.db.session import Database
from contentvault.models.content import ContentItem
from contentvault.schemas.content import ContentRecord

logger = logging.getLogger(__name__)

# Record field name -> ORM attribute name
_FIELD_TO_COLUMN = {
    "type": "type",
    "title": "title",
    "description": "description",
    "summary": "summary",
    "content": "content",
    "url": "url",
    "image_url": "image_url",
    "metadata": "content_metadata",
    "labels": "labels",
}


def to_record(item: ContentItem) -> ContentRecord:
    """Convert an ORM row into a ContentRecord."""
    return ContentRecord(
        id=item.id,
        type=item.type,
        title=item.title,
        description=item.description,
        summary=item.summary,
        content=item.content,
        url=item.url,
        image_url=item.image_url,
        metadata=dict(item.content_metadata or {}),
        labels=list(item.labels or []),
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


class ContentStore:
    """
    CRUD and batched lookups over content_items.

    Usage:
        store = ContentStore(database)
        record = await store.insert({"type": "text", "content": "..."})
        records = await store.get_many([1, 2, 3])
    """

    # Upper bound on ids per IN (...) clause
    BATCH_SIZE = 500

    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        if not self.database.is_connected:
            raise StoreFailure(f"Store {operation} failed: database not connected")
        try:
            async with self.database.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Store {operation} failed: {e}")
            raise StoreFailure(f"Store {operation} failed: {e}") from e

    # ========================================
    # Writes
    # ========================================

    async def insert(self, data: Dict[str, Any]) -> ContentRecord:
        """Insert a record; id and timestamps are assigned by the store."""
        values = {
            _FIELD_TO_COLUMN[key]: value
            for key, value in data.items()
            if key in _FIELD_TO_COLUMN
        }
        values.setdefault("content_metadata", {})
        values.setdefault("labels", [])

        async with self._session("insert") as session:
            item = ContentItem(**values)
            session.add(item)
            await session.commit()
            await session.refresh(item)
            logger.info(f"Inserted content item {item.id} (type={item.type})")
            return to_record(item)

    async def update(self, content_id: int, changes: Dict[str, Any]) -> Optional[ContentRecord]:
        """
        Apply a partial update.

        Returns:
            The updated record, or None if the id does not exist
        """
        async with self._session("update") as session:
            item = await session.get(ContentItem, content_id)
            if item is None:
                return None

            for key, value in changes.items():
                column = _FIELD_TO_COLUMN.get(key)
                if column is None:
                    continue
                if column in ("content_metadata", "labels") and value is None:
                    value = {} if column == "content_metadata" else []
                setattr(item, column, value)

            await session.commit()
            await session.refresh(item)
            return to_record(item)

    async def delete(self, content_id: int) -> bool:
        """Delete a record. Returns False if it did not exist."""
        async with self._session("delete") as session:
            item = await session.get(ContentItem, content_id)
            if item is None:
                return False
            await session.delete(item)
            await session.commit()
            logger.info(f"Deleted content item {content_id}")
            return True

    # ========================================
    # Reads
    # ========================================

    async def get_by_id(self, content_id: int) -> Optional[ContentRecord]:
        async with self._session("get_by_id") as session:
            item = await session.get(ContentItem, content_id)
            return to_record(item) if item else None

    async def get_many(self, ids: Iterable[int]) -> List[ContentRecord]:
        """
        Fetch many records in as few queries as possible.

        Order of the result is unspecified; ids that do not exist are
        silently absent.
        """
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []

        records: List[ContentRecord] = []
        async with self._session("get_many") as session:
            for start in range(0, len(unique_ids), self.BATCH_SIZE):
                batch = unique_ids[start:start + self.BATCH_SIZE]
                result = await session.execute(
                    select(ContentItem).where(ContentItem.id.in_(batch))
                )
                records.extend(to_record(item) for item in result.scalars().all())
        return records

    async def list_filtered(
        self,
        type: Optional[str] = None,
        labels: Optional[List[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ContentRecord]:
        """List records newest first, optionally filtered by type and labels (any-match)."""
        query = (
            select(ContentItem)
            .order_by(ContentItem.created_at.desc(), ContentItem.id.desc())
            .limit(limit)
            .offset(offset)
        )
        query = self._apply_filters(query, type, labels)

        async with self._session("list_filtered") as session:
            result = await session.execute(query)
            return [to_record(item) for item in result.scalars().all()]

    async def count(self, type: Optional[str] = None, labels: Optional[List[str]] = None) -> int:
        query = self._apply_filters(select(func.count(ContentItem.id)), type, labels)
        async with self._session("count") as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    async def existing_ids(self, ids: Iterable[int]) -> Set[int]:
        """Return the subset of ids that still exist."""
        unique_ids = list(dict.fromkeys(ids))
        found: Set[int] = set()
        if not unique_ids:
            return found

        async with self._session("existing_ids") as session:
            for start in range(0, len(unique_ids), self.BATCH_SIZE):
                batch = unique_ids[start:start + self.BATCH_SIZE]
                result = await session.execute(
                    select(ContentItem.id).where(ContentItem.id.in_(batch))
                )
                found.update(result.scalars().all())
        return found

    @staticmethod
    def _apply_filters(query, type: Optional[str], labels: Optional[List[str]]):
        if type:
            query = query.where(ContentItem.type == type)
        if labels:
            query = query.where(ContentItem.labels.overlap(labels))
        return query
