"""
pgvector-backed vector index.

Vectors live in the content_embeddings table of the primary PostgreSQL
database. Similarity is 1 - cosine distance, computed by the `<=>` operator
through pgvector's SQLAlchemy comparator.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete as sa_delete, func, or_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from contentvault.core.exceptions import IndexFailure
from contentvault.core.logging import get_logger
from contentvault.db.base import utcnow
from contentvault.db.session import Database
from contentvault.models.content import ContentEmbedding
from contentvault.schemas.content import SearchFilters
from contentvault.services.vector.base import IndexedVector, VectorHit, VectorIndex, VectorPayload

logger = get_logger(__name__)


class PgVectorIndex(VectorIndex):
    """
    Vector index on PostgreSQL + pgvector.

    The version guard is part of the upsert statement itself
    (ON CONFLICT ... DO UPDATE ... WHERE stored <= incoming), so concurrent
    writers for the same id cannot interleave a read and a write.
    """

    def __init__(self, database: Database):
        self.database = database
        self.table = ContentEmbedding.__table__

    async def ensure_collection(self, dimension: int, distance: str = "cosine") -> None:
        if distance != "cosine":
            raise IndexFailure(f"pgvector index only supports cosine distance, got {distance}")

        configured = ContentEmbedding.embedding.type.dim
        if configured != dimension:
            raise IndexFailure(
                f"Embedding dimension mismatch: table has {configured}, model produces {dimension}"
            )

        try:
            async with self.database.engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                await conn.run_sync(self.table.create, checkfirst=True)
        except (SQLAlchemyError, AttributeError) as e:
            raise IndexFailure(f"Failed to initialize pgvector table: {e}") from e

        logger.info("pgvector_index_ready", table=self.table.name, dimension=dimension)

    async def upsert(
        self,
        content_id: int,
        vector: List[float],
        payload: VectorPayload,
        version: Optional[datetime] = None,
    ) -> bool:
        values = {
            "content_id": content_id,
            "embedding": vector,
            "title": payload.title,
            "type": payload.type,
            "labels": payload.labels,
            "combined_text": payload.combined_text,
            "source_updated_at": version,
            "indexed_at": utcnow(),
        }
        stmt = pg_insert(ContentEmbedding).values(**values)
        stored = ContentEmbedding.source_updated_at
        incoming = stmt.excluded.source_updated_at
        stmt = stmt.on_conflict_do_update(
            index_elements=[ContentEmbedding.content_id],
            set_={key: stmt.excluded[key] for key in values if key != "content_id"},
            where=or_(stored.is_(None), incoming.is_(None), stored <= incoming),
        ).returning(ContentEmbedding.content_id)

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                applied = result.scalar_one_or_none() is not None
                await session.commit()
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("pgvector_upsert_failed", content_id=content_id, error=str(e))
            raise IndexFailure(f"Failed to upsert vector {content_id}: {e}") from e

        if not applied:
            logger.info("pgvector_upsert_skipped_stale", content_id=content_id, version=str(version))
        return applied

    async def search(
        self,
        query_vector: List[float],
        limit: int = 10,
        score_threshold: float = 0.5,
        filters: Optional[SearchFilters] = None,
    ) -> List[VectorHit]:
        distance = ContentEmbedding.embedding.cosine_distance(query_vector)
        query = (
            select(ContentEmbedding.content_id, (1 - distance).label("score"))
            .where(distance <= 1 - score_threshold)
            .order_by(distance)
            .limit(limit)
        )
        if filters is not None:
            if filters.type:
                query = query.where(ContentEmbedding.type == filters.type)
            if filters.labels:
                query = query.where(ContentEmbedding.labels.overlap(filters.labels))

        try:
            async with self.database.session() as session:
                result = await session.execute(query)
                rows = result.all()
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("pgvector_search_failed", error=str(e))
            raise IndexFailure(f"Vector search failed: {e}") from e

        return [VectorHit(content_id=row.content_id, score=float(row.score)) for row in rows]

    async def delete(self, content_id: int) -> None:
        await self.delete_many([content_id])

    async def delete_many(self, content_ids: List[int]) -> None:
        if not content_ids:
            return
        try:
            async with self.database.session() as session:
                await session.execute(
                    sa_delete(ContentEmbedding).where(ContentEmbedding.content_id.in_(content_ids))
                )
                await session.commit()
        except (SQLAlchemyError, RuntimeError) as e:
            logger.error("pgvector_delete_failed", content_ids=content_ids, error=str(e))
            raise IndexFailure(f"Failed to delete vectors {content_ids}: {e}") from e

    async def get(self, content_id: int) -> Optional[IndexedVector]:
        try:
            async with self.database.session() as session:
                row = await session.get(ContentEmbedding, content_id)
        except (SQLAlchemyError, RuntimeError) as e:
            raise IndexFailure(f"Failed to read vector {content_id}: {e}") from e

        if row is None:
            return None
        return IndexedVector(
            content_id=row.content_id,
            payload=VectorPayload(
                title=row.title,
                type=row.type,
                labels=list(row.labels or []),
                combined_text=row.combined_text,
            ),
            source_updated_at=row.source_updated_at,
        )

    async def list_ids(self) -> List[int]:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ContentEmbedding.content_id).order_by(ContentEmbedding.content_id)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, RuntimeError) as e:
            raise IndexFailure(f"Failed to list vector ids: {e}") from e

    async def count(self) -> int:
        try:
            async with self.database.session() as session:
                result = await session.execute(select(func.count(ContentEmbedding.content_id)))
                return int(result.scalar_one())
        except (SQLAlchemyError, RuntimeError) as e:
            raise IndexFailure(f"Failed to count vectors: {e}") from e

    async def health_check(self) -> bool:
        return await self.database.health_check()
