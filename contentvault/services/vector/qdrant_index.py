"""
Qdrant-backed vector index.

Point ids are the content ids themselves. The payload carries the
denormalized snapshot plus source_updated_at (ISO-8601) for the version
guard; Qdrant has no conditional upsert, so the guard reads the stored
stamp before writing.
"""

from datetime import datetime
from typing import List, Optional

from qdrant_client import AsyncQdrantClient, models

from contentvault.core.config import settings
from contentvault.core.exceptions import IndexFailure
from contentvault.core.logging import get_logger
from contentvault.db.base import utcnow
from contentvault.schemas.content import SearchFilters
from contentvault.services.vector.base import (
    IndexedVector,
    VectorHit,
    VectorIndex,
    VectorPayload,
    is_stale,
)

logger = get_logger(__name__)

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
}


def _parse_version(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def build_filter(filters: Optional[SearchFilters]) -> Optional[models.Filter]:
    """Exact type match AND any-match on labels."""
    if filters is None:
        return None

    conditions = []
    if filters.type:
        conditions.append(
            models.FieldCondition(key="type", match=models.MatchValue(value=filters.type))
        )
    if filters.labels:
        conditions.append(
            models.FieldCondition(key="labels", match=models.MatchAny(any=list(filters.labels)))
        )
    return models.Filter(must=conditions) if conditions else None


class QdrantVectorIndex(VectorIndex):
    """
    Qdrant has no conditional write, so the version check in upsert() is a
    read followed by a separate write. It rejects stale snapshots that
    arrive after a newer one has landed, but two workers racing on the
    same point can still end last-write-wins. PgVectorIndex makes the
    comparison inside a single statement.

    Usage:
    ------
    index = QdrantVectorIndex(url=settings.QDRANT_URL)
    await index.ensure_collection(768)
    await index.upsert(42, vector, VectorPayload(title="...", type="article"))
    hits = await index.search(query_vector, limit=10, score_threshold=0.5)
    """

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        collection_name: Optional[str] = None,
    ):
        self.client = client or AsyncQdrantClient(
            url=url or settings.QDRANT_URL,
            api_key=api_key or settings.QDRANT_API_KEY,
        )
        self.collection_name = collection_name or settings.VECTOR_COLLECTION_NAME

    async def ensure_collection(self, dimension: int, distance: str = "cosine") -> None:
        try:
            if await self.client.collection_exists(self.collection_name):
                info = await self.client.get_collection(self.collection_name)
                existing = info.config.params.vectors
                if isinstance(existing, models.VectorParams) and existing.size != dimension:
                    raise IndexFailure(
                        f"Collection {self.collection_name} has dimension {existing.size}, "
                        f"model produces {dimension}"
                    )
                logger.info("qdrant_collection_exists", collection=self.collection_name)
                return

            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=dimension, distance=_DISTANCES[distance]),
            )
            for field, schema in (("type", models.PayloadSchemaType.KEYWORD), ("labels", models.PayloadSchemaType.KEYWORD)):
                await self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field,
                    field_schema=schema,
                )
            logger.info("qdrant_collection_created", collection=self.collection_name, dimension=dimension)
        except IndexFailure:
            raise
        except Exception as e:
            logger.error("qdrant_collection_init_failed", collection=self.collection_name, error=str(e))
            raise IndexFailure(f"Failed to initialize Qdrant collection: {e}") from e

    async def upsert(
        self,
        content_id: int,
        vector: List[float],
        payload: VectorPayload,
        version: Optional[datetime] = None,
    ) -> bool:
        try:
            if version is not None:
                current = await self.get(content_id)
                if current is not None and is_stale(current.source_updated_at, version):
                    logger.info("qdrant_upsert_skipped_stale", content_id=content_id, version=version.isoformat())
                    return False

            await self.client.upsert(
                collection_name=self.collection_name,
                wait=True,
                points=[
                    models.PointStruct(
                        id=content_id,
                        vector=vector,
                        payload={
                            "content_id": content_id,
                            **payload.model_dump(),
                            "source_updated_at": version.isoformat() if version else None,
                            "indexed_at": utcnow().isoformat(),
                        },
                    )
                ],
            )
        except IndexFailure:
            raise
        except Exception as e:
            logger.error("qdrant_upsert_failed", content_id=content_id, error=str(e))
            raise IndexFailure(f"Failed to upsert vector {content_id}: {e}") from e
        return True

    async def search(
        self,
        query_vector: List[float],
        limit: int = 10,
        score_threshold: float = 0.5,
        filters: Optional[SearchFilters] = None,
    ) -> List[VectorHit]:
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=limit,
                score_threshold=score_threshold,
                query_filter=build_filter(filters),
                with_payload=False,
            )
        except Exception as e:
            logger.error("qdrant_search_failed", error=str(e))
            raise IndexFailure(f"Vector search failed: {e}") from e

        return [VectorHit(content_id=int(point.id), score=point.score) for point in response.points]

    async def delete(self, content_id: int) -> None:
        await self.delete_many([content_id])

    async def delete_many(self, content_ids: List[int]) -> None:
        if not content_ids:
            return
        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=list(content_ids)),
                wait=True,
            )
        except Exception as e:
            logger.error("qdrant_delete_failed", content_ids=content_ids, error=str(e))
            raise IndexFailure(f"Failed to delete vectors {content_ids}: {e}") from e

    async def get(self, content_id: int) -> Optional[IndexedVector]:
        try:
            points = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[content_id],
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise IndexFailure(f"Failed to read vector {content_id}: {e}") from e

        if not points:
            return None
        data = points[0].payload or {}
        return IndexedVector(
            content_id=content_id,
            payload=VectorPayload.model_validate(data),
            source_updated_at=_parse_version(data.get("source_updated_at")),
        )

    async def list_ids(self) -> List[int]:
        ids: List[int] = []
        offset = None
        try:
            while True:
                points, offset = await self.client.scroll(
                    collection_name=self.collection_name,
                    limit=256,
                    offset=offset,
                    with_payload=False,
                    with_vectors=False,
                )
                ids.extend(int(point.id) for point in points)
                if offset is None:
                    break
        except Exception as e:
            raise IndexFailure(f"Failed to list vector ids: {e}") from e
        return sorted(ids)

    async def count(self) -> int:
        try:
            result = await self.client.count(collection_name=self.collection_name, exact=True)
        except Exception as e:
            raise IndexFailure(f"Failed to count vectors: {e}") from e
        return result.count

    async def health_check(self) -> bool:
        try:
            await self.client.get_collections()
            return True
        except Exception as e:
            logger.error("qdrant_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.client.close()
