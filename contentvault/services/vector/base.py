"""
Vector index interface.

An index holds at most one vector per content id plus a small denormalized
payload. Scores are cosine similarities (higher is better) and every
implementation applies the score threshold itself.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from contentvault.schemas.content import SearchFilters


class VectorHit(BaseModel):
    content_id: int
    score: float


class VectorPayload(BaseModel):
    """Payload stored next to a vector."""

    title: Optional[str] = None
    type: str = ""
    labels: List[str] = Field(default_factory=list)
    combined_text: str = ""


class IndexedVector(BaseModel):
    """What the index currently holds for one content id."""

    content_id: int
    payload: VectorPayload
    source_updated_at: Optional[datetime] = None


def is_stale(stored: Optional[datetime], incoming: Optional[datetime]) -> bool:
    """
    True if an entry stamped `stored` must not be overwritten by `incoming`.

    Unversioned writes always apply; equal versions apply (replays are
    idempotent).
    """
    if stored is None or incoming is None:
        return False
    return stored > incoming


class VectorIndex(ABC):
    """Common contract for the pgvector and Qdrant backends."""

    @abstractmethod
    async def ensure_collection(self, dimension: int, distance: str = "cosine") -> None:
        """Create the collection/table if missing; reject a dimension mismatch."""

    @abstractmethod
    async def upsert(
        self,
        content_id: int,
        vector: List[float],
        payload: VectorPayload,
        version: Optional[datetime] = None,
    ) -> bool:
        """
        Insert or replace the vector for content_id.

        Returns:
            False if the stored entry is newer than version and was kept
        """

    @abstractmethod
    async def search(
        self,
        query_vector: List[float],
        limit: int = 10,
        score_threshold: float = 0.5,
        filters: Optional[SearchFilters] = None,
    ) -> List[VectorHit]:
        """Hits with score >= score_threshold, best first, at most limit."""

    @abstractmethod
    async def delete(self, content_id: int) -> None:
        """Delete one vector; deleting a missing id is not an error."""

    @abstractmethod
    async def delete_many(self, content_ids: List[int]) -> None:
        ...

    @abstractmethod
    async def get(self, content_id: int) -> Optional[IndexedVector]:
        ...

    @abstractmethod
    async def list_ids(self) -> List[int]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        """Release client resources; a no-op unless the backend owns any."""
