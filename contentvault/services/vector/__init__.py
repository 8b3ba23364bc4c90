"""Vector index backends (pgvector, Qdrant) behind one interface."""

from contentvault.core.config import settings
from contentvault.db.session import Database
from contentvault.services.vector.base import IndexedVector, VectorHit, VectorIndex, VectorPayload
from contentvault.services.vector.pgvector_index import PgVectorIndex
from contentvault.services.vector.qdrant_index import QdrantVectorIndex


def create_vector_index(database: Database, backend: str | None = None) -> VectorIndex:
    """Build the index selected by VECTOR_DB_TYPE."""
    backend = backend or settings.VECTOR_DB_TYPE
    if backend == "pgvector":
        return PgVectorIndex(database)
    if backend == "qdrant":
        return QdrantVectorIndex()
    raise ValueError(f"Unknown vector backend: {backend}")


__all__ = [
    "IndexedVector",
    "PgVectorIndex",
    "QdrantVectorIndex",
    "VectorHit",
    "VectorIndex",
    "VectorPayload",
    "create_vector_index",
]
