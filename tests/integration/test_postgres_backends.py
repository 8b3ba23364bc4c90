"""
Integration tests for the PostgreSQL content store and the pgvector index.

Requires a PostgreSQL server with the pgvector extension at DATABASE_URL.
Both tables are emptied before every test.
"""

import math

import pytest
from sqlalchemy import text

from contentvault.core.config import settings
from contentvault.core.exceptions import IndexFailure
from contentvault.db.session import Database
from contentvault.schemas.content import SearchFilters
from contentvault.services.store import ContentStore
from contentvault.services.vector import PgVectorIndex, VectorPayload

pytestmark = pytest.mark.integration

DIM = settings.EMBEDDING_DIMENSION


def vector_with_similarity(similarity: float) -> list[float]:
    """Unit vector whose cosine with the first axis is `similarity`."""
    return [similarity, math.sqrt(1.0 - similarity ** 2)] + [0.0] * (DIM - 2)


QUERY = [1.0] + [0.0] * (DIM - 1)


@pytest.fixture
async def database():
    database = Database(settings.DATABASE_URL, create_tables=True)
    await database.connect()
    async with database.session() as session:
        await session.execute(text("TRUNCATE content_items, content_embeddings RESTART IDENTITY"))
        await session.commit()
    yield database
    await database.close()


@pytest.fixture
def pg_store(database) -> ContentStore:
    return ContentStore(database)


@pytest.fixture
async def pg_index(database) -> PgVectorIndex:
    index = PgVectorIndex(database)
    await index.ensure_collection(DIM)
    return index


# ================================
# ContentStore
# ================================

class TestContentStore:

    async def test_insert_assigns_id_and_timestamps(self, pg_store):
        record = await pg_store.insert({
            "type": "recipe",
            "title": "Sourdough",
            "metadata": {"tags": ["baking"]},
            "labels": ["cooking"],
        })

        assert record.id == 1
        assert record.created_at is not None
        assert record.metadata == {"tags": ["baking"]}
        assert (await pg_store.get_by_id(record.id)) == record

    async def test_update_moves_updated_at_forward(self, pg_store):
        record = await pg_store.insert({"type": "note", "content": "v1"})

        updated = await pg_store.update(record.id, {"content": "v2", "labels": ["x"]})

        assert updated.content == "v2"
        assert updated.labels == ["x"]
        assert updated.updated_at > record.updated_at
        assert await pg_store.update(999, {"content": "x"}) is None

    async def test_get_many_batches_and_skips_missing(self, pg_store, monkeypatch):
        monkeypatch.setattr(ContentStore, "BATCH_SIZE", 2)
        ids = [(await pg_store.insert({"type": "note", "content": str(i)})).id for i in range(5)]

        records = await pg_store.get_many(ids + [999])

        assert sorted(r.id for r in records) == ids

    async def test_list_and_count_with_filters(self, pg_store):
        a = await pg_store.insert({"type": "note", "labels": ["x"]})
        b = await pg_store.insert({"type": "note", "labels": ["y"]})
        await pg_store.insert({"type": "link", "labels": ["x", "z"]})

        assert [r.id for r in await pg_store.list_filtered(type="note")] == [b.id, a.id]
        assert await pg_store.count(labels=["x"]) == 2
        assert await pg_store.count(type="note", labels=["y", "z"]) == 1

    async def test_delete_and_existing_ids(self, pg_store):
        a = await pg_store.insert({"type": "note"})
        b = await pg_store.insert({"type": "note"})

        assert await pg_store.delete(a.id) is True
        assert await pg_store.delete(a.id) is False
        assert await pg_store.existing_ids([a.id, b.id]) == {b.id}


# ================================
# PgVectorIndex
# ================================

class TestPgVectorIndex:

    async def test_search_ranks_and_thresholds(self, pg_index):
        for content_id, similarity in [(1, 0.3), (2, 0.9), (3, 0.7)]:
            await pg_index.upsert(content_id, vector_with_similarity(similarity), VectorPayload(type="note"))

        hits = await pg_index.search(QUERY, limit=10, score_threshold=0.5)

        assert [h.content_id for h in hits] == [2, 3]
        assert [h.score for h in hits] == pytest.approx([0.9, 0.7], abs=1e-4)

    async def test_filters(self, pg_index):
        await pg_index.upsert(1, vector_with_similarity(0.9), VectorPayload(type="recipe", labels=["bread"]))
        await pg_index.upsert(2, vector_with_similarity(0.8), VectorPayload(type="note", labels=["bread", "rye"]))

        hits = await pg_index.search(QUERY, score_threshold=0.0, filters=SearchFilters(labels=["rye"]))
        assert [h.content_id for h in hits] == [2]

        hits = await pg_index.search(QUERY, score_threshold=0.0, filters=SearchFilters(type="recipe"))
        assert [h.content_id for h in hits] == [1]

    async def test_version_guard(self, pg_store, pg_index):
        old = await pg_store.insert({"type": "note", "title": "old"})
        new = await pg_store.update(old.id, {"title": "new"})

        assert await pg_index.upsert(old.id, vector_with_similarity(0.5), VectorPayload(title="new"), version=new.updated_at)
        assert not await pg_index.upsert(old.id, vector_with_similarity(0.5), VectorPayload(title="old"), version=old.updated_at)
        assert await pg_index.upsert(old.id, vector_with_similarity(0.5), VectorPayload(title="new"), version=new.updated_at)

        entry = await pg_index.get(old.id)
        assert entry.payload.title == "new"
        assert entry.source_updated_at == new.updated_at
        assert await pg_index.count() == 1

    async def test_delete_and_list(self, pg_index):
        for content_id in (3, 1, 2):
            await pg_index.upsert(content_id, vector_with_similarity(0.5), VectorPayload())

        await pg_index.delete(2)
        await pg_index.delete(404)
        assert await pg_index.list_ids() == [1, 3]

        await pg_index.delete_many([1, 3])
        assert await pg_index.count() == 0

    async def test_dimension_mismatch_is_rejected(self, pg_index):
        with pytest.raises(IndexFailure):
            await pg_index.ensure_collection(DIM + 1)

    async def test_health_check(self, pg_index):
        assert await pg_index.health_check() is True
