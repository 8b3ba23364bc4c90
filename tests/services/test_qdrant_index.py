"""
Tests for the Qdrant vector index, run against qdrant-client's local
in-memory mode.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from qdrant_client import AsyncQdrantClient

from contentvault.core.exceptions import IndexFailure
from contentvault.schemas.content import SearchFilters
from contentvault.services.vector import QdrantVectorIndex, VectorPayload, create_vector_index
from contentvault.services.vector.qdrant_index import build_filter
from tests.fakes import unit_vector_with_similarity

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
async def qdrant_index():
    index = QdrantVectorIndex(client=AsyncQdrantClient(location=":memory:"), collection_name="test_content")
    await index.ensure_collection(2)
    yield index
    await index.close()


async def add(index, content_id, similarity, kind="note", labels=None, version=T0):
    return await index.upsert(
        content_id,
        unit_vector_with_similarity(similarity),
        VectorPayload(title=f"item {content_id}", type=kind, labels=labels or []),
        version=version,
    )


class TestQdrantIndex:

    async def test_ensure_collection_is_idempotent(self, qdrant_index):
        await qdrant_index.ensure_collection(2)

        assert await qdrant_index.count() == 0

    async def test_dimension_mismatch_is_rejected(self, qdrant_index):
        with pytest.raises(IndexFailure):
            await qdrant_index.ensure_collection(3)

    async def test_search_ranks_and_thresholds(self, qdrant_index):
        await add(qdrant_index, 1, 0.3)
        await add(qdrant_index, 2, 0.9)
        await add(qdrant_index, 3, 0.7)

        hits = await qdrant_index.search([1.0, 0.0], limit=10, score_threshold=0.5)

        assert [h.content_id for h in hits] == [2, 3]
        assert [h.score for h in hits] == pytest.approx([0.9, 0.7], abs=1e-5)

    async def test_search_respects_limit(self, qdrant_index):
        for content_id, similarity in [(1, 0.95), (2, 0.9), (3, 0.85)]:
            await add(qdrant_index, content_id, similarity)

        hits = await qdrant_index.search([1.0, 0.0], limit=2, score_threshold=0.0)

        assert [h.content_id for h in hits] == [1, 2]

    async def test_search_filters(self, qdrant_index):
        await add(qdrant_index, 1, 0.9, kind="recipe", labels=["bread"])
        await add(qdrant_index, 2, 0.8, kind="note", labels=["bread", "rye"])
        await add(qdrant_index, 3, 0.7, kind="note", labels=["cycling"])

        by_type = await qdrant_index.search([1.0, 0.0], score_threshold=0.0, filters=SearchFilters(type="note"))
        by_labels = await qdrant_index.search(
            [1.0, 0.0], score_threshold=0.0, filters=SearchFilters(labels=["rye", "cycling"])
        )
        both = await qdrant_index.search(
            [1.0, 0.0], score_threshold=0.0, filters=SearchFilters(type="note", labels=["bread"])
        )

        assert [h.content_id for h in by_type] == [2, 3]
        assert [h.content_id for h in by_labels] == [2, 3]
        assert [h.content_id for h in both] == [2]

    async def test_upsert_replaces_single_entry(self, qdrant_index):
        await add(qdrant_index, 7, 0.5)
        await qdrant_index.upsert(
            7, [1.0, 0.0], VectorPayload(title="updated", type="note"), version=T0 + timedelta(seconds=1)
        )

        assert await qdrant_index.count() == 1
        entry = await qdrant_index.get(7)
        assert entry.payload.title == "updated"
        assert entry.source_updated_at == T0 + timedelta(seconds=1)

    async def test_stale_version_is_skipped(self, qdrant_index):
        await add(qdrant_index, 7, 0.5, version=T0 + timedelta(seconds=5))

        applied = await qdrant_index.upsert(7, [1.0, 0.0], VectorPayload(title="old"), version=T0)

        assert applied is False
        assert (await qdrant_index.get(7)).payload.title == "item 7"

    async def test_equal_version_replays(self, qdrant_index):
        await add(qdrant_index, 7, 0.5)

        assert await add(qdrant_index, 7, 0.5) is True
        assert await qdrant_index.count() == 1

    async def test_delete_and_list(self, qdrant_index):
        for content_id in (3, 1, 2):
            await add(qdrant_index, content_id, 0.5)

        await qdrant_index.delete(2)
        await qdrant_index.delete(99)

        assert await qdrant_index.list_ids() == [1, 3]
        assert await qdrant_index.get(2) is None

        await qdrant_index.delete_many([1, 3])
        assert await qdrant_index.count() == 0

    async def test_health_check(self, qdrant_index):
        assert await qdrant_index.health_check() is True

    async def test_client_errors_become_index_failure(self):
        client = AsyncMock()
        client.query_points.side_effect = ConnectionError("refused")
        client.get_collections.side_effect = ConnectionError("refused")
        index = QdrantVectorIndex(client=client, collection_name="broken")

        with pytest.raises(IndexFailure):
            await index.search([1.0, 0.0])
        assert await index.health_check() is False


class TestBuildFilter:

    def test_none_and_empty(self):
        assert build_filter(None) is None
        assert build_filter(SearchFilters()) is None

    def test_type_and_labels(self):
        query_filter = build_filter(SearchFilters(type="note", labels=["a", "b"]))

        assert [c.key for c in query_filter.must] == ["type", "labels"]
        assert query_filter.must[1].match.any == ["a", "b"]


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        create_vector_index(database=None, backend="faiss")
