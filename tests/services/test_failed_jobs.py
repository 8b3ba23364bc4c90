"""
Tests for the Redis-backed failed-job store.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from contentvault.core.exceptions import ContentVaultError, OracleFailure
from contentvault.services.pipeline import EmbeddingJob, RedisFailedJobStore


class HashOnlyRedis:
    """Just enough of redis.asyncio.Redis for a single hash."""

    def __init__(self):
        self.hashes = {}

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def hvals(self, key):
        return list(self.hashes.get(key, {}).values())

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hdel(self, key, field):
        return 1 if self.hashes.get(key, {}).pop(field, None) is not None else 0

    async def hlen(self, key):
        return len(self.hashes.get(key, {}))


@pytest.fixture
def redis_client() -> HashOnlyRedis:
    return HashOnlyRedis()


@pytest.fixture
def failed_store(redis_client) -> RedisFailedJobStore:
    return RedisFailedJobStore(redis_client, key_prefix="test")


async def test_record_keeps_job_and_error(failed_store, redis_client, sample_job):
    failed = await failed_store.record(sample_job, 3, OracleFailure("timeout"))

    assert failed.attempts == 3
    assert failed.error == "timeout"
    assert failed.error_type == "OracleFailure"
    assert list(redis_client.hashes) == ["test:failed"]

    stored = await failed_store.get(sample_job.job_id)
    assert stored == failed
    assert stored.job.version == sample_job.version


async def test_list_is_most_recent_first(failed_store):
    first = await failed_store.record(EmbeddingJob(content_id=1, content="a"), 3, OracleFailure("x"))
    second = await failed_store.record(EmbeddingJob(content_id=2, content="b"), 3, OracleFailure("y"))
    # Force distinct timestamps regardless of clock resolution
    await failed_store.save(second.model_copy(update={"failed_at": first.failed_at + timedelta(seconds=1)}))

    listed = await failed_store.list_failed()

    assert [f.job.content_id for f in listed] == [2, 1]
    assert [f.job.content_id for f in await failed_store.list_failed(limit=1)] == [2]


async def test_remove_and_count(failed_store, sample_job):
    await failed_store.record(sample_job, 1, OracleFailure("x"))
    assert await failed_store.count() == 1

    assert await failed_store.remove(sample_job.job_id) is True
    assert await failed_store.remove(sample_job.job_id) is False
    assert await failed_store.count() == 0
    assert await failed_store.get(sample_job.job_id) is None


async def test_save_failure_is_raised(sample_job):
    client = AsyncMock()
    client.hset.side_effect = RedisConnectionError("refused")
    store = RedisFailedJobStore(client, key_prefix="test")

    with pytest.raises(RedisConnectionError):
        await store.record(sample_job, 3, OracleFailure("x"))


async def test_list_failure_is_wrapped():
    client = AsyncMock()
    client.hvals.side_effect = RedisConnectionError("refused")
    store = RedisFailedJobStore(client, key_prefix="test")

    with pytest.raises(ContentVaultError):
        await store.list_failed()
