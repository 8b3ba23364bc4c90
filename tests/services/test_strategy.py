"""
Tests for the sync and queued embedding strategies.
"""

from unittest.mock import AsyncMock

from redis.exceptions import RedisError

from contentvault.schemas.content import ContentCreate
from contentvault.services.pipeline import (
    EmbeddingJob,
    EmbeddingQueue,
    QueuedEmbeddingStrategy,
    SyncEmbeddingStrategy,
)


class TestSyncStrategy:

    async def test_embeds_before_returning(self, worker, index, failed_jobs, retry_policy, fake_sleep, sample_job):
        strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)

        await strategy.submit(sample_job)

        assert await index.get(sample_job.content_id) is not None
        assert fake_sleep.delays == []

    async def test_retries_then_succeeds(self, worker, oracle, index, failed_jobs, retry_policy, fake_sleep, sample_job):
        oracle.embed_failures = 1
        strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)

        await strategy.submit(sample_job)

        assert fake_sleep.delays == [2.0]
        assert await index.get(sample_job.content_id) is not None
        assert await failed_jobs.count() == 0

    async def test_exhaustion_is_recorded_not_raised(self, worker, oracle, failed_jobs, retry_policy, fake_sleep, sample_job):
        oracle.embed_failures = 99
        strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)

        await strategy.submit(sample_job)

        failed = await failed_jobs.get(sample_job.job_id)
        assert failed.attempts == 3
        assert len(oracle.embed_calls) == 3

    async def test_empty_job_is_recorded_once(self, worker, failed_jobs, retry_policy, fake_sleep):
        strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)
        job = EmbeddingJob(content_id=5)

        await strategy.submit(job)

        assert (await failed_jobs.get(job.job_id)).attempts == 1
        assert fake_sleep.delays == []


class TestQueuedStrategy:

    async def test_hands_job_to_queue(self, failed_jobs, sample_job):
        queue = AsyncMock(spec=EmbeddingQueue)
        strategy = QueuedEmbeddingStrategy(queue, failed_jobs)

        await strategy.submit(sample_job)

        queue.enqueue.assert_awaited_once_with(sample_job)
        assert await failed_jobs.count() == 0

    async def test_enqueue_failure_parks_job(self, failed_jobs, sample_job):
        queue = AsyncMock(spec=EmbeddingQueue)
        queue.enqueue.side_effect = ConnectionError("broker down")
        strategy = QueuedEmbeddingStrategy(queue, failed_jobs)

        await strategy.submit(sample_job)

        failed = await failed_jobs.get(sample_job.job_id)
        assert failed.attempts == 0
        assert failed.error_type == "ConnectionError"

    async def test_queued_submit_does_not_wait_for_embedding(self, queued_pipeline, worker_pool, oracle, sample_job):
        oracle.embed_failures = 99

        await queued_pipeline.strategy.submit(sample_job)

        # Returns before the worker has had a chance to run
        assert oracle.embed_calls == []


class TestFailedJobStoreOutage:

    async def test_sync_strategy_survives_outage(self, worker, oracle, failed_jobs, retry_policy, fake_sleep, sample_job):
        oracle.embed_failures = 99
        failed_jobs.save = AsyncMock(side_effect=RedisError("connection refused"))
        strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)

        await strategy.submit(sample_job)

        failed_jobs.save.assert_awaited_once()

    async def test_queued_strategy_survives_outage(self, failed_jobs, sample_job):
        queue = AsyncMock(spec=EmbeddingQueue)
        queue.enqueue.side_effect = ConnectionError("broker down")
        failed_jobs.save = AsyncMock(side_effect=RedisError("connection refused"))
        strategy = QueuedEmbeddingStrategy(queue, failed_jobs)

        await strategy.submit(sample_job)

        failed_jobs.save.assert_awaited_once()

    async def test_create_returns_record_despite_outage(self, queued_pipeline, failed_jobs, store):
        queued_pipeline.strategy.queue = AsyncMock(spec=EmbeddingQueue)
        queued_pipeline.strategy.queue.enqueue.side_effect = ConnectionError("broker down")
        failed_jobs.save = AsyncMock(side_effect=RedisError("connection refused"))

        record = await queued_pipeline.create(ContentCreate(content="Buy milk"))

        assert await store.get_by_id(record.id) == record
