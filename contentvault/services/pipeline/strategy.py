"""
Embedding strategies.

The content pipeline hands every snapshot to one strategy, chosen by
EMBEDDING_MODE when the container is built:

- sync: embed inline before the write call returns (retries included)
- queued: enqueue and return immediately
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from contentvault.core.exceptions import InvalidInput
from contentvault.core.logging import get_logger
from contentvault.services.pipeline.failed_jobs import FailedJobStore
from contentvault.services.pipeline.jobs import EmbeddingJob, RetryPolicy
from contentvault.services.pipeline.queue import EmbeddingQueue
from contentvault.services.pipeline.worker import EmbeddingWorker, Sleep

logger = get_logger(__name__)


async def _park(failed_jobs: FailedJobStore, job: EmbeddingJob, attempts: int, error: Exception) -> None:
    """Record an exhausted job; a failed-job store outage only gets logged."""
    try:
        await failed_jobs.record(job, attempts, error)
    except Exception:
        logger.exception(
            "failed_job_record_error",
            job_id=job.job_id,
            content_id=job.content_id,
            payload=job.model_dump_json(),
        )


class EmbeddingStrategy(ABC):

    @abstractmethod
    async def submit(self, job: EmbeddingJob) -> None:
        """Never raises for embedding failures; those end up in the failed-job store."""


class SyncEmbeddingStrategy(EmbeddingStrategy):

    def __init__(
        self,
        worker: EmbeddingWorker,
        failed_jobs: FailedJobStore,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.worker = worker
        self.failed_jobs = failed_jobs
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def submit(self, job: EmbeddingJob) -> None:
        attempt = 1
        while True:
            try:
                await self.worker.process(job)
                return
            except Exception as e:
                if isinstance(e, InvalidInput) or not self.retry_policy.should_retry(attempt):
                    await _park(self.failed_jobs, job, attempt, e)
                    return
                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    "embedding_inline_retry",
                    content_id=job.content_id,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await self._sleep(delay)
                attempt += 1


class QueuedEmbeddingStrategy(EmbeddingStrategy):

    def __init__(self, queue: EmbeddingQueue, failed_jobs: FailedJobStore):
        self.queue = queue
        self.failed_jobs = failed_jobs

    async def submit(self, job: EmbeddingJob) -> None:
        try:
            await self.queue.enqueue(job)
        except Exception as e:
            # Broker unreachable: park the job so reprocessing can pick it up
            logger.error(
                "embedding_enqueue_failed",
                job_id=job.job_id,
                content_id=job.content_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await _park(self.failed_jobs, job, 0, e)
