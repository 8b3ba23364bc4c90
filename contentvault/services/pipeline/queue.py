"""
Embedding job queues.

- CeleryEmbeddingQueue: durable, Redis-brokered; jobs run in the Celery
  worker (contentvault.tasks.embedding_tasks).
- InProcessEmbeddingQueue: hands jobs to an EmbeddingWorkerPool running on
  the current event loop. Nothing survives a restart.

Delivery is at-least-once in both cases; the worker logic is idempotent.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from contentvault.services.pipeline.jobs import EmbeddingJob
from contentvault.services.pipeline.worker import EmbeddingWorkerPool

logger = logging.getLogger(__name__)


class EmbeddingQueue(ABC):

    @abstractmethod
    async def enqueue(self, job: EmbeddingJob) -> None:
        """Accept a job and return without waiting for it to run."""

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class InProcessEmbeddingQueue(EmbeddingQueue):

    def __init__(self, pool: EmbeddingWorkerPool):
        self.pool = pool

    async def start(self) -> None:
        await self.pool.start()

    async def stop(self) -> None:
        await self.pool.stop()

    async def enqueue(self, job: EmbeddingJob) -> None:
        await self.pool.submit(job)
        logger.debug(f"Queued embedding job {job.job_id} for content {job.content_id}")

    async def join(self) -> None:
        await self.pool.join()


class CeleryEmbeddingQueue(EmbeddingQueue):

    async def enqueue(self, job: EmbeddingJob) -> None:
        # Imported here: the task module builds its own container on import
        from contentvault.tasks.embedding_tasks import process_embedding_job

        # apply_async talks to the broker synchronously
        await asyncio.to_thread(
            process_embedding_job.apply_async,
            args=[job.model_dump(mode="json")],
            task_id=job.job_id,
        )
        logger.info(f"Queued embedding job {job.job_id} for content {job.content_id}")
