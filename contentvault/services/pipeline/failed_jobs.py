"""
Failed-job store.

Jobs that exhaust their retries are recorded here instead of being
dropped, so operators can inspect them and the maintenance task can
re-enqueue them. Backed by a single Redis hash: job_id -> FailedJob JSON.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from contentvault.core.config import settings
from contentvault.core.exceptions import ContentVaultError
from contentvault.db.base import utcnow
from contentvault.services.pipeline.jobs import EmbeddingJob, FailedJob

logger = logging.getLogger(__name__)


class FailedJobStore(ABC):

    async def record(self, job: EmbeddingJob, attempts: int, error: BaseException) -> FailedJob:
        failed = FailedJob(
            job=job,
            attempts=attempts,
            error=str(error),
            error_type=type(error).__name__,
            failed_at=utcnow(),
        )
        await self.save(failed)
        logger.error(
            f"Embedding job {job.job_id} for content {job.content_id} exhausted "
            f"after {attempts} attempts: {failed.error_type}: {failed.error}"
        )
        return failed

    @abstractmethod
    async def save(self, failed: FailedJob) -> None:
        ...

    @abstractmethod
    async def list_failed(self, limit: Optional[int] = None) -> List[FailedJob]:
        """Most recent failures first."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[FailedJob]:
        ...

    @abstractmethod
    async def remove(self, job_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class RedisFailedJobStore(FailedJobStore):
    """
    Usage:
        store = RedisFailedJobStore(redis_conn.client)
        await store.record(job, attempts=3, error=exc)
        for failed in await store.list_failed(limit=20):
            ...
    """

    def __init__(self, client: Redis, key_prefix: Optional[str] = None):
        self.client = client
        self.key = f"{key_prefix or settings.FAILED_JOB_KEY_PREFIX}:failed"

    async def save(self, failed: FailedJob) -> None:
        try:
            await self.client.hset(self.key, failed.job.job_id, failed.model_dump_json())
        except RedisError as e:
            # Nowhere else to put it; make sure it at least reaches the logs
            logger.error(f"Could not record failed job {failed.job.job_id}: {e}. Payload: {failed.model_dump_json()}")
            raise

    async def list_failed(self, limit: Optional[int] = None) -> List[FailedJob]:
        try:
            raw = await self.client.hvals(self.key)
        except RedisError as e:
            raise ContentVaultError(f"Could not read failed jobs: {e}") from e

        jobs = [FailedJob.model_validate_json(item) for item in raw]
        jobs.sort(key=lambda f: f.failed_at, reverse=True)
        return jobs[:limit] if limit is not None else jobs

    async def get(self, job_id: str) -> Optional[FailedJob]:
        raw = await self.client.hget(self.key, job_id)
        return FailedJob.model_validate_json(raw) if raw else None

    async def remove(self, job_id: str) -> bool:
        return bool(await self.client.hdel(self.key, job_id))

    async def count(self) -> int:
        return int(await self.client.hlen(self.key))
