"""
Embedding worker and in-process worker pool.

EmbeddingWorker does the per-job work:

    snapshot -> combined text -> embedding (document mode) -> index upsert

EmbeddingWorkerPool runs workers over an asyncio.Queue with a fixed number
of consumers (the concurrency bound), a shared TokenBucket (the throughput
bound) and a RetryPolicy. The Celery worker gets the same bounds from
worker_concurrency and the task rate_limit; this pool is the in-process
equivalent used in development, sync mode and tests.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple

from contentvault.core.config import settings
from contentvault.core.exceptions import InvalidInput
from contentvault.core.logging import get_logger
from contentvault.services.oracle import Oracle
from contentvault.services.pipeline.failed_jobs import FailedJobStore
from contentvault.services.pipeline.jobs import EmbeddingJob, JobStatus, RetryPolicy
from contentvault.services.vector.base import VectorIndex, VectorPayload

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class EmbeddingWorker:
    """Processes one job. Idempotent: replaying a job rewrites the same vector."""

    def __init__(self, oracle: Oracle, index: VectorIndex):
        self.oracle = oracle
        self.index = index

    async def process(self, job: EmbeddingJob) -> bool:
        """
        Returns:
            True if the vector was written, False if the index already held
            a newer version

        Raises:
            InvalidInput: If the snapshot has no text to embed
            OracleFailure / IndexFailure: Retryable failures
        """
        text = job.combined_text()
        if not text:
            raise InvalidInput(f"Content {job.content_id} has no text to embed")

        vector = await self.oracle.embed(text, mode="document")
        applied = await self.index.upsert(
            job.content_id,
            vector,
            VectorPayload(
                title=job.title,
                type=job.type,
                labels=job.labels,
                combined_text=text,
            ),
            version=job.version,
        )

        logger.info(
            "embedding_job_processed",
            job_id=job.job_id,
            content_id=job.content_id,
            applied=applied,
            chars=len(text),
        )
        return applied


class TokenBucket:
    """
    Async token bucket: `rate` tokens per second, at most `capacity` banked.

    The default capacity of 1 spaces acquisitions evenly (1/rate apart)
    instead of allowing an initial burst.
    """

    def __init__(
        self,
        rate: float,
        capacity: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity
        self._last = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.capacity, self._tokens + (now - self._last) * self.rate)
        self._last = now

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                self._refill()
                # Tolerate float drift from the clock arithmetic
                if self._tokens >= 1 - 1e-9:
                    self._tokens -= 1
                    return
                await self._sleep((1 - self._tokens) / self.rate)


class EmbeddingWorkerPool:
    """
    Bounded, rate-limited, retrying consumer pool.

    Usage:
    ------
    pool = EmbeddingWorkerPool(worker, failed_jobs)
    await pool.start()
    await pool.submit(job)
    await pool.join()      # wait until the queue and pending retries drain
    await pool.stop()
    """

    def __init__(
        self,
        worker: EmbeddingWorker,
        failed_jobs: FailedJobStore,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: Optional[int] = None,
        rate_limiter: Optional[TokenBucket] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.worker = worker
        self.failed_jobs = failed_jobs
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = concurrency or settings.EMBEDDING_WORKER_CONCURRENCY
        self.rate_limiter = rate_limiter
        self._sleep = sleep

        self._queue: Optional[asyncio.Queue[Tuple[EmbeddingJob, int]]] = None
        self._consumers: list[asyncio.Task] = []
        self._retries: Set[asyncio.Task] = set()
        self._in_flight: Dict[str, JobStatus] = {}
        self.stats = {"completed": 0, "retried": 0, "exhausted": 0}

    @property
    def is_running(self) -> bool:
        return bool(self._consumers)

    def status(self, job_id: str) -> Optional[JobStatus]:
        """Status of a job that has not reached a terminal state yet."""
        return self._in_flight.get(job_id)

    async def start(self) -> None:
        if self._consumers:
            return
        self._queue = asyncio.Queue()
        self._consumers = [
            asyncio.create_task(self._consume(i), name=f"embedding-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(
            "embedding_pool_started",
            concurrency=self.concurrency,
            rate_limit=self.rate_limiter.rate if self.rate_limiter else None,
            retry_policy=repr(self.retry_policy),
        )

    async def stop(self) -> None:
        """Cancel consumers and pending retries. In-flight jobs are abandoned."""
        tasks = [*self._consumers, *self._retries]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumers = []
        self._retries.clear()
        if self._in_flight:
            logger.warning("embedding_pool_stopped_with_pending_jobs", pending=len(self._in_flight))
        logger.info("embedding_pool_stopped", **self.stats)

    async def submit(self, job: EmbeddingJob) -> None:
        if self._queue is None:
            raise RuntimeError("Worker pool not started. Call start() first.")
        self._in_flight[job.job_id] = JobStatus.QUEUED
        self._queue.put_nowait((job, 1))

    async def join(self) -> None:
        if self._queue is None:
            return
        while True:
            await self._queue.join()
            pending = [task for task in self._retries if not task.done()]
            if not pending:
                if self._queue.empty():
                    return
                continue
            await asyncio.gather(*pending, return_exceptions=True)

    async def _consume(self, index: int) -> None:
        while True:
            job, attempt = await self._queue.get()
            try:
                await self._run(job, attempt)
            finally:
                self._queue.task_done()

    async def _run(self, job: EmbeddingJob, attempt: int) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        self._in_flight[job.job_id] = JobStatus.ACTIVE
        try:
            await self.worker.process(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._handle_failure(job, attempt, e)
        else:
            self._in_flight.pop(job.job_id, None)
            self.stats["completed"] += 1

    async def _handle_failure(self, job: EmbeddingJob, attempt: int, error: Exception) -> None:
        retryable = not isinstance(error, InvalidInput)
        if retryable and self.retry_policy.should_retry(attempt):
            delay = self.retry_policy.delay_for(attempt)
            logger.warning(
                "embedding_job_retrying",
                job_id=job.job_id,
                content_id=job.content_id,
                attempt=attempt,
                delay=delay,
                error=str(error),
                error_type=type(error).__name__,
            )
            self._in_flight[job.job_id] = JobStatus.RETRYING
            self.stats["retried"] += 1
            task = asyncio.create_task(self._retry_later(job, attempt + 1, delay))
            self._retries.add(task)
            task.add_done_callback(self._retries.discard)
            return

        self._in_flight.pop(job.job_id, None)
        self.stats["exhausted"] += 1
        try:
            await self.failed_jobs.record(job, attempt, error)
        except Exception:
            # Consumers must survive a failed-job store outage
            logger.exception("failed_job_record_error", job_id=job.job_id, content_id=job.content_id)

    async def _retry_later(self, job: EmbeddingJob, attempt: int, delay: float) -> None:
        await self._sleep(delay)
        self._queue.put_nowait((job, attempt))
