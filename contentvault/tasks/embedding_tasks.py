"""
Celery tasks for the embedding pipeline.

This module contains background tasks for:
- Processing embedding jobs (combine -> embed -> upsert) with backoff
- Re-enqueueing exhausted jobs from fresh record snapshots
- Removing vectors whose record no longer exists
- Pipeline statistics

Each worker process keeps one event loop and one ServiceContainer for its
whole life (opened on worker_process_init, closed on
worker_process_shutdown), so the embedding model is loaded once per
process rather than once per task.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from celery import Task
from celery.signals import worker_process_init, worker_process_shutdown

from contentvault.container import ServiceContainer
from contentvault.core.config import settings
from contentvault.core.exceptions import InvalidInput
from contentvault.services.pipeline.jobs import EmbeddingJob
from contentvault.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ========================================
# Worker Runtime
# ========================================

class WorkerRuntime:
    """A private event loop plus the container whose clients live on it."""

    def __init__(self, container: Optional[Any] = None):
        self.loop = asyncio.new_event_loop()
        self.container = container or ServiceContainer(embedding_mode="sync")
        self._owns_container = container is None

    def start(self) -> None:
        if self._owns_container and not self.container.is_started:
            self.run(self.container.startup())

    def run(self, coro):
        return self.loop.run_until_complete(coro)

    def close(self) -> None:
        try:
            if self._owns_container:
                self.run(self.container.shutdown())
        finally:
            self.loop.close()


_runtime: Optional[WorkerRuntime] = None


def get_runtime() -> WorkerRuntime:
    """Return the process-wide runtime, starting it on first use."""
    global _runtime
    if _runtime is None:
        runtime = WorkerRuntime()
        runtime.start()
        _runtime = runtime
    return _runtime


@worker_process_init.connect
def init_worker_runtime(**kwargs) -> None:
    get_runtime()


@worker_process_shutdown.connect
def close_worker_runtime(**kwargs) -> None:
    global _runtime
    if _runtime is not None:
        _runtime.close()
        _runtime = None


# ========================================
# Base Task Class
# ========================================

class EmbeddingTask(Task):
    """Retries are driven by RetryPolicy inside the task, not autoretry."""

    acks_late = True
    max_retries = settings.EMBEDDING_MAX_ATTEMPTS - 1


# ========================================
# Main Tasks
# ========================================

@celery_app.task(
    base=EmbeddingTask,
    name='embedding.process_job',
    bind=True,
    rate_limit=settings.celery_rate_limit,
)
def process_embedding_job(self, job_data: dict) -> dict:
    """
    Run one embedding job.

    Failures are retried with exponential backoff (RetryPolicy). When the
    last attempt fails the job is recorded in the failed-job store and the
    error is re-raised so Celery marks the task FAILURE.

    Args:
        job_data: EmbeddingJob snapshot (JSON-serialized)

    Returns:
        {'success': bool, 'content_id': int, 'applied': bool, 'attempt': int}
    """
    job = EmbeddingJob.model_validate(job_data)
    runtime = get_runtime()
    container = runtime.container
    policy = container.retry_policy
    attempt = self.request.retries + 1
    start_time = time.time()

    try:
        applied = runtime.run(container.worker.process(job))
    except InvalidInput as e:
        # Nothing to embed; retrying cannot help
        runtime.run(container.failed_jobs.record(job, attempt, e))
        return {
            'success': False,
            'content_id': job.content_id,
            'error': str(e),
            'attempt': attempt,
        }
    except Exception as e:
        if policy.should_retry(attempt):
            delay = policy.delay_for(attempt)
            logger.warning(
                f"Embedding job {job.job_id} for content {job.content_id} failed "
                f"(attempt {attempt}/{policy.max_attempts}), retrying in {delay}s: {e}"
            )
            raise self.retry(exc=e, countdown=delay, max_retries=policy.max_attempts - 1)

        runtime.run(container.failed_jobs.record(job, attempt, e))
        raise

    return {
        'success': True,
        'content_id': job.content_id,
        'applied': applied,
        'attempt': attempt,
        'processing_time_seconds': round(time.time() - start_time, 2),
    }


@celery_app.task(name='embedding.reprocess_failed_jobs', bind=True)
def reprocess_failed_jobs(self, limit: int = 50) -> dict:
    """
    Re-enqueue exhausted jobs from a fresh snapshot of their record.

    Jobs whose record has been deleted since are discarded.
    """
    runtime = get_runtime()
    container = runtime.container

    async def _reprocess() -> dict:
        failed = await container.failed_jobs.list_failed(limit=limit)
        requeued = 0
        discarded = 0

        for entry in failed:
            record = await container.store.get_by_id(entry.job.content_id)
            if record is None:
                discarded += 1
            else:
                fresh = EmbeddingJob.from_record(record)
                process_embedding_job.apply_async(
                    args=[fresh.model_dump(mode='json')],
                    task_id=fresh.job_id,
                )
                requeued += 1
            await container.failed_jobs.remove(entry.job.job_id)

        return {'success': True, 'requeued': requeued, 'discarded': discarded}

    result = runtime.run(_reprocess())
    logger.info(f"Reprocessed failed embedding jobs: {result}")
    return result


@celery_app.task(name='embedding.cleanup_orphaned_vectors', bind=True)
def cleanup_orphaned_vectors(self) -> dict:
    """
    Delete vectors whose content item no longer exists.

    Repairs failed delete propagation and jobs that upserted after the
    record was deleted.
    """
    runtime = get_runtime()
    container = runtime.container

    async def _cleanup() -> dict:
        vector_ids = await container.index.list_ids()
        if not vector_ids:
            return {'success': True, 'checked': 0, 'deleted': 0}

        existing = await container.store.existing_ids(vector_ids)
        orphaned = [content_id for content_id in vector_ids if content_id not in existing]
        if orphaned:
            await container.index.delete_many(orphaned)

        return {'success': True, 'checked': len(vector_ids), 'deleted': len(orphaned)}

    result = runtime.run(_cleanup())
    logger.info(f"Orphaned vector cleanup: {result}")
    return result


@celery_app.task(name='embedding.get_pipeline_stats')
def get_pipeline_stats() -> dict:
    """Record count, vector count and exhausted-job count."""
    runtime = get_runtime()
    container = runtime.container

    async def _get_stats() -> dict:
        records = await container.store.count()
        vectors = await container.index.count()
        exhausted = await container.failed_jobs.count()
        return {
            'content_items': records,
            'vectors': vectors,
            'missing_vectors': max(records - vectors, 0),
            'exhausted_jobs': exhausted,
        }

    stats = runtime.run(_get_stats())
    logger.info(f"Embedding pipeline stats: {stats}")
    return stats
