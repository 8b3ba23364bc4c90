"""Embedding pipeline: combiner, jobs, workers, queues and the content write path."""

from contentvault.services.pipeline.combiner import combine_content_for_embedding
from contentvault.services.pipeline.content_pipeline import ContentPipeline
from contentvault.services.pipeline.failed_jobs import FailedJobStore, RedisFailedJobStore
from contentvault.services.pipeline.jobs import EmbeddingJob, FailedJob, JobStatus, RetryPolicy
from contentvault.services.pipeline.queue import (
    CeleryEmbeddingQueue,
    EmbeddingQueue,
    InProcessEmbeddingQueue,
)
from contentvault.services.pipeline.strategy import (
    EmbeddingStrategy,
    QueuedEmbeddingStrategy,
    SyncEmbeddingStrategy,
)
from contentvault.services.pipeline.worker import EmbeddingWorker, EmbeddingWorkerPool, TokenBucket

__all__ = [
    "CeleryEmbeddingQueue",
    "ContentPipeline",
    "EmbeddingJob",
    "EmbeddingQueue",
    "EmbeddingStrategy",
    "EmbeddingWorker",
    "EmbeddingWorkerPool",
    "FailedJob",
    "FailedJobStore",
    "InProcessEmbeddingQueue",
    "JobStatus",
    "QueuedEmbeddingStrategy",
    "RedisFailedJobStore",
    "RetryPolicy",
    "SyncEmbeddingStrategy",
    "TokenBucket",
    "combine_content_for_embedding",
]
