"""
Service container.

Builds every long-lived collaborator once, opens them on startup and closes
them on shutdown. The FastAPI lifespan and the Celery worker process each
own one container; nothing is created at import time.

Startup order:
--------------
database -> redis -> oracle (loads the embedding model) -> vector index
-> failed-job store -> worker -> embedding strategy (+ queue) -> pipeline
-> search engine
"""

from typing import Optional

from contentvault.core.config import Settings, settings as default_settings
from contentvault.core.logging import get_logger, setup_logging
from contentvault.db.redis import RedisConnection
from contentvault.db.session import Database
from contentvault.services.oracle import AnswerGenerator, ContentAnalyzer, EmbeddingService, Oracle
from contentvault.services.pipeline import (
    CeleryEmbeddingQueue,
    ContentPipeline,
    EmbeddingQueue,
    EmbeddingStrategy,
    EmbeddingWorker,
    EmbeddingWorkerPool,
    InProcessEmbeddingQueue,
    QueuedEmbeddingStrategy,
    RedisFailedJobStore,
    RetryPolicy,
    SyncEmbeddingStrategy,
    TokenBucket,
)
from contentvault.services.rag import SearchEngine
from contentvault.services.store import ContentStore
from contentvault.services.vector import VectorIndex, create_vector_index

logger = get_logger(__name__)


class ServiceContainer:
    """
    Usage:
    ------
    container = ServiceContainer()
    await container.startup()
    record = await container.pipeline.create(ContentCreate(content="..."))
    await container.shutdown()
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        embedding_mode: Optional[str] = None,
        queue_backend: Optional[str] = None,
    ):
        self.config = config or default_settings
        self.embedding_mode = embedding_mode or self.config.EMBEDDING_MODE
        self.queue_backend = queue_backend or self.config.EMBEDDING_QUEUE_BACKEND

        self.database: Optional[Database] = None
        self.redis: Optional[RedisConnection] = None
        self.store: Optional[ContentStore] = None
        self.oracle: Optional[Oracle] = None
        self.index: Optional[VectorIndex] = None
        self.failed_jobs: Optional[RedisFailedJobStore] = None
        self.retry_policy: Optional[RetryPolicy] = None
        self.worker: Optional[EmbeddingWorker] = None
        self.queue: Optional[EmbeddingQueue] = None
        self.strategy: Optional[EmbeddingStrategy] = None
        self.pipeline: Optional[ContentPipeline] = None
        self.search_engine: Optional[SearchEngine] = None
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    async def startup(self) -> None:
        if self._started:
            return

        setup_logging(self.config.LOG_LEVEL, self.config.LOG_FORMAT)
        logger.info(
            "container_starting",
            environment=self.config.APP_ENV,
            vector_db=self.config.VECTOR_DB_TYPE,
            embedding_mode=self.embedding_mode,
            queue_backend=self.queue_backend,
        )

        try:
            self.database = Database(self.config.DATABASE_URL)
            await self.database.connect()

            self.redis = RedisConnection(self.config.REDIS_URL)
            await self.redis.connect()

            self.store = ContentStore(self.database)

            self.oracle = Oracle(
                analyzer=ContentAnalyzer(),
                embedder=EmbeddingService(),
                generator=AnswerGenerator(),
            )
            await self.oracle.initialize()

            self.index = create_vector_index(self.database, self.config.VECTOR_DB_TYPE)
            await self.index.ensure_collection(self.oracle.embedder.get_embedding_dimension())

            self.failed_jobs = RedisFailedJobStore(self.redis.client, self.config.FAILED_JOB_KEY_PREFIX)
            self.retry_policy = RetryPolicy(
                max_attempts=self.config.EMBEDDING_MAX_ATTEMPTS,
                base_delay=self.config.EMBEDDING_RETRY_BASE_DELAY_SECONDS,
                factor=self.config.EMBEDDING_RETRY_BACKOFF_FACTOR,
            )
            self.worker = EmbeddingWorker(self.oracle, self.index)
            self.strategy = await self._build_strategy()

            self.pipeline = ContentPipeline(self.store, self.oracle, self.index, self.strategy)
            self.search_engine = SearchEngine(
                self.oracle,
                self.store,
                self.index,
                default_limit=self.config.SEARCH_DEFAULT_LIMIT,
                default_threshold=self.config.SEARCH_DEFAULT_THRESHOLD,
            )
        except Exception as e:
            logger.error("container_startup_failed", error=str(e), error_type=type(e).__name__)
            await self.shutdown()
            raise

        self._started = True
        logger.info("container_started")

    async def _build_strategy(self) -> EmbeddingStrategy:
        if self.embedding_mode == "sync":
            return SyncEmbeddingStrategy(self.worker, self.failed_jobs, self.retry_policy)

        if self.queue_backend == "memory":
            pool = EmbeddingWorkerPool(
                self.worker,
                self.failed_jobs,
                retry_policy=self.retry_policy,
                concurrency=self.config.EMBEDDING_WORKER_CONCURRENCY,
                rate_limiter=TokenBucket(self.config.EMBEDDING_RATE_LIMIT_PER_SECOND),
            )
            self.queue = InProcessEmbeddingQueue(pool)
        else:
            self.queue = CeleryEmbeddingQueue()

        await self.queue.start()
        return QueuedEmbeddingStrategy(self.queue, self.failed_jobs)

    async def shutdown(self) -> None:
        """Close everything that was opened, in reverse order."""
        logger.info("container_shutting_down")

        if self.queue is not None:
            await self.queue.stop()
            self.queue = None
        if self.index is not None:
            await self.index.close()
        if self.oracle is not None:
            await self.oracle.shutdown()
        if self.redis is not None:
            await self.redis.close()
        if self.database is not None:
            await self.database.close()

        self._started = False
        logger.info("container_shutdown_complete")

    async def health(self) -> dict:
        return {
            "database": await self.database.health_check() if self.database else False,
            "redis": await self.redis.health_check() if self.redis else False,
            "vector_index": await self.index.health_check() if self.index else False,
            "embedding_model": bool(self.oracle and self.oracle.embedder.is_initialized),
        }
