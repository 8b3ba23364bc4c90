"""
Pytest configuration and fixtures.

Unit tests run against the in-memory doubles in tests/fakes.py. Tests
marked `integration` need a PostgreSQL server with pgvector (DATABASE_URL)
and only run with --run-integration.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/tutorial/testing/
"""

import pytest

from contentvault.schemas.content import ContentRecord
from contentvault.services.pipeline import (
    ContentPipeline,
    EmbeddingJob,
    EmbeddingWorker,
    EmbeddingWorkerPool,
    InProcessEmbeddingQueue,
    QueuedEmbeddingStrategy,
    RetryPolicy,
    SyncEmbeddingStrategy,
)
from contentvault.services.rag import SearchEngine
from tests.fakes import (
    FakeOracle,
    InMemoryContentStore,
    InMemoryFailedJobStore,
    InMemoryVectorIndex,
    RecordingSleep,
)


# ================================
# Pytest Configuration
# ================================

def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="run tests that need PostgreSQL/pgvector",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs a live PostgreSQL with pgvector")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ================================
# Collaborator Fixtures
# ================================

@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def failed_jobs() -> InMemoryFailedJobStore:
    return InMemoryFailedJobStore()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=2.0, factor=2.0)


@pytest.fixture
def worker(oracle, index) -> EmbeddingWorker:
    return EmbeddingWorker(oracle, index)


# ================================
# Pipeline Fixtures
# ================================

@pytest.fixture
async def worker_pool(worker, failed_jobs, retry_policy, fake_sleep):
    """In-process pool with no rate limit and instant backoff."""
    pool = EmbeddingWorkerPool(
        worker,
        failed_jobs,
        retry_policy=retry_policy,
        concurrency=5,
        sleep=fake_sleep,
    )
    await pool.start()
    yield pool
    await pool.stop()


@pytest.fixture
async def queue(worker_pool) -> InProcessEmbeddingQueue:
    return InProcessEmbeddingQueue(worker_pool)


@pytest.fixture
def queued_pipeline(store, oracle, index, queue, failed_jobs) -> ContentPipeline:
    return ContentPipeline(store, oracle, index, QueuedEmbeddingStrategy(queue, failed_jobs))


@pytest.fixture
def sync_pipeline(store, oracle, index, worker, failed_jobs, retry_policy, fake_sleep) -> ContentPipeline:
    strategy = SyncEmbeddingStrategy(worker, failed_jobs, retry_policy, sleep=fake_sleep)
    return ContentPipeline(store, oracle, index, strategy)


@pytest.fixture
def search_engine(oracle, store, index) -> SearchEngine:
    return SearchEngine(oracle, store, index, default_limit=10, default_threshold=0.5)


# ================================
# Data Fixtures
# ================================

@pytest.fixture
async def sample_record(store) -> ContentRecord:
    return await store.insert({
        "type": "recipe",
        "title": "Sourdough bread",
        "description": "Weekend sourdough loaf",
        "summary": "A sourdough recipe",
        "content": "Mix flour water salt and starter, fold, proof overnight, bake.",
        "metadata": {"tags": ["baking"], "difficulty": "medium"},
        "labels": ["cooking", "bread"],
    })


@pytest.fixture
def sample_job(sample_record) -> EmbeddingJob:
    return EmbeddingJob.from_record(sample_record)
