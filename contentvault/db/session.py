"""
Database Session Management

Owns the async engine and session factory for the primary store.

Architecture Flow:
------------------
Startup  → Database.connect() → engine + connection pool ready
Request  → database.session() → queries → commit/rollback → close
Shutdown → Database.close() → engine disposed, connections closed

Nothing is created at import time: the service container constructs one
Database, opens it on startup and closes it on shutdown, so tests can run
without a live PostgreSQL server.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from contentvault.core.config import settings
from contentvault.core.logging import get_logger

logger = get_logger(__name__)


def get_engine_config() -> dict[str, Any]:
    """
    Configure the database engine based on environment.

    - development / production: AsyncAdaptedQueuePool sized from settings
    - anything else (staging, test): NullPool, one connection per checkout
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        # Test connection health before using (detect dead connections)
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {
                "application_name": settings.APP_NAME,
            }
        },
    }

    if settings.is_development or settings.is_production:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": 7200 if settings.is_production else 3600,
            "pool_timeout": 30,
        })
    else:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )
        config["poolclass"] = NullPool

    return config


class Database:
    """
    Engine + session factory with an explicit lifecycle.

    Usage:
    ------
    database = Database(settings.DATABASE_URL)
    await database.connect()

    async with database.session() as session:
        ...

    await database.close()
    """

    def __init__(self, url: Optional[str] = None, create_tables: Optional[bool] = None):
        self.url = url or settings.DATABASE_URL
        self.create_tables = settings.DB_CREATE_TABLES if create_tables is None else create_tables
        self.engine: Optional[AsyncEngine] = None
        self.sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    async def connect(self) -> None:
        """
        Create the engine, verify connectivity and (optionally) create tables.

        Raises:
            Exception: if the database cannot be reached
        """
        if self.engine is not None:
            return

        self.engine = create_async_engine(self.url, **get_engine_config())
        self.sessionmaker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.create_tables:
                    # Import models so they are registered on the metadata
                    from contentvault.db.base import Base
                    import contentvault.models  # noqa: F401

                    await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                    await conn.run_sync(Base.metadata.create_all)
                    logger.info("database_tables_created")
        except Exception as e:
            logger.error(
                "database_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            await self.close()
            raise

        logger.info("database_connection_successful")

    async def close(self) -> None:
        """Dispose of the engine, closing every pooled connection."""
        if self.engine is None:
            return

        logger.info("closing_database_connections")
        try:
            await self.engine.dispose()
        except Exception as e:
            # Shutting down anyway
            logger.error(
                "database_closure_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self.engine = None
            self.sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session, rolling back if the block raises.

        Callers commit explicitly.
        """
        if self.sessionmaker is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self.sessionmaker() as session:
            try:
                yield session
            except Exception as e:
                logger.error(
                    "database_session_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await session.rollback()
                raise

    async def health_check(self) -> bool:
        """Return True if a trivial query succeeds."""
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(
                "database_health_check_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
