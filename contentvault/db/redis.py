"""
Redis connection management.

Redis backs:
- the Celery broker/result backend (configured separately in celery_app)
- the failed-job store (exhausted embedding jobs)
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from contentvault.core.config import settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """
    Async Redis client with an explicit open/close lifecycle.

    Usage:
    ------
    redis_conn = RedisConnection(settings.REDIS_URL)
    client = await redis_conn.connect()
    ...
    await redis_conn.close()
    """

    def __init__(self, url: Optional[str] = None, max_connections: int = 20):
        self.url = url or settings.REDIS_URL
        self.max_connections = max_connections
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    async def connect(self) -> Redis:
        """Create the pool and verify the server answers PING."""
        if self._client is not None:
            return self._client

        logger.info("Initializing Redis connection pool")
        self._pool = ConnectionPool.from_url(
            self.url,
            decode_responses=True,
            max_connections=self.max_connections,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        self._client = Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
            logger.info("Redis connection successful")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            await self.close()
            raise

        return self._client

    async def close(self) -> None:
        if self._client is not None:
            logger.info("Closing Redis connection")
            await self._client.aclose()
            self._client = None

        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False
