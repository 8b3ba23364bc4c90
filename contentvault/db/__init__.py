"""
Database package.

- base: declarative base and shared column mixin
- session: Database (engine + session factory lifecycle)
- redis: RedisConnection (failed-job store backend)
"""

from contentvault.db.base import Base, BaseModel
from contentvault.db.session import Database
from contentvault.db.redis import RedisConnection

__all__ = [
    "Base",
    "BaseModel",
    "Database",
    "RedisConnection",
]
