"""
Database Base Classes and Common Utilities

Foundation for all ORM models.

Key Concepts:
--------------
1. Base: SQLAlchemy DeclarativeBase bound to a MetaData with naming conventions
2. CommonTableAttributes: id / created_at / updated_at shared by every table
3. BaseModel: Base + CommonTableAttributes, the class models inherit from
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


# ================================
# Naming Convention for Constraints
# ================================
# ix_content_items_type, pk_content_items, ...
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

orm_registry = registry(metadata=metadata)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class ContentItem(Base):
            __tablename__ = "content_items"
            id: Mapped[int] = mapped_column(primary_key=True)
    """

    registry = orm_registry
    metadata = metadata

    __tablename__: str


class CommonTableAttributes:
    """
    Mixin adding the columns every primary-store table carries.

    - id: auto-incrementing primary key, immutable once assigned
    - created_at: set once on insert (UTC)
    - updated_at: refreshed on every UPDATE (UTC)
    """

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing primary key"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"


class BaseModel(Base, CommonTableAttributes):
    """
    Ready-to-use base class for application models.

    Every model automatically gets id, created_at and updated_at.
    """

    __abstract__ = True


# ================================
# String Length Constraints
# ================================
String50 = String(50)
String500 = String(500)
String2048 = String(2048)
