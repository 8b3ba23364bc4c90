"""
Content Models

Models Included:
----------------
1. ContentItem - the authoritative content record (primary store)
2. ContentEmbedding - one vector per content item (pgvector index table)

Database Tables:
----------------
- content_items: text, links, images and video references plus AI metadata
- content_embeddings: derived vectors keyed by content item id

Relationship:
-------------
content_embeddings.content_id mirrors content_items.id without a foreign key.
Vector rows are written by the embedding workers after the record exists and
removed best-effort after it is deleted; the two tables are only eventually
consistent.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import ARRAY, BigInteger, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from contentvault.core.config import settings
from contentvault.db.base import Base, BaseModel, String50, String500, String2048, utcnow


# ================================
# ContentItem Model (Primary Store)
# ================================

class ContentItem(BaseModel):
    """
    Content record - anything a user saved.

    Table: content_items
    --------------------
    Created by the content pipeline after AI analysis, mutated by partial
    updates, deleted explicitly.

    Type Values:
    ------------
    Set by analysis or by the caller: "text", "article", "link", "image",
    "video", "recipe", ... (open set, not an enum).
    """

    __tablename__ = "content_items"

    type: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        index=True,
        comment="Content category from AI analysis or caller override"
    )

    title: Mapped[str | None] = mapped_column(
        String500,
        nullable=True,
        comment="Title (caller supplied or AI generated)"
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Description (caller supplied or AI generated)"
    )

    summary: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="AI-generated summary from analysis"
    )

    content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Raw text body"
    )

    url: Mapped[str | None] = mapped_column(
        String2048,
        nullable=True,
        comment="Source URL"
    )

    image_url: Mapped[str | None] = mapped_column(
        String2048,
        nullable=True,
        comment="Image location"
    )

    content_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        comment="Open key-value attributes from analysis"
    )
    # Column is named "metadata"; the attribute cannot be, SQLAlchemy reserves it

    labels: Mapped[list[str]] = mapped_column(
        ARRAY(String),
        nullable=False,
        default=list,
        comment="Ordered tags"
    )
    # Filtered with labels && ARRAY[...] (any-match)

    def __repr__(self) -> str:
        return f"ContentItem(id={self.id}, type='{self.type}', title='{self.title}')"


# ================================
# ContentEmbedding Model (pgvector index)
# ================================

class ContentEmbedding(Base):
    """
    Vector index entry for one content item.

    Table: content_embeddings
    -------------------------
    Payload columns are a denormalized copy of the snapshot the vector was
    built from. source_updated_at is the record's updated_at captured when
    the job was enqueued; an upsert carrying an older value is ignored.
    """

    __tablename__ = "content_embeddings"

    content_id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment="Mirrors content_items.id (no FK)"
    )

    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION),
        nullable=False,
        comment="Document embedding"
    )

    title: Mapped[str | None] = mapped_column(String500, nullable=True)

    type: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        default="",
        index=True,
    )

    labels: Mapped[list[str]] = mapped_column(
        ARRAY(String),
        nullable=False,
        default=list,
    )

    combined_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Exact text that was embedded"
    )

    source_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Snapshot version (record updated_at at enqueue time)"
    )

    indexed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the vector was last written"
    )

    def __repr__(self) -> str:
        return f"ContentEmbedding(content_id={self.content_id}, type='{self.type}')"
