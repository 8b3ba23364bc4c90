"""
Embedding jobs and the retry policy that governs them.

A job is a self-contained snapshot of the fields that feed the combined
text. Workers never read the primary store, so a job keeps its meaning even
if the record changes (or disappears) while it waits in the queue.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from contentvault.core.config import settings
from contentvault.schemas.content import ContentRecord
from contentvault.services.pipeline.combiner import combine_content_for_embedding


class JobStatus(str, Enum):
    """Lifecycle of an embedding job."""
    QUEUED = "queued"
    ACTIVE = "active"
    RETRYING = "retrying"
    COMPLETED = "completed"    # terminal
    EXHAUSTED = "exhausted"    # terminal, kept in the failed-job store


class EmbeddingJob(BaseModel):
    content_id: int
    type: str = ""
    title: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: Optional[datetime] = Field(
        default=None,
        description="Record updated_at when the snapshot was taken"
    )
    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_record(cls, record: ContentRecord) -> "EmbeddingJob":
        return cls(
            content_id=record.id,
            type=record.type,
            title=record.title,
            summary=record.summary,
            description=record.description,
            content=record.content,
            labels=list(record.labels),
            metadata=dict(record.metadata),
            version=record.updated_at,
        )

    def combined_text(self) -> str:
        return combine_content_for_embedding(
            title=self.title,
            summary=self.summary,
            description=self.description,
            labels=self.labels,
            metadata=self.metadata,
            content=self.content,
        )


class FailedJob(BaseModel):
    """An exhausted job plus why it failed."""

    job: EmbeddingJob
    attempts: int
    error: str
    error_type: str
    failed_at: datetime


class RetryPolicy:
    """
    Bounded exponential backoff.

    attempt numbers are 1-based: after attempt n fails, the next attempt
    waits base_delay * factor ** (n - 1) seconds (2s, 4s, 8s, ...).
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        factor: Optional[float] = None,
    ):
        self.max_attempts = settings.EMBEDDING_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.base_delay = settings.EMBEDDING_RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self.factor = settings.EMBEDDING_RETRY_BACKOFF_FACTOR if factor is None else factor

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, attempt: int) -> bool:
        """True if a job whose attempt number `attempt` just failed gets another try."""
        return attempt < self.max_attempts

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt` before the next one."""
        return self.base_delay * (self.factor ** (attempt - 1))

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"base_delay={self.base_delay}, factor={self.factor})"
        )
