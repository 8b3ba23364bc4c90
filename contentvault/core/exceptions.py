"""
Error taxonomy for the content pipeline.

InvalidInput and NotFound are caller errors and are never retried.
OracleFailure, IndexFailure and StoreFailure wrap failures of the external
collaborators; what happens next depends on where they surface:

- OracleFailure: categorization degrades to a default, embedding is retried
  by the job queue, answer generation fails the request.
- IndexFailure: retried for job writes, logged for deletes, fatal for search.
- StoreFailure: always fatal at this layer.
"""


class ContentVaultError(Exception):
    """Base exception for all pipeline errors."""
    pass


class InvalidInput(ContentVaultError):
    """Raised when required fields are missing or a query is empty."""
    pass


class NotFound(ContentVaultError):
    """Raised when a content ID does not exist in the primary store."""

    def __init__(self, content_id: int, message: str | None = None):
        self.content_id = content_id
        super().__init__(message or f"Content item {content_id} not found")


class OracleFailure(ContentVaultError):
    """Raised when an analysis, embedding or generation call fails."""
    pass


class IndexFailure(ContentVaultError):
    """Raised when the vector index is unreachable or rejects an operation."""
    pass


class StoreFailure(ContentVaultError):
    """Raised when the primary store is unreachable or a query fails."""
    pass
