"""ContentVault: content ingestion, asynchronous embedding and RAG search."""

__version__ = "0.1.0"
