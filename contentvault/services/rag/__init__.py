"""Semantic search and retrieval-augmented answers."""

from contentvault.services.rag.search_engine import (
    NO_RESULTS_ANSWER,
    SearchEngine,
    format_context_block,
)

__all__ = ["NO_RESULTS_ANSWER", "SearchEngine", "format_context_block"]
