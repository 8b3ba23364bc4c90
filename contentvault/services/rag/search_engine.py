"""
Search / RAG Engine

Semantic search over saved content with optional answer generation.

Pipeline Flow:
--------------
1. Reject an empty query (no oracle call)
2. Embed the query (query mode)
3. Vector search with limit, threshold and filters
4. Hydrate records from the primary store in one batched lookup
5. Attach scores and re-sort by score (store order is not search order)
6. raw=True: return the ranked records
7. Otherwise build context blocks and generate a grounded answer
8. No hits: fixed answer, no generation call
"""

from typing import Dict, List, Optional, Union

from contentvault.core.config import settings
from contentvault.core.exceptions import InvalidInput
from contentvault.core.logging import get_logger
from contentvault.schemas.content import (
    ContentRecord,
    RankedContent,
    RawSearchResponse,
    SearchFilters,
    SearchResponse,
    SearchSource,
)
from contentvault.services.oracle import Oracle
from contentvault.services.store import ContentStore
from contentvault.services.vector.base import VectorIndex

logger = get_logger(__name__)

NO_RESULTS_ANSWER = "I couldn't find any relevant information in your saved content to answer this question."

# Per-document content budget inside a context block
CONTEXT_CONTENT_CHARS = 2000


def format_context_block(position: int, record: ContentRecord) -> str:
    """Render one hydrated record as a numbered context block."""
    lines = [f"[Document {position}]"]
    if record.title:
        lines.append(f"Title: {record.title}")
    lines.append(f"Type: {record.type}")
    if record.description:
        lines.append(f"Description: {record.description}")
    if record.content:
        content = record.content
        if len(content) > CONTEXT_CONTENT_CHARS:
            content = content[:CONTEXT_CONTENT_CHARS] + "..."
        lines.append(f"Content: {content}")
    if record.url:
        lines.append(f"URL: {record.url}")
    if record.labels:
        lines.append(f"Labels: {', '.join(record.labels)}")
    tags = record.metadata.get("tags") if record.metadata else None
    if tags:
        tag_text = ", ".join(str(t) for t in tags) if isinstance(tags, list) else str(tags)
        lines.append(f"Tags: {tag_text}")
    return "\n".join(lines)


class SearchEngine:
    """
    Usage:
    ------
    engine = SearchEngine(oracle, store, index)
    response = await engine.search("what did I save about sourdough?")
    response.answer, response.sources

    ranked = await engine.search("sourdough", raw=True)
    """

    def __init__(
        self,
        oracle: Oracle,
        store: ContentStore,
        index: VectorIndex,
        default_limit: Optional[int] = None,
        default_threshold: Optional[float] = None,
    ):
        self.oracle = oracle
        self.store = store
        self.index = index
        self.default_limit = default_limit or settings.SEARCH_DEFAULT_LIMIT
        self.default_threshold = (
            settings.SEARCH_DEFAULT_THRESHOLD if default_threshold is None else default_threshold
        )

    async def retrieve(
        self,
        query: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        filters: Optional[SearchFilters] = None,
    ) -> List[RankedContent]:
        """
        Steps 1-5: ranked, hydrated results.

        Raises:
            InvalidInput: If the query is empty or whitespace
            OracleFailure: If the query cannot be embedded
            IndexFailure: If the vector search fails
            StoreFailure: If hydration fails
        """
        if not query or not query.strip():
            raise InvalidInput("Search query must not be empty")

        limit = limit or self.default_limit
        threshold = self.default_threshold if threshold is None else threshold
        if filters is not None and filters.is_empty():
            filters = None

        query_vector = await self.oracle.embed(query.strip(), mode="query")
        hits = await self.index.search(
            query_vector,
            limit=limit,
            score_threshold=threshold,
            filters=filters,
        )
        if not hits:
            logger.info("search_no_hits", query=query[:100], threshold=threshold)
            return []

        scores: Dict[int, float] = {}
        for hit in hits:
            scores[hit.content_id] = max(hit.score, scores.get(hit.content_id, hit.score))

        records = await self.store.get_many(list(scores))
        ranked = [
            RankedContent(record=record, score=scores[record.id])
            for record in records
            if record.id in scores
        ]
        ranked.sort(key=lambda r: (-r.score, r.record.id))

        dropped = len(scores) - len(ranked)
        if dropped:
            # Vectors whose record is gone (delete still propagating)
            logger.info("search_dropped_orphan_hits", count=dropped)

        logger.info("search_retrieved", query=query[:100], hits=len(hits), results=len(ranked))
        return ranked

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        filters: Optional[SearchFilters] = None,
        raw: bool = False,
    ) -> Union[SearchResponse, RawSearchResponse]:
        """
        Full search. Answer generation failures propagate as OracleFailure;
        there is no default answer for a non-empty context.
        """
        ranked = await self.retrieve(query, limit=limit, threshold=threshold, filters=filters)

        if raw:
            return RawSearchResponse(query=query, results=ranked)

        if not ranked:
            return SearchResponse(query=query, answer=NO_RESULTS_ANSWER, source_count=0, sources=[])

        context_blocks = [
            format_context_block(position, item.record)
            for position, item in enumerate(ranked, start=1)
        ]
        answer = await self.oracle.generate_answer(query, context_blocks)

        sources = [SearchSource.from_ranked(item) for item in ranked]
        return SearchResponse(
            query=query,
            answer=answer,
            source_count=len(sources),
            sources=sources,
        )
