"""
Keyword Retriever for vidrecall

Literal, case-insensitive substring matching over chunk content. Every hit
scores a flat 1.0: substring presence is binary, so hits are not ranked
against each other and come back in store order.
"""

from __future__ import annotations

import logging

from vidrecall.retrieval.chunk_store import ChunkStore
from vidrecall.retrieval.errors import QueryValidationError
from vidrecall.retrieval.types import SCORE_KEYWORD, SearchResult
from vidrecall.retrieval.vector_retriever import row_to_result


logger = logging.getLogger(__name__)

KEYWORD_SIMILARITY = 1.0


class KeywordRetriever:
    """Substring search over transcript chunks"""

    def __init__(self, store: ChunkStore):
        self.store = store

    async def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        """
        Return up to `limit` chunks whose content contains `query`

        Args:
            query: Literal text to look for (case-insensitive)
            limit: Maximum number of results

        Returns:
            SearchResults with similarity 1.0 and score_kind "keyword"

        Raises:
            QueryValidationError: If query is empty (would match everything)
        """
        if not isinstance(query, str) or not query.strip():
            raise QueryValidationError(
                "Keyword query must be a non-empty string", field="query", value=query
            )

        rows = await self.store.keyword_chunks(query, limit)
        results = [row_to_result(row, KEYWORD_SIMILARITY, SCORE_KEYWORD) for row in rows]

        logger.debug(f"Keyword search returned {len(results)} results")
        return results
