"""
Vector Retriever for vidrecall

Nearest-neighbour search over chunk embeddings under cosine distance.
Cosine distance ranges from 0 (identical) to 2 (opposite); it is converted
to a similarity in [0, 1] as 1 - distance / 2 and filtered by a minimum
similarity threshold after the store returns its rows.
"""

from __future__ import annotations

import logging
import numbers
from typing import Any, Sequence

import numpy as np

from vidrecall.retrieval.chunk_store import ChunkStore
from vidrecall.retrieval.embedding_engine import EmbeddingEngine
from vidrecall.retrieval.errors import EmbeddingShapeError
from vidrecall.retrieval.types import SCORE_COSINE, SearchResult


logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3
EMBEDDING_DIM = 384


def validate_query_embedding(query_embedding: Any, dim: int = EMBEDDING_DIM) -> np.ndarray:
    """
    Check a query embedding and return it as a 1D float32 array

    Args:
        query_embedding: Sequence or numpy array of numbers
        dim: Required dimension

    Returns:
        1D float32 numpy array of length dim

    Raises:
        EmbeddingShapeError: Not a flat numeric array of exactly `dim`
            finite numbers, or all zeros (cosine distance undefined)
    """
    if isinstance(query_embedding, np.ndarray):
        if query_embedding.ndim != 1:
            raise EmbeddingShapeError(
                f"Expected 1D query embedding, got shape {query_embedding.shape}",
                expected_dim=dim,
                actual=list(query_embedding.shape),
            )
        if query_embedding.dtype.kind not in "fiu":
            raise EmbeddingShapeError(
                f"Expected numeric query embedding, got dtype {query_embedding.dtype}",
                expected_dim=dim,
            )
        arr = query_embedding
    elif isinstance(query_embedding, (list, tuple)):
        for value in query_embedding:
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise EmbeddingShapeError(
                    f"Expected query embedding of numbers, got element {type(value).__name__}",
                    expected_dim=dim,
                )
        arr = np.asarray(query_embedding, dtype=np.float64)
    else:
        raise EmbeddingShapeError(
            f"Expected query embedding to be an array of {dim} numbers, "
            f"got {type(query_embedding).__name__}",
            expected_dim=dim,
        )

    if arr.shape[0] != dim:
        raise EmbeddingShapeError(
            f"Expected query embedding of {dim} numbers, got length {arr.shape[0]}",
            expected_dim=dim,
            actual=int(arr.shape[0]),
        )

    if not np.all(np.isfinite(arr)):
        raise EmbeddingShapeError(
            "Query embedding contains non-finite values",
            expected_dim=dim,
        )

    if not np.any(arr):
        raise EmbeddingShapeError(
            "Query embedding is all zeros; cosine distance is undefined",
            expected_dim=dim,
        )

    return arr.astype(np.float32)


def distance_to_similarity(distance: float) -> float:
    """Map cosine distance [0, 2] to similarity [0, 1]"""
    similarity = 1.0 - float(distance) / 2.0
    return max(0.0, min(1.0, similarity))


class VectorRetriever:
    """
    Embedding similarity search over transcript chunks

    Example usage:
        retriever = VectorRetriever(ChunkStore("data/vidrecall.db"))
        results = await retriever.search(query_vec, limit=10, threshold=0.3)
    """

    def __init__(
        self,
        store: ChunkStore,
        embedding_engine: EmbeddingEngine | None = None,
        dim: int = EMBEDDING_DIM,
    ):
        self.store = store
        self.embedding_engine = embedding_engine
        self.dim = dim

    async def search(
        self,
        query_embedding: Sequence[float] | np.ndarray,
        limit: int = 10,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[SearchResult]:
        """
        Return up to `limit` chunks ordered by descending similarity

        Args:
            query_embedding: Query vector of exactly `dim` finite numbers
            limit: Maximum number of rows requested from the store
            threshold: Minimum similarity (0-1) to include

        Returns:
            SearchResults with score_kind "cosine"; may be empty

        Raises:
            EmbeddingShapeError: Before any storage access, on a bad vector
        """
        qvec = validate_query_embedding(query_embedding, self.dim)

        rows = await self.store.nearest_chunks(qvec, limit)

        results = []
        for row in rows:
            similarity = distance_to_similarity(row["distance"])
            # Threshold applied here; the store cannot filter on its computed column
            if similarity < threshold:
                continue
            results.append(row_to_result(row, similarity, SCORE_COSINE))

        logger.debug(
            f"Vector search kept {len(results)}/{len(rows)} rows "
            f"(threshold={threshold})",
        )
        return results

    async def search_text(
        self,
        query: str,
        limit: int = 10,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[SearchResult]:
        """
        Embed query text and search in one call

        Raises:
            QueryValidationError: If query is not a non-empty string
            RuntimeError: If no embedding engine was configured
        """
        if self.embedding_engine is None:
            raise RuntimeError("VectorRetriever.search_text requires an embedding engine")
        qvec = self.embedding_engine.embed_query(query)
        return await self.search(qvec, limit=limit, threshold=threshold)


def row_to_result(row: dict[str, Any], similarity: float, score_kind: str) -> SearchResult:
    """Build a SearchResult from a chunk/video join row"""
    return SearchResult(
        chunk_id=row["chunk_id"],
        content=row["content"],
        start_time=row.get("start_time"),
        end_time=row.get("end_time"),
        similarity=similarity,
        video_id=row["video_id"],
        video_title=row.get("video_title") or "",
        channel=row.get("channel"),
        youtube_id=row.get("youtube_id"),
        thumbnail=row.get("thumbnail"),
        published_at=row.get("published_at"),
        score_kind=score_kind,
    )
