"""
Reciprocal Rank Fusion

Merges the vector and keyword ranked lists without normalizing their
scores: a result at 0-indexed rank r contributes 1 / (k + r + 1), and a
result present in both lists accumulates both contributions.
"""

from __future__ import annotations

import logging

from vidrecall.retrieval.types import SCORE_RRF, SearchResult


logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60


def rrf_contribution(rank: int, k: int = DEFAULT_RRF_K) -> float:
    """Contribution of a result at 0-indexed `rank`"""
    return 1.0 / (k + rank + 1)


def reciprocal_rank_fusion(
    vector_results: list[SearchResult],
    keyword_results: list[SearchResult],
    k: int = DEFAULT_RRF_K,
) -> list[SearchResult]:
    """
    Fuse two ranked lists into one deduplicated list

    The returned results carry the accumulated RRF score in `similarity`
    (score_kind "rrf"), not the original cosine/keyword score. The first
    result object seen for a chunk id supplies the metadata. Ties keep
    merge order (vector list first) because the sort is stable.

    Args:
        vector_results: Vector retriever output, best first
        keyword_results: Keyword retriever output, store order
        k: Smoothing constant (default 60)

    Returns:
        Fused results sorted by RRF score descending
    """
    scores: dict[int, list] = {}

    for ranked in (vector_results, keyword_results):
        for rank, result in enumerate(ranked):
            contrib = rrf_contribution(rank, k)
            entry = scores.get(result.chunk_id)
            if entry is None:
                scores[result.chunk_id] = [result, contrib]
            else:
                entry[1] += contrib

    fused = sorted(scores.values(), key=lambda entry: entry[1], reverse=True)

    logger.debug(
        f"RRF fused {len(vector_results)} vector + {len(keyword_results)} keyword "
        f"into {len(fused)} results (k={k})",
    )
    return [result.with_score(score, score_kind=SCORE_RRF) for result, score in fused]
