"""
Video-level aggregation of chunk search results
"""

from __future__ import annotations

from datetime import datetime

from vidrecall.retrieval.decay import freshness_label
from vidrecall.retrieval.types import BestChunk, SearchResult, VideoResult


def _beats(candidate: SearchResult, current: SearchResult) -> bool:
    """
    Higher similarity wins; equal similarity goes to the lower chunk id

    Ties deliberately do not go to the first-encountered chunk, so the
    chosen best_chunk does not depend on input order.
    """
    if candidate.similarity != current.similarity:
        return candidate.similarity > current.similarity
    return candidate.chunk_id < current.chunk_id


def aggregate_by_video(
    results: list[SearchResult],
    now: datetime | None = None,
) -> list[VideoResult]:
    """
    Collapse chunk results into one VideoResult per video

    For each video: score is the max chunk similarity, best_chunk is the
    chunk achieving it, matched_chunks counts its chunks. Output is sorted
    by score descending, then video id ascending, so any ordering of the
    same input gives the same output.

    Args:
        results: Chunk-level results from HybridRetriever.retrieve()
        now: Optional reference time for the freshness label

    Returns:
        VideoResults sorted by score descending
    """
    best: dict[int, SearchResult] = {}
    counts: dict[int, int] = {}

    for result in results:
        counts[result.video_id] = counts.get(result.video_id, 0) + 1
        current = best.get(result.video_id)
        if current is None or _beats(result, current):
            best[result.video_id] = result

    videos = []
    for video_id, top in best.items():
        videos.append(
            VideoResult(
                video_id=video_id,
                youtube_id=top.youtube_id,
                title=top.video_title,
                channel=top.channel,
                thumbnail=top.thumbnail,
                published_at=top.published_at,
                score=top.similarity,
                matched_chunks=counts[video_id],
                best_chunk=BestChunk(
                    chunk_id=top.chunk_id,
                    content=top.content,
                    start_time=top.start_time,
                    similarity=top.similarity,
                ),
                freshness=freshness_label(top.published_at, now),
            ),
        )

    videos.sort(key=lambda v: (-v.score, v.video_id))
    return videos
