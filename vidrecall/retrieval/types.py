from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


# Result types for the retrieval core

# Score kinds carried on SearchResult.score_kind so the meaning of
# `similarity` stays explicit across stages.
SCORE_COSINE = "cosine"
SCORE_KEYWORD = "keyword"
SCORE_RRF = "rrf"

SEARCH_MODES = ("vector", "keyword", "hybrid")


@dataclass
class SearchResult:
    """
    One transcript chunk bound to its parent video's metadata

    Fields:
        chunk_id: Chunk ID
        content: Chunk transcript text (never None)
        start_time: Chunk start in seconds (None if no timing data)
        end_time: Chunk end in seconds (None if no timing data)
        similarity: Relevance in [0, 1], higher is better. Cosine-derived
            in vector mode, flat 1.0 in keyword mode, accumulated RRF score
            in hybrid mode; see score_kind.
        video_id: Parent video ID (never None)
        video_title: Parent video title
        channel: Channel name (None if unknown)
        youtube_id: External video identifier (None if unknown)
        thumbnail: Thumbnail URL (None if unknown)
        published_at: Video publish time, aware UTC (None if unknown)
        score_kind: "cosine", "keyword" or "rrf"
        decay: Temporal decay factor applied to similarity (1.0 = none)
    """

    chunk_id: int
    content: str
    start_time: float | None
    end_time: float | None
    similarity: float
    video_id: int
    video_title: str
    channel: str | None = None
    youtube_id: str | None = None
    thumbnail: str | None = None
    published_at: datetime | None = None
    score_kind: str = SCORE_COSINE
    decay: float = 1.0

    def with_score(self, similarity: float, **changes: Any) -> SearchResult:
        """Return a copy with a new similarity (and optional other changes)"""
        return replace(self, similarity=similarity, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "content": self.content,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "similarity": self.similarity,
            "video_id": self.video_id,
            "video_title": self.video_title,
            "channel": self.channel,
            "youtube_id": self.youtube_id,
            "thumbnail": self.thumbnail,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "score_kind": self.score_kind,
            "decay": self.decay,
        }


@dataclass(frozen=True)
class BestChunk:
    """Highest-scoring chunk of a VideoResult"""

    chunk_id: int
    content: str
    start_time: float | None
    similarity: float


@dataclass
class VideoResult:
    """
    Chunk results aggregated per video

    Invariants:
        score == best_chunk.similarity
        matched_chunks == number of input SearchResults with this video_id
    """

    video_id: int
    youtube_id: str | None
    title: str
    channel: str | None
    thumbnail: str | None
    published_at: datetime | None
    score: float
    matched_chunks: int
    best_chunk: BestChunk
    freshness: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": self.video_id,
            "youtube_id": self.youtube_id,
            "title": self.title,
            "channel": self.channel,
            "thumbnail": self.thumbnail,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "score": self.score,
            "matched_chunks": self.matched_chunks,
            "best_chunk": {
                "chunk_id": self.best_chunk.chunk_id,
                "content": self.best_chunk.content,
                "start_time": self.best_chunk.start_time,
                "similarity": self.best_chunk.similarity,
            },
            "freshness": self.freshness,
        }


@dataclass
class RetrievalResponse:
    """
    Output of HybridRetriever.retrieve()

    `degraded` is True when hybrid mode lost one of its two retrievers and
    returned the surviving list; `failed_sources` names the lost ones.
    """

    results: list[SearchResult]
    mode: str
    degraded: bool = False
    failed_sources: list[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)
