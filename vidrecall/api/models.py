from datetime import datetime

from pydantic import BaseModel


class ChunkOut(BaseModel):
    chunk_id: int
    content: str
    start_time: float | None = None
    end_time: float | None = None
    similarity: float
    video_id: int
    video_title: str
    channel: str | None = None
    youtube_id: str | None = None
    thumbnail: str | None = None
    published_at: datetime | None = None
    score_kind: str
    decay: float = 1.0


class BestChunkOut(BaseModel):
    chunk_id: int
    content: str
    start_time: float | None = None
    similarity: float


class VideoOut(BaseModel):
    video_id: int
    youtube_id: str | None = None
    title: str
    channel: str | None = None
    thumbnail: str | None = None
    published_at: datetime | None = None
    score: float
    matched_chunks: int
    best_chunk: BestChunkOut
    freshness: str | None = None


class SearchOut(BaseModel):
    chunks: list[ChunkOut]
    videos: list[VideoOut]
    query: str
    mode: str
    timing: float  # milliseconds
    has_embeddings: bool
    degraded: bool = False
    failed_sources: list[str] = []


class ErrorOut(BaseModel):
    """Body of 400 and 503 responses"""
    error: str
    error_code: str
    error_type: str
    details: dict = {}
