"""
vidrecall
Hybrid vector + keyword retrieval over video transcript chunks
"""

__version__ = "0.1.0"

from .retrieval import (
    HybridRetrievalConfig,
    HybridRetriever,
    RetrievalOptions,
    RetrievalResponse,
    SearchResult,
    VideoResult,
    aggregate_by_video,
)


__all__ = [
    "HybridRetrievalConfig",
    "HybridRetriever",
    "RetrievalOptions",
    "RetrievalResponse",
    "SearchResult",
    "VideoResult",
    "aggregate_by_video",
]
