"""
vidrecall retrieval core
Vector, keyword and hybrid search over transcript chunks
"""

from .aggregate import aggregate_by_video
from .chunk_store import ChunkStore
from .decay import apply_temporal_decay, calculate_temporal_decay, freshness_label
from .errors import EmbeddingShapeError, QueryValidationError, RetrievalError, VidRecallError
from .fusion import reciprocal_rank_fusion
from .hybrid_retriever import HybridRetriever
from .keyword_retriever import KeywordRetriever
from .retrieval_config import HybridRetrievalConfig, RetrievalOptions
from .types import BestChunk, RetrievalResponse, SearchResult, VideoResult
from .vector_retriever import VectorRetriever


__all__ = [
    "aggregate_by_video",
    "apply_temporal_decay",
    "calculate_temporal_decay",
    "freshness_label",
    "reciprocal_rank_fusion",
    "BestChunk",
    "ChunkStore",
    "EmbeddingShapeError",
    "HybridRetrievalConfig",
    "HybridRetriever",
    "KeywordRetriever",
    "QueryValidationError",
    "RetrievalError",
    "RetrievalOptions",
    "RetrievalResponse",
    "SearchResult",
    "VectorRetriever",
    "VideoResult",
    "VidRecallError",
]
