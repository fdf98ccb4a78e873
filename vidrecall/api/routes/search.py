"""
Search endpoint.

GET /api/search?q=<text>&limit=10&mode=hybrid&temporalDecay=true&halfLifeDays=365

Returns chunk-level results plus the same results aggregated per video.
A blank query returns an empty result set without touching the retriever.
"""

import logging
import os
import time

from fastapi import APIRouter, Depends, Query, Request, Response

from vidrecall.api.models import ChunkOut, ErrorOut, SearchOut, VideoOut
from vidrecall.retrieval.aggregate import aggregate_by_video
from vidrecall.retrieval.hybrid_retriever import HybridRetriever
from vidrecall.retrieval.types import SEARCH_MODES


logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

DEFAULT_DB_PATH = os.path.join("data", "vidrecall.db")

# Chunks fetched per requested result, so aggregation sees enough per video
CHUNK_OVERFETCH = 3

CACHE_HEADERS = {"Cache-Control": "private, max-age=60"}


def get_retriever(request: Request) -> HybridRetriever:
    """Retriever stored on app.state, created from VIDRECALL_DB_PATH on first use"""
    retriever = getattr(request.app.state, "retriever", None)
    if retriever is None:
        db_path = os.getenv("VIDRECALL_DB_PATH", DEFAULT_DB_PATH)
        retriever = HybridRetriever(db_path)
        request.app.state.retriever = retriever
        logger.info(f"Search retriever created for {db_path}")
    return retriever


@router.get(
    "/api/search",
    response_model=SearchOut,
    responses={400: {"model": ErrorOut}, 503: {"model": ErrorOut}},
)
async def search(
    response: Response,
    q: str = "",
    limit: int = Query(10, ge=1, le=100),
    mode: str = "hybrid",
    temporal_decay: bool = Query(False, alias="temporalDecay"),
    half_life_days: float = Query(365.0, alias="halfLifeDays"),
    video_ids: list[int] | None = Query(None, alias="videoId"),
    retriever: HybridRetriever = Depends(get_retriever),
) -> SearchOut:
    """
    Hybrid search over transcript chunks.

    Unknown modes fall back to hybrid. Over-long queries and invalid decay
    settings surface as 400 through the QueryValidationError handler;
    retriever failures surface as 503.
    """
    if mode not in SEARCH_MODES:
        mode = "hybrid"

    response.headers.update(CACHE_HEADERS)

    if not q.strip():
        return SearchOut(
            chunks=[],
            videos=[],
            query="",
            mode=mode,
            timing=0.0,
            has_embeddings=True,
        )

    start = time.perf_counter()
    result = await retriever.retrieve(
        q,
        mode=mode,
        limit=limit * CHUNK_OVERFETCH,
        temporal_decay=temporal_decay,
        half_life_days=half_life_days if temporal_decay else None,
        video_ids=frozenset(video_ids) if video_ids else None,
    )

    chunks = result.results
    videos = aggregate_by_video(chunks)

    # Keyword mode never needs embeddings; otherwise hits imply they exist
    has_embeddings = True if mode == "keyword" else len(chunks) > 0

    timing = (time.perf_counter() - start) * 1000
    logger.debug(
        f"/api/search mode={mode} chunks={len(chunks)} videos={len(videos)} "
        f"timing={timing:.1f}ms",
    )

    return SearchOut(
        chunks=[ChunkOut(**c.to_dict()) for c in chunks[:limit]],
        videos=[VideoOut(**v.to_dict()) for v in videos[:limit]],
        query=q,
        mode=mode,
        timing=timing,
        has_embeddings=has_embeddings,
        degraded=result.degraded,
        failed_sources=result.failed_sources,
    )
