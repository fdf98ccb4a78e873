"""
Hybrid Retrieval Engine for vidrecall

Routes a query to vector search, keyword search, or both, and returns one
ranked list of transcript chunks.

Features:
- Three modes: vector, keyword, hybrid (default)
- Query embedded at most once per request, validated before any storage access
- Hybrid mode fans out both retrievers concurrently with an overfetched
  limit, fuses with RRF, then truncates
- Configurable partial-failure policy: degrade to the surviving retriever
  or fail the request
- Optional temporal decay applied last, in every mode
- Debug observability: per-stage timings in `last_debug`
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

import numpy as np

from vidrecall.retrieval.chunk_store import ChunkStore
from vidrecall.retrieval.decay import apply_temporal_decay
from vidrecall.retrieval.embedding_engine import EmbeddingEngine, get_embedding_engine
from vidrecall.retrieval.errors import QueryValidationError, RetrievalError, VidRecallError
from vidrecall.retrieval.fusion import reciprocal_rank_fusion
from vidrecall.retrieval.keyword_retriever import KeywordRetriever
from vidrecall.retrieval.metrics_registry import get_retrieval_metrics
from vidrecall.retrieval.retrieval_config import HybridRetrievalConfig, RetrievalOptions
from vidrecall.retrieval.types import RetrievalResponse, SearchResult
from vidrecall.retrieval.vector_retriever import VectorRetriever, validate_query_embedding


logger = logging.getLogger(__name__)


class HybridRetriever:
    """
    Retrieval orchestrator over a ChunkStore

    Example usage:
        retriever = HybridRetriever("data/vidrecall.db")
        response = await retriever.retrieve(
            "typescript generics",
            mode="hybrid",
            limit=10,
            temporal_decay=True,
            half_life_days=180,
        )
        for result in response:
            print(result.video_title, result.similarity)
    """

    def __init__(
        self,
        store: ChunkStore | str,
        embedding_engine: EmbeddingEngine | Callable[[str], Any] | None = None,
        config: HybridRetrievalConfig | None = None,
        vector_retriever: VectorRetriever | None = None,
        keyword_retriever: KeywordRetriever | None = None,
    ):
        """
        Initialize hybrid retriever

        Args:
            store: ChunkStore or path to the SQLite database
            embedding_engine: EmbeddingEngine or any callable text -> vector
                (uses the singleton on first vector/hybrid query if None)
            config: Retrieval configuration (uses the config manager's live
                config if not provided)
            vector_retriever: Vector retriever (created if not provided)
            keyword_retriever: Keyword retriever (created if not provided)
        """
        self.store = ChunkStore(store) if isinstance(store, str) else store
        self._embedding_engine = embedding_engine

        # Only a config owned by the manager follows edits to retrieval.yaml
        self._config_manager = None
        if config is None:
            from vidrecall.retrieval.retrieval_config import get_retrieval_config_manager

            self._config_manager = get_retrieval_config_manager()
            self.config = self._config_manager.get_hybrid_config()
        else:
            self.config = config

        self.vector = vector_retriever or VectorRetriever(
            self.store, dim=self.config.embedding_dim
        )
        self.keyword = keyword_retriever or KeywordRetriever(self.store)

        self.debug_enabled = os.getenv("VIDRECALL_RETRIEVAL_DEBUG") == "1"
        self.last_debug: dict[str, Any] = {}

        logger.debug(
            f"HybridRetriever initialized: mode={self.config.default_mode}, "
            f"rrf_k={self.config.rrf_k}, overfetch={self.config.hybrid_overfetch}, "
            f"partial_failure={self.config.partial_failure}",
        )

    @property
    def embedding_engine(self) -> EmbeddingEngine | Callable[[str], Any]:
        if self._embedding_engine is None:
            self._embedding_engine = get_embedding_engine()
        return self._embedding_engine

    async def retrieve(
        self,
        query: str,
        options: RetrievalOptions | None = None,
        now: datetime | None = None,
        **overrides: Any,
    ) -> RetrievalResponse:
        """
        Perform retrieval

        Args:
            query: Query text
            options: Per-request options; unset fields use config defaults
            now: Optional reference time for deterministic decay in tests
            **overrides: RetrievalOptions fields given directly
                (mode, limit, temporal_decay, half_life_days, threshold,
                video_ids); applied on top of `options`

        Returns:
            RetrievalResponse whose results are sorted by score descending

        Raises:
            QueryValidationError: Invalid query or options (before any
                storage access or embedding call)
            RetrievalError: A retriever failed and the policy does not
                allow a degraded response
        """
        if self._config_manager is not None:
            self._config_manager.check_and_reload_if_needed()

        if options is None:
            options = RetrievalOptions(**overrides)
        elif overrides:
            options = dataclasses.replace(options, **overrides)

        self._validate_query(query)
        opts = options.resolve(self.config)

        metrics = get_retrieval_metrics()
        metrics.retrievals_total.labels(mode=opts.mode).inc()

        timings: dict[str, float] = {}
        with metrics.latency_seconds.labels(mode=opts.mode).time():
            if opts.mode == "keyword":
                results = await self._timed(
                    timings,
                    "keyword_ms",
                    self._run_single("keyword", self.keyword.search(query, limit=opts.limit)),
                )
                response = RetrievalResponse(results=results, mode=opts.mode)
            elif opts.mode == "vector":
                qvec = await self._timed(timings, "embed_ms", self._embed_query(query))
                results = await self._timed(
                    timings,
                    "vector_ms",
                    self._run_single(
                        "vector",
                        self.vector.search(qvec, limit=opts.limit, threshold=opts.threshold),
                    ),
                )
                response = RetrievalResponse(results=results, mode=opts.mode)
            else:
                response = await self._run_hybrid(query, opts, timings)

            filtered = self._filter_videos(response.results, opts.video_ids)

            t_decay = time.perf_counter()
            response.results = apply_temporal_decay(
                filtered[: opts.limit],
                enabled=opts.temporal_decay,
                half_life_days=opts.half_life_days,
                now=now,
            )
            timings["decay_ms"] = (time.perf_counter() - t_decay) * 1000

        if self.debug_enabled:
            self._build_debug_info(query, opts, response, timings)

        logger.debug(
            f"Retrieved {len(response.results)} results (mode={opts.mode}, "
            f"limit={opts.limit}, decay={opts.temporal_decay}, degraded={response.degraded})",
        )
        return response

    def _validate_query(self, query: Any) -> None:
        if not isinstance(query, str) or not query.strip():
            raise QueryValidationError(
                "Query must be a non-empty string", field="query", value=query
            )
        if len(query) > self.config.max_query_chars:
            raise QueryValidationError(
                f"Query too long (max {self.config.max_query_chars} characters)",
                field="query",
                value=len(query),
            )

    async def _embed_query(self, query: str) -> np.ndarray:
        """
        Embed the query exactly once and validate the vector

        The embedding call runs in a worker thread so model inference does
        not block the event loop.

        Raises:
            EmbeddingShapeError: Embedding has the wrong shape or contents
            RetrievalError: The embedding collaborator itself failed
        """
        engine = self.embedding_engine
        embed = getattr(engine, "embed_query", engine)
        try:
            raw = await asyncio.to_thread(embed, query)
        except VidRecallError:
            raise
        except Exception as e:
            get_retrieval_metrics().failures_total.labels(source="embedding").inc()
            logger.error(f"Query embedding failed: {e}")
            raise RetrievalError(f"Query embedding failed: {e}", source="embedding") from e

        return validate_query_embedding(raw, self.config.embedding_dim)

    async def _run_single(
        self, source: str, search: Awaitable[list[SearchResult]]
    ) -> list[SearchResult]:
        """Await one retriever, re-raising storage failures as RetrievalError"""
        try:
            return await search
        except VidRecallError:
            raise
        except Exception as e:
            get_retrieval_metrics().failures_total.labels(source=source).inc()
            logger.error(f"{source} retrieval failed: {e}")
            raise RetrievalError(f"{source} retrieval failed: {e}", source=source) from e

    async def _run_hybrid(
        self,
        query: str,
        opts: RetrievalOptions,
        timings: dict[str, float],
    ) -> RetrievalResponse:
        """
        Concurrent vector + keyword retrieval fused with RRF

        Each retriever is asked for limit * hybrid_overfetch results. When
        one side fails, `partial_failure` decides: "degrade" returns the
        survivor's own list (unfused, truncated to limit) flagged as
        degraded; "fail" raises. Both failing always raises.
        """
        fetch = opts.limit * self.config.hybrid_overfetch
        metrics = get_retrieval_metrics()
        failures: dict[str, Exception] = {}

        searches: dict[str, Awaitable[list[SearchResult]]] = {}
        try:
            qvec = await self._timed(timings, "embed_ms", self._embed_query(query))
        except RetrievalError as e:
            failures["embedding"] = e
        else:
            searches["vector"] = self.vector.search(
                qvec, limit=fetch, threshold=opts.threshold
            )
        searches["keyword"] = self.keyword.search(query, limit=fetch)

        t_retrieve = time.perf_counter()
        outcomes = await asyncio.gather(*searches.values(), return_exceptions=True)
        timings["retrieve_ms"] = (time.perf_counter() - t_retrieve) * 1000

        lists: dict[str, list[SearchResult]] = {}
        for source, outcome in zip(searches, outcomes):
            if isinstance(outcome, QueryValidationError):
                raise outcome
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                metrics.failures_total.labels(source=source).inc()
                logger.error(f"{source} retrieval failed: {outcome}")
                failures[source] = outcome
            else:
                lists[source] = outcome

        if not failures:
            t_fusion = time.perf_counter()
            fused = reciprocal_rank_fusion(lists["vector"], lists["keyword"], k=self.config.rrf_k)
            timings["fusion_ms"] = (time.perf_counter() - t_fusion) * 1000
            logger.debug(
                f"Hybrid candidates: vector={len(lists['vector'])}, "
                f"keyword={len(lists['keyword'])}, fused={len(fused)}",
            )
            return RetrievalResponse(results=fused, mode=opts.mode)

        failed_sources = list(failures)
        first_source, first_error = next(iter(failures.items()))

        if not lists:
            raise RetrievalError(
                "All retrievers failed",
                source=first_source,
                details={"failed_sources": failed_sources},
            ) from first_error

        if self.config.partial_failure == "fail":
            raise RetrievalError(
                f"{first_source} retrieval failed: {first_error}",
                source=first_source,
                details={"failed_sources": failed_sources},
            ) from first_error

        survivor, results = next(iter(lists.items()))
        for source in failed_sources:
            metrics.degraded_total.labels(failed_source=source).inc()
        logger.warning(
            f"Degraded hybrid response: {', '.join(failed_sources)} failed, "
            f"serving {len(results)} {survivor} results",
        )
        return RetrievalResponse(
            results=results,
            mode=opts.mode,
            degraded=True,
            failed_sources=failed_sources,
        )

    @staticmethod
    def _filter_videos(
        results: list[SearchResult], video_ids: frozenset[int] | None
    ) -> list[SearchResult]:
        if video_ids is None:
            return results
        return [r for r in results if r.video_id in video_ids]

    async def _timed(self, timings: dict[str, float], key: str, awaitable: Awaitable[Any]) -> Any:
        start = time.perf_counter()
        try:
            return await awaitable
        finally:
            timings[key] = (time.perf_counter() - start) * 1000

    def _build_debug_info(
        self,
        query: str,
        opts: RetrievalOptions,
        response: RetrievalResponse,
        timings: dict[str, float],
    ) -> None:
        """Build debug information structure for observability"""
        self.last_debug = {
            "query": query,
            "mode": opts.mode,
            "limit": opts.limit,
            "timings": dict(timings),
            "degraded": response.degraded,
            "failed_sources": list(response.failed_sources),
            "per_result": [
                {
                    "chunk_id": r.chunk_id,
                    "score_kind": r.score_kind,
                    "decay": r.decay,
                    "final": r.similarity,
                }
                for r in response.results
            ],
        }

        logger.info(
            "Retrieval timings: "
            + ", ".join(f"{key}={value:.1f}" for key, value in timings.items()),
        )
