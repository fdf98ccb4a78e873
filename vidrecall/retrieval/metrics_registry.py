"""
Prometheus metrics for retrieval, on a shared registry.

The registry is a thread-safe singleton so that module reloads (e.g.
uvicorn's auto-reload) never hit "Duplicated timeseries in
CollectorRegistry".
"""
from __future__ import annotations
import logging
import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)

_registry: Optional[CollectorRegistry] = None
_registry_lock = threading.Lock()
_metrics: Optional["RetrievalMetrics"] = None


class RetrievalMetrics:
    """Retrieval counters and latency histogram bound to one registry"""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.retrievals_total = Counter(
            "vidrecall_retrievals_total",
            "Retrieval requests, labeled by search mode.",
            ["mode"],
            registry=registry,
        )
        self.failures_total = Counter(
            "vidrecall_retrieval_failures_total",
            "Retriever failures, labeled by failing source.",
            ["source"],
            registry=registry,
        )
        self.degraded_total = Counter(
            "vidrecall_degraded_responses_total",
            "Hybrid responses served from a single surviving retriever.",
            ["failed_source"],
            registry=registry,
        )
        self.latency_seconds = Histogram(
            "vidrecall_retrieval_latency_seconds",
            "End-to-end retrieval latency, labeled by search mode.",
            ["mode"],
            registry=registry,
        )


def get_metrics_registry() -> CollectorRegistry:
    """
    Get or create the global metrics registry.

    Returns:
        CollectorRegistry instance (shared across all callers)
    """
    global _registry

    with _registry_lock:
        if _registry is None:
            _registry = CollectorRegistry(auto_describe=True)
            logger.debug("Created Prometheus metrics registry")
        return _registry


def get_retrieval_metrics() -> RetrievalMetrics:
    """Get the retrieval metrics, registering them exactly once"""
    global _metrics

    registry = get_metrics_registry()
    with _registry_lock:
        if _metrics is None:
            _metrics = RetrievalMetrics(registry)
        return _metrics


def reset_metrics_registry() -> None:
    """
    Reset the global metrics registry.

    Primarily for tests; metrics registered before the reset stop being
    exported.
    """
    global _registry, _metrics

    with _registry_lock:
        _registry = None
        _metrics = None
        logger.debug("Reset metrics registry")
