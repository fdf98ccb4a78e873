"""
Prometheus metrics endpoint for retrieval observability.

Serves the shared registry from vidrecall.retrieval.metrics_registry, so
the counters updated by HybridRetriever are what gets scraped.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from vidrecall.retrieval.metrics_registry import get_metrics_registry, get_retrieval_metrics


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def metrics() -> Response:
    """
    Prometheus text exposition format endpoint.

    Exposes vidrecall_retrievals_total{mode}, vidrecall_retrieval_failures_total{source},
    vidrecall_degraded_responses_total{failed_source} and
    vidrecall_retrieval_latency_seconds{mode}.
    """
    # Register retrieval metrics even before the first search
    get_retrieval_metrics()

    payload = generate_latest(get_metrics_registry())
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
