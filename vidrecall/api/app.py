import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vidrecall import __version__
from vidrecall.api.models import ErrorOut
from vidrecall.api.routes import metrics, search
from vidrecall.retrieval.errors import QueryValidationError, RetrievalError
from vidrecall.retrieval.hybrid_retriever import HybridRetriever


logger = logging.getLogger(__name__)


def is_truthy(val: str | None) -> bool:
    """Check if an environment variable value is truthy."""
    if not val:
        return False
    return val.lower() in ("1", "true", "yes", "on")


def _error_response(status_code: int, exc: QueryValidationError | RetrievalError) -> JSONResponse:
    body = exc.to_dict()
    error = ErrorOut(
        error=body["message"],
        error_code=body["error_code"],
        error_type=body["error_type"],
        details=body["details"],
    )
    return JSONResponse(status_code=status_code, content=error.model_dump())


def create_app(retriever: HybridRetriever | None = None) -> FastAPI:
    """
    Build the search API.

    Args:
        retriever: Retriever to serve; when None one is created from
            VIDRECALL_DB_PATH on the first search request
    """
    app = FastAPI(title="vidrecall search API", version=__version__)
    app.state.retriever = retriever

    app.include_router(search.router)

    # Metrics: mount under /internal in production mode (METRICS_INTERNAL_ONLY=1)
    metrics_internal_only = is_truthy(os.getenv("METRICS_INTERNAL_ONLY"))
    app.include_router(
        metrics.router,
        prefix="/internal" if metrics_internal_only else "",
    )

    # Allow override via ALLOWED_ORIGINS env var (comma-separated)
    default_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1",
    ]
    env_origins = os.getenv("ALLOWED_ORIGINS")
    allow_origins = [o.strip() for o in env_origins.split(",")] if env_origins else default_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(QueryValidationError)
    async def query_validation_handler(request: Request, exc: QueryValidationError):
        logger.debug(f"Rejected search request: {exc}")
        return _error_response(400, exc)

    @app.exception_handler(RetrievalError)
    async def retrieval_error_handler(request: Request, exc: RetrievalError):
        logger.error(f"Search failed: {exc}")
        return _error_response(503, exc)

    @app.get("/healthz", tags=["health"])
    def healthz():
        """Minimal liveness endpoint for load balancers and monitoring."""
        return {"status": "ok", "version": app.version}

    return app


app = create_app()
