"""
Retrieval Configuration for vidrecall

Holds every retrieval default in one dataclass and loads overrides from
the `retrieval:` section of config/retrieval.yaml, with environment
variable overrides and mtime-based reload.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass

import yaml

from vidrecall.retrieval.errors import QueryValidationError
from vidrecall.retrieval.types import SEARCH_MODES


logger = logging.getLogger(__name__)

PARTIAL_FAILURE_POLICIES = ("degrade", "fail")


@dataclass
class HybridRetrievalConfig:
    """Configuration for hybrid retrieval"""

    # Result sizes
    default_limit: int = 10
    default_mode: str = "hybrid"
    hybrid_overfetch: int = 2  # each retriever fetches limit * overfetch in hybrid mode

    # Vector search
    vector_threshold: float = 0.3
    embedding_dim: int = 384

    # Fusion
    rrf_k: int = 60

    # Temporal decay
    half_life_days: float = 365.0

    # Hybrid partial failure: "degrade" (serve survivor) or "fail"
    partial_failure: str = "degrade"

    # Query guardrails
    max_query_chars: int = 500

    def __post_init__(self):
        """Validate configuration"""
        if self.default_mode not in SEARCH_MODES:
            raise ValueError(f"default_mode must be one of {SEARCH_MODES}, got {self.default_mode}")

        if self.partial_failure not in PARTIAL_FAILURE_POLICIES:
            raise ValueError(
                f"partial_failure must be 'degrade' or 'fail', got {self.partial_failure}",
            )

        if self.default_limit <= 0:
            raise ValueError(f"default_limit must be positive, got {self.default_limit}")

        if self.hybrid_overfetch < 1:
            raise ValueError(f"hybrid_overfetch must be >= 1, got {self.hybrid_overfetch}")

        if not 0.0 <= self.vector_threshold <= 1.0:
            raise ValueError(f"vector_threshold must be in [0, 1], got {self.vector_threshold}")

        # k >= 1 keeps a double rank-0 hit, 2 / (k + 1), within [0, 1]
        if self.rrf_k < 1:
            raise ValueError(f"rrf_k must be >= 1, got {self.rrf_k}")

        if not (math.isfinite(self.half_life_days) and self.half_life_days > 0):
            raise ValueError(f"half_life_days must be positive, got {self.half_life_days}")

        if self.embedding_dim <= 0:
            raise ValueError(f"embedding_dim must be positive, got {self.embedding_dim}")


@dataclass
class RetrievalOptions:
    """
    Per-request retrieval options

    Unset fields (None) fall back to HybridRetrievalConfig defaults.
    half_life_days is ignored entirely unless temporal_decay is True.
    """

    mode: str | None = None
    limit: int | None = None
    temporal_decay: bool = False
    half_life_days: float | None = None
    threshold: float | None = None
    video_ids: frozenset[int] | None = None

    def resolve(self, config: HybridRetrievalConfig) -> RetrievalOptions:
        """
        Fill unset fields from config and validate

        Raises:
            QueryValidationError: If any option is out of range
        """
        mode = self.mode if self.mode is not None else config.default_mode
        if mode not in SEARCH_MODES:
            raise QueryValidationError(
                f"Invalid retrieval mode: {mode!r} (expected one of {', '.join(SEARCH_MODES)})",
                field="mode",
                value=mode,
            )

        limit = self.limit if self.limit is not None else config.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise QueryValidationError("limit must be a positive integer", field="limit", value=limit)

        threshold = self.threshold if self.threshold is not None else config.vector_threshold
        if not (isinstance(threshold, (int, float)) and 0.0 <= threshold <= 1.0):
            raise QueryValidationError(
                "threshold must be a number in [0, 1]", field="threshold", value=threshold
            )

        half_life = None
        if self.temporal_decay:
            half_life = (
                self.half_life_days if self.half_life_days is not None else config.half_life_days
            )
            if not (
                isinstance(half_life, (int, float))
                and math.isfinite(half_life)
                and half_life > 0
            ):
                raise QueryValidationError(
                    "half_life_days must be a positive finite number",
                    field="half_life_days",
                    value=half_life,
                )

        return RetrievalOptions(
            mode=mode,
            limit=limit,
            temporal_decay=self.temporal_decay,
            half_life_days=half_life,
            threshold=float(threshold),
            video_ids=frozenset(self.video_ids) if self.video_ids is not None else None,
        )


class RetrievalConfigManager:
    """
    Loads retrieval configuration from YAML with reload support

    The HybridRetrievalConfig returned by get_hybrid_config() is mutated
    in place on reload, so existing retriever instances see updates
    without recreation.
    """

    DEFAULT_CONFIG_PATHS = [
        os.path.join("config", "retrieval.yaml"),
        os.path.join(os.path.dirname(__file__), "..", "..", "config", "retrieval.yaml"),
    ]

    def __init__(self, config_path: str | None = None) -> None:
        """
        Initialize retrieval config manager

        Args:
            config_path: Optional path to retrieval.yaml. Falls back to
                VIDRECALL_CONFIG, then the default locations.
        """
        self.config_path = config_path or os.getenv("VIDRECALL_CONFIG")
        self._hybrid_config = HybridRetrievalConfig()
        self._embeddings: dict = {}
        self._last_mtime: float | None = None

        self._load_config()

        path = self._find_path()
        if path and os.path.exists(path):
            self._last_mtime = os.path.getmtime(path)

    def _find_path(self) -> str | None:
        """Find retrieval.yaml in configured or default locations"""
        if self.config_path and os.path.exists(self.config_path):
            return self.config_path
        for p in self.DEFAULT_CONFIG_PATHS:
            if os.path.exists(p):
                return p
        return None

    def _load_config(self) -> None:
        """Load and apply the retrieval.* section plus env overrides"""
        data: dict = {}
        path = self._find_path()
        if path:
            try:
                with open(path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config {path}: {e}")
                data = {}
        else:
            logger.debug("No retrieval config file found, using defaults")

        retrieval = dict(data.get("retrieval", {}) or {})
        self._embeddings = dict(data.get("embeddings", {}) or {})

        env_mode = os.getenv("VIDRECALL_RETRIEVAL_MODE")
        if env_mode:
            retrieval["default_mode"] = env_mode

        env_policy = os.getenv("VIDRECALL_PARTIAL_FAILURE")
        if env_policy:
            retrieval["partial_failure"] = env_policy

        defaults = HybridRetrievalConfig()
        candidate = HybridRetrievalConfig(
            default_limit=int(retrieval.get("default_limit", defaults.default_limit)),
            default_mode=str(retrieval.get("default_mode", defaults.default_mode)),
            hybrid_overfetch=int(retrieval.get("hybrid_overfetch", defaults.hybrid_overfetch)),
            vector_threshold=float(retrieval.get("vector_threshold", defaults.vector_threshold)),
            embedding_dim=int(
                self._embeddings.get("dim", retrieval.get("embedding_dim", defaults.embedding_dim))
            ),
            rrf_k=int(retrieval.get("rrf_k", defaults.rrf_k)),
            half_life_days=float(retrieval.get("half_life_days", defaults.half_life_days)),
            partial_failure=str(retrieval.get("partial_failure", defaults.partial_failure)),
            max_query_chars=int(retrieval.get("max_query_chars", defaults.max_query_chars)),
        )

        # Update in place so existing references see changes
        self._hybrid_config.__dict__.update(candidate.__dict__)

        logger.debug(
            f"Loaded retrieval config: "
            f"mode={candidate.default_mode}, limit={candidate.default_limit}, "
            f"threshold={candidate.vector_threshold}, rrf_k={candidate.rrf_k}, "
            f"half_life={candidate.half_life_days}d, "
            f"partial_failure={candidate.partial_failure}",
        )

    def reload(self) -> None:
        """Reload retrieval config from disk, logging what changed"""
        before = dict(self._hybrid_config.__dict__)

        self._load_config()

        path = self._find_path()
        if path and os.path.exists(path):
            self._last_mtime = os.path.getmtime(path)

        changes = [
            f"{key}: {before[key]} -> {value}"
            for key, value in self._hybrid_config.__dict__.items()
            if before.get(key) != value
        ]
        if changes:
            logger.info(f"Reloaded retrieval config: {', '.join(changes)}")
        else:
            logger.debug("Reloaded retrieval config (no changes)")

    def check_and_reload_if_needed(self) -> bool:
        """
        Reload if the config file changed since the last load

        An edited file with invalid values is logged and skipped until it
        changes again; the live config keeps its previous values.

        Returns:
            True if a reload happened
        """
        path = self._find_path()
        if not path or not os.path.exists(path):
            return False

        current_mtime = os.path.getmtime(path)
        if self._last_mtime is None or current_mtime != self._last_mtime:
            try:
                self.reload()
            except ValueError as e:
                self._last_mtime = current_mtime
                logger.error(f"Ignoring invalid retrieval config {path}: {e}")
                return False
            return True
        return False

    def get_hybrid_config(self) -> HybridRetrievalConfig:
        """Live reference to the current HybridRetrievalConfig"""
        return self._hybrid_config

    def get_embeddings_section(self) -> dict:
        """Raw embeddings.* section (provider, model, dim)"""
        return dict(self._embeddings)


_retrieval_config_manager: RetrievalConfigManager | None = None


def get_retrieval_config_manager() -> RetrievalConfigManager:
    """Get or create the retrieval config manager singleton"""
    global _retrieval_config_manager
    if _retrieval_config_manager is None:
        _retrieval_config_manager = RetrievalConfigManager()
    return _retrieval_config_manager


def reset_retrieval_config_manager() -> None:
    """Drop the singleton (tests)"""
    global _retrieval_config_manager
    _retrieval_config_manager = None
