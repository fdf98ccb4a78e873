"""
Query embedding for vidrecall

Maps text to the fixed-length float32 vectors that vector search compares
against stored chunk embeddings. Two providers ship: a local
sentence-transformers model (the default) and a deterministic hashing
embedder for offline runs and tests.
"""
from __future__ import annotations
import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np

from vidrecall.retrieval.errors import QueryValidationError

logger = logging.getLogger(__name__)


DEFAULT_PROVIDER = "local-sbert"
DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIM = 384


@dataclass
class EmbeddingConfig:
    """Which provider to build and the vector size it must produce"""
    provider: str           # 'local-sbert' or 'hashing'
    model: str
    dim: int


class EmbeddingProvider:
    """
    Turns a batch of texts into an (N, dim) float32 matrix of unit vectors
    """

    @classmethod
    def from_config(cls, cfg: EmbeddingConfig) -> EmbeddingProvider:
        return cls(dim=cfg.dim)

    def embed(self, texts: List[str]) -> np.ndarray:
        raise NotImplementedError


class LocalSBERTProvider(EmbeddingProvider):
    """
    sentence-transformers model running on CPU

    The model is loaded on the first embed() call; importing vidrecall or
    building an engine never imports torch.
    """

    def __init__(self, model_id: str = DEFAULT_MODEL, dim: int = DEFAULT_DIM):
        self.model_id = model_id
        self.dim = dim
        self.model = None
        self._load_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: EmbeddingConfig) -> LocalSBERTProvider:
        return cls(model_id=cfg.model, dim=cfg.dim)

    def _ensure_model(self):
        with self._load_lock:
            if self.model is None:
                from sentence_transformers import SentenceTransformer

                self.model = SentenceTransformer(self.model_id, device="cpu")
                logger.info(f"sentence-transformers model loaded: {self.model_id}")
        return self.model

    def embed(self, texts: List[str]) -> np.ndarray:
        vectors = self._ensure_model().encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return np.asarray(vectors, dtype=np.float32)


class HashingProvider(EmbeddingProvider):
    """
    SHA-256 feature hashing, no model download needed

    Each text expands into enough digests to fill dim signed 32-bit
    integers, scaled to [-1, 1) and L2-normalized. Equal texts give
    equal vectors in every process.
    """

    _INTS_PER_DIGEST = hashlib.sha256().digest_size // 4

    def __init__(self, dim: int = DEFAULT_DIM):
        self.dim = dim

    def _vector(self, text: str) -> np.ndarray:
        blocks = -(-self.dim // self._INTS_PER_DIGEST)
        raw = b"".join(
            hashlib.sha256(f"{block}\x1f{text}".encode("utf-8")).digest()
            for block in range(blocks)
        )
        vec = np.frombuffer(raw, dtype=">i4")[: self.dim].astype(np.float64) / 2**31
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec

    def embed(self, texts: List[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.stack([self._vector(t) for t in texts]).astype(np.float32)


class EmbeddingEngine:
    """
    Front door for embedding: picks the provider and checks what it returns
    """

    PROVIDERS = {
        "local-sbert": LocalSBERTProvider,
        "hashing": HashingProvider,
    }

    def __init__(self, cfg: Optional[EmbeddingConfig] = None) -> None:
        self.config = cfg or EmbeddingConfig(
            provider=DEFAULT_PROVIDER, model=DEFAULT_MODEL, dim=DEFAULT_DIM
        )
        provider_cls = self.PROVIDERS.get(self.config.provider)
        if provider_cls is None:
            raise ValueError(
                f"Unknown provider {self.config.provider!r}; "
                f"choose one of {sorted(self.PROVIDERS)}"
            )
        self.provider = provider_cls.from_config(self.config)

    def embed_texts(self, texts: Iterable[str]) -> np.ndarray:
        """
        Embed a batch of texts

        Returns:
            float32 array of shape (len(texts), config.dim)

        Raises:
            ValueError: If the provider returns a matrix of the wrong shape
        """
        batch = list(texts)
        if not batch:
            return np.zeros((0, self.config.dim), dtype=np.float32)

        matrix = self.provider.embed(batch)
        if matrix.shape != (len(batch), self.config.dim):
            raise ValueError(
                f"{self.config.provider} provider returned wrong shape {matrix.shape}; "
                f"wanted ({len(batch)}, {self.config.dim})"
            )
        return matrix.astype(np.float32, copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """
        Embed one search query into a (dim,) vector

        Raises:
            QueryValidationError: If text is not a non-empty string
        """
        if not isinstance(text, str) or not text.strip():
            raise QueryValidationError(
                f"Expected query to be a non-empty string, got {type(text).__name__}",
                field="query",
                value=text,
            )
        return self.embed_texts([text])[0]

    def __call__(self, text: str) -> np.ndarray:
        return self.embed_query(text)


def _config_from_settings() -> EmbeddingConfig:
    # embeddings: section of retrieval.yaml, missing keys fall back to defaults
    from vidrecall.retrieval.retrieval_config import get_retrieval_config_manager

    section = get_retrieval_config_manager().get_embeddings_section()
    return EmbeddingConfig(
        provider=section.get("provider", DEFAULT_PROVIDER),
        model=section.get("model", DEFAULT_MODEL),
        dim=int(section.get("dim", DEFAULT_DIM)),
    )


_engine: Optional[EmbeddingEngine] = None
_engine_lock = threading.Lock()


def get_embedding_engine() -> EmbeddingEngine:
    """Process-wide engine, built from configuration on first use"""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = EmbeddingEngine(_config_from_settings())
            cfg = _engine.config
            logger.info(
                f"Embedding engine ready: provider={cfg.provider} "
                f"model={cfg.model} dim={cfg.dim}"
            )
        return _engine


def reset_embedding_engine() -> None:
    global _engine
    with _engine_lock:
        _engine = None
