"""
Tests for the embedding engine collaborator
"""

import numpy as np
import pytest
import yaml

from vidrecall.retrieval.embedding_engine import (
    DEFAULT_DIM,
    EmbeddingConfig,
    EmbeddingEngine,
    HashingProvider,
    LocalSBERTProvider,
    get_embedding_engine,
    reset_embedding_engine,
)
from vidrecall.retrieval.errors import QueryValidationError
from vidrecall.retrieval.retrieval_config import reset_retrieval_config_manager


def _hashing_engine(dim=DEFAULT_DIM):
    return EmbeddingEngine(EmbeddingConfig(provider="hashing", model="hashing", dim=dim))


class TestHashingProvider:
    """Deterministic offline embedder"""

    def test_deterministic(self):
        provider = HashingProvider(dim=64)

        a = provider.embed(["typescript generics"])
        b = provider.embed(["typescript generics"])

        np.testing.assert_array_equal(a, b)

    def test_normalized_float32(self):
        vecs = HashingProvider(dim=DEFAULT_DIM).embed(["one", "two"])

        assert vecs.shape == (2, DEFAULT_DIM)
        assert vecs.dtype == np.float32
        np.testing.assert_allclose(np.linalg.norm(vecs, axis=1), 1.0, rtol=1e-5)

    def test_different_texts_differ(self):
        vecs = HashingProvider(dim=DEFAULT_DIM).embed(["alpha", "beta"])
        assert not np.allclose(vecs[0], vecs[1])


class TestEmbeddingEngine:
    """Provider orchestration and query validation"""

    def test_embed_query_shape(self):
        vec = _hashing_engine().embed_query("typescript")

        assert vec.shape == (DEFAULT_DIM,)
        assert vec.dtype == np.float32

    def test_callable(self):
        engine = _hashing_engine()
        np.testing.assert_array_equal(engine("typescript"), engine.embed_query("typescript"))

    @pytest.mark.parametrize("text", ["", "   ", None, 12])
    def test_embed_query_rejects_blank(self, text):
        with pytest.raises(QueryValidationError):
            _hashing_engine().embed_query(text)

    def test_empty_batch(self):
        out = _hashing_engine().embed_texts([])
        assert out.shape == (0, DEFAULT_DIM)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            EmbeddingEngine(EmbeddingConfig(provider="openai", model="x", dim=DEFAULT_DIM))

    def test_wrong_provider_shape_rejected(self, mocker):
        """A provider returning the wrong dimension is caught"""
        engine = _hashing_engine()
        mocker.patch.object(
            engine.provider, "embed", return_value=np.zeros((1, 10), dtype=np.float32)
        )

        with pytest.raises(ValueError, match="wrong shape"):
            engine.embed_texts(["typescript"])

    def test_sbert_model_loaded_lazily(self):
        """Constructing the default engine never imports sentence-transformers"""
        engine = EmbeddingEngine()

        assert isinstance(engine.provider, LocalSBERTProvider)
        assert engine.provider.model is None
        assert engine.config.model == "sentence-transformers/all-MiniLM-L6-v2"

    def test_sbert_encode_called_with_normalization(self, mocker):
        """The sentence-transformers model is asked for normalized vectors"""
        provider = LocalSBERTProvider()
        fake_model = mocker.Mock()
        fake_model.encode.return_value = np.ones((1, DEFAULT_DIM), dtype=np.float64)
        provider.model = fake_model

        out = provider.embed(["typescript"])

        assert out.dtype == np.float32
        assert fake_model.encode.call_args.kwargs["normalize_embeddings"] is True


class TestEmbeddingSingleton:
    """Engine built from the embeddings section of retrieval.yaml"""

    def test_singleton_reads_config(self, tmp_path, monkeypatch):
        config_path = tmp_path / "retrieval.yaml"
        with open(config_path, "w") as f:
            yaml.dump({"embeddings": {"provider": "hashing", "model": "hashing", "dim": 384}}, f)
        monkeypatch.setenv("VIDRECALL_CONFIG", str(config_path))
        reset_retrieval_config_manager()
        reset_embedding_engine()

        engine = get_embedding_engine()

        assert engine.config.provider == "hashing"
        assert isinstance(engine.provider, HashingProvider)
        assert get_embedding_engine() is engine

    def test_reset(self, tmp_path, monkeypatch):
        config_path = tmp_path / "retrieval.yaml"
        with open(config_path, "w") as f:
            yaml.dump({"embeddings": {"provider": "hashing"}}, f)
        monkeypatch.setenv("VIDRECALL_CONFIG", str(config_path))

        first = get_embedding_engine()
        reset_embedding_engine()

        assert get_embedding_engine() is not first
