"""
Test fixtures and helpers for the vidrecall test suite.

Provides a seeded transcript database, a fake embedding collaborator that
records its calls, and time freezing for deterministic decay.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest
from freezegun import freeze_time

from tests.helpers.sqlite import connect_test_db, create_schema, insert_test_chunk, insert_test_video
from tests.helpers.synthetic import query_vector, vector_with_similarity


FROZEN_NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def frozen_now():
    """
    Freeze time to a stable UTC timestamp for deterministic tests.

    Uses 2025-01-01T00:00:00Z as the frozen time.
    """
    with freeze_time("2025-01-01T00:00:00Z"):
        yield FROZEN_NOW


@dataclass
class SeededCorpus:
    """IDs of the rows created by the seeded_db fixture"""

    db_path: str
    videos: dict
    chunks: dict


@pytest.fixture
def db_path(tmp_path):
    """Path to an empty database with the videos/chunks schema"""
    path = str(tmp_path / "vidrecall.db")
    conn = connect_test_db(path)
    try:
        create_schema(conn)
    finally:
        conn.close()
    return path


@pytest.fixture
def seeded_db(db_path):
    """
    Small corpus with exact similarities to tests.helpers.synthetic.query_vector()

    Videos:
        ts: "TypeScript Deep Dive", published 2024-12-01 (31 days before FROZEN_NOW)
        py: "Python at Scale", published 2022-01-01
        misc: "Untitled Talk", no publish date

    Chunks (vector similarity in parentheses):
        ts_intro    "TypeScript is great"                       (0.98)
        ts_generics "Generics in practice"                      (0.70)
        py_typing   "Python typing compared with typescript"    (0.90)
        py_async    "Async IO deep dive"                        (0.50)
        misc_rust   "Rust ownership explained"                  (no embedding)
        misc_pasta  "Cooking pasta at home"                     (0.10)
    """
    conn = connect_test_db(db_path)
    try:
        videos = {
            "ts": insert_test_video(
                conn,
                title="TypeScript Deep Dive",
                youtube_id="yt-ts",
                channel="Frontend Weekly",
                thumbnail="https://img.example/ts.jpg",
                published_at="2024-12-01T00:00:00Z",
            ),
            "py": insert_test_video(
                conn,
                title="Python at Scale",
                youtube_id="yt-py",
                channel="Backend Hour",
                published_at="2022-01-01T00:00:00+00:00",
            ),
            "misc": insert_test_video(
                conn,
                title="Untitled Talk",
                youtube_id=None,
                channel=None,
                published_at=None,
            ),
        }
        chunks = {
            "ts_intro": insert_test_chunk(
                conn, videos["ts"], "TypeScript is great",
                vector_with_similarity(0.98, side_axis=1), 0.0, 30.0,
            ),
            "ts_generics": insert_test_chunk(
                conn, videos["ts"], "Generics in practice",
                vector_with_similarity(0.70, side_axis=2), 30.0, 60.0,
            ),
            "py_typing": insert_test_chunk(
                conn, videos["py"], "Python typing compared with typescript",
                vector_with_similarity(0.90, side_axis=3), 0.0, 45.0,
            ),
            "py_async": insert_test_chunk(
                conn, videos["py"], "Async IO deep dive",
                vector_with_similarity(0.50, side_axis=4), 45.0, 90.0,
            ),
            "misc_rust": insert_test_chunk(
                conn, videos["misc"], "Rust ownership explained",
                None, None, None,
            ),
            "misc_pasta": insert_test_chunk(
                conn, videos["misc"], "Cooking pasta at home",
                vector_with_similarity(0.10, side_axis=5), 10.0, 20.0,
            ),
        }
    finally:
        conn.close()

    return SeededCorpus(db_path=db_path, videos=videos, chunks=chunks)


@pytest.fixture
def fake_engine(mocker):
    """Embedding collaborator returning the synthetic query vector"""
    engine = mocker.Mock(spec=["embed_query"])
    engine.embed_query.return_value = query_vector()
    return engine


@pytest.fixture
def make_retriever(fake_engine):
    """
    Factory fixture for HybridRetriever over a database path.

    Usage:
        def test_something(seeded_db, make_retriever):
            retriever = make_retriever(seeded_db.db_path, rrf_k=60)
    """
    from vidrecall.retrieval.chunk_store import ChunkStore
    from vidrecall.retrieval.hybrid_retriever import HybridRetriever
    from vidrecall.retrieval.retrieval_config import HybridRetrievalConfig

    def _make(path, engine=None, **config_overrides):
        return HybridRetriever(
            ChunkStore(path),
            embedding_engine=engine or fake_engine,
            config=HybridRetrievalConfig(**config_overrides),
        )

    return _make
