# conftest.py
"""
Pytest configuration and fixtures for the vidrecall test suite.

Every test starts from default configuration: process-wide singletons
(config manager, embedding engine, metrics registry) are dropped and
VIDRECALL_* environment variables are cleared.
"""

import pytest


VIDRECALL_ENV_VARS = (
    "VIDRECALL_CONFIG",
    "VIDRECALL_RETRIEVAL_MODE",
    "VIDRECALL_PARTIAL_FAILURE",
    "VIDRECALL_RETRIEVAL_DEBUG",
    "VIDRECALL_DB_PATH",
)


@pytest.fixture(autouse=True)
def isolated_vidrecall_state(monkeypatch, tmp_path):
    """
    Reset singletons and environment around each test.

    Default config lookup points at an empty tmp dir so a developer's
    config/retrieval.yaml never leaks into a test.
    """
    from vidrecall.retrieval.embedding_engine import reset_embedding_engine
    from vidrecall.retrieval.metrics_registry import reset_metrics_registry
    from vidrecall.retrieval.retrieval_config import (
        RetrievalConfigManager,
        reset_retrieval_config_manager,
    )

    for name in VIDRECALL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        RetrievalConfigManager,
        "DEFAULT_CONFIG_PATHS",
        [str(tmp_path / "config" / "retrieval.yaml")],
    )

    reset_retrieval_config_manager()
    reset_embedding_engine()
    reset_metrics_registry()
    yield
    reset_retrieval_config_manager()
    reset_embedding_engine()
    reset_metrics_registry()


# pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (may be slower)",
    )
    config.addinivalue_line("markers", "database: marks tests that use database connections")
    config.addinivalue_line("markers", "smoke: marks quick import health checks")


def pytest_collection_modifyitems(config, items):
    """Add markers to tests based on their names."""
    for item in items:
        if "db" in item.name.lower() or "store" in item.name.lower():
            item.add_marker(pytest.mark.database)

        if "integration" in item.name.lower() or "end_to_end" in item.name.lower():
            item.add_marker(pytest.mark.integration)
