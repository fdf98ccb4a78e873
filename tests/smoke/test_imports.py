"""Smoke tests for basic import health checks."""

import pytest


@pytest.mark.smoke
def test_imports_smoke():
    """The package and its public surface import cleanly."""
    import vidrecall
    from vidrecall import HybridRetriever, aggregate_by_video  # noqa: F401

    assert isinstance(vidrecall.__version__, str) and len(vidrecall.__version__) > 0


@pytest.mark.smoke
def test_api_and_cli_import():
    """Importing the API app and CLI never touches a database or model."""
    from vidrecall.api.app import app
    from vidrecall.cli import app as cli_app

    assert app.title == "vidrecall search API"
    assert cli_app is not None
