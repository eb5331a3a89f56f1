"""Pytest configuration and fixtures for gittyup tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from gittyup.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure logging for console-only mode during tests.

    Debug output shows up in failing test reports, and nothing is
    sent to logfire.dev.
    """
    test_log_root = Path(tempfile.gettempdir()) / "gittyup-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["gittyup"]
    yield
    sys.argv = original
