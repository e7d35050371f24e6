"""Fixtures for CLI tests."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep the global callback from reconfiguring the root logger."""
    with patch("stylus_bridge.main._setup_logging") as setup:
        yield setup
