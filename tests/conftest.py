"""Shared fixtures for the stylus-bridge test suite."""

import sys
from pathlib import Path

import pytest

from stylus_bridge.config import StylusConfig, clear_config_cache
from stylus_bridge.js_runtime.bridge import RuntimeConfig
from stylus_bridge.js_runtime.manager import RuntimeManager

FIXTURES_DIR = Path(__file__).parent / "fixtures"
STUB_ENGINE = FIXTURES_DIR / "stub_engine.py"


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep the user's config file and STYLUS_* variables out of tests."""
    for name in (
        "STYLUS_COMPRESS",
        "STYLUS_DEBUG",
        "STYLUS_PATHS",
        "STYLUS_PLUGIN_PATHS",
        "STYLUS_RUNTIME",
        "STYLUS_ENGINE_PATH",
        "STYLUS_STARTUP_TIMEOUT",
        "STYLUS_REQUEST_TIMEOUT",
        "STYLUS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STYLUS_CONFIG_DIR", str(tmp_path / "config"))

    clear_config_cache()
    RuntimeManager.reset_instance()
    yield
    RuntimeManager.reset_instance()
    clear_config_cache()


@pytest.fixture
def stub_runtime_config():
    """Runtime configuration launching the Python stub engine."""
    return RuntimeConfig(
        runner_path=STUB_ENGINE,
        runtime_executable=sys.executable,
        startup_timeout=10.0,
        request_timeout=10.0,
    )


@pytest.fixture
def stub_manager(stub_runtime_config):
    """A manager bound to a fresh config and the stub engine."""
    manager = RuntimeManager(StylusConfig(), stub_runtime_config)
    yield manager
    manager.shutdown()
