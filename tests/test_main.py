"""Tests for CLI logging setup."""

import logging
from unittest.mock import patch

from stylus_bridge.config import LoggingConfig
from stylus_bridge.main import _setup_logging


class TestSetupLogging:
    """Test _setup_logging level selection."""

    def _console_level(self, basic_config):
        handlers = basic_config.call_args.kwargs["handlers"]
        return handlers[-1].level

    def test_default_level(self):
        with patch("logging.basicConfig") as basic_config:
            _setup_logging()
        assert self._console_level(basic_config) == logging.WARNING

    def test_configured_default_level(self):
        with patch("logging.basicConfig") as basic_config:
            _setup_logging(settings=LoggingConfig(level="info"))
        assert self._console_level(basic_config) == logging.INFO

    def test_unknown_default_level_falls_back(self):
        with patch("logging.basicConfig") as basic_config:
            _setup_logging(settings=LoggingConfig(level="LOUD"))
        assert self._console_level(basic_config) == logging.WARNING

    def test_flags(self):
        for kwargs, level in (
            ({"debug": True}, logging.DEBUG),
            ({"verbose": True}, logging.INFO),
            ({"quiet": True}, logging.ERROR),
        ):
            with patch("logging.basicConfig") as basic_config:
                _setup_logging(**kwargs)
            assert self._console_level(basic_config) == level

    def test_log_file_captures_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "stylus.log"
        with patch("logging.basicConfig") as basic_config:
            _setup_logging(log_file=log_file)

        kwargs = basic_config.call_args.kwargs
        assert kwargs["level"] == logging.DEBUG
        file_handler = kwargs["handlers"][0]
        assert isinstance(file_handler, logging.FileHandler)
        assert file_handler.level == logging.DEBUG
        assert log_file.parent.is_dir()
        file_handler.close()

    def test_configured_log_file(self, tmp_path):
        log_file = tmp_path / "configured.log"
        with patch("logging.basicConfig") as basic_config:
            _setup_logging(settings=LoggingConfig(file=log_file))

        file_handler = basic_config.call_args.kwargs["handlers"][0]
        assert file_handler.baseFilename == str(log_file)
        file_handler.close()

    def test_debug_adds_source_location(self):
        with patch("logging.basicConfig") as basic_config:
            _setup_logging(debug=True, settings=LoggingConfig(format="%(levelname)s %(message)s"))
        assert basic_config.call_args.kwargs["format"] == "%(levelname)s [%(filename)s:%(lineno)d] %(message)s"
