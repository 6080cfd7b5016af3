"""Unit tests for logging configuration module.

Tests verify that the logging configuration functions work correctly with different
log levels, formats, and file logging options.
"""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from trustgate_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    handler = next(
        (h for h in root_logger.handlers if type(h) is logging.StreamHandler),
        None,
    )
    assert handler is not None
    return handler


def _file_handler():
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)),
        None,
    )


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),  # Test lowercase
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        """Test setup_logging configures correct log level."""
        setup_logging(log_level=log_level, enable_file=False)

        assert _console_handler().level == expected_level

    def test_root_logger_captures_everything(self):
        setup_logging(log_level="ERROR", enable_file=False)
        assert logging.getLogger().level == logging.DEBUG


class TestSetupLoggingFormats:
    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_setup_logging_with_different_formats(self, log_format, expected_format):
        setup_logging(log_format=log_format, enable_file=False)

        assert _console_handler().formatter._fmt == expected_format


class TestSetupLoggingFileHandling:
    """Test setup_logging file logging functionality."""

    def test_file_logging_needs_setting_and_argument(self, tmp_path: Path):
        with patch("trustgate_ai.core.logging_config.LOG_FILE_DIR", str(tmp_path)):
            with patch("trustgate_ai.core.logging_config.ENABLE_FILE_LOGGING", False):
                setup_logging(enable_file=True)
                assert _file_handler() is None

            with patch("trustgate_ai.core.logging_config.ENABLE_FILE_LOGGING", True):
                setup_logging(enable_file=False)
                assert _file_handler() is None

    def test_file_handler_always_debug(self, tmp_path: Path):
        """Test file handler always logs DEBUG level."""
        log_dir = tmp_path / "new_logs"
        with patch("trustgate_ai.core.logging_config.LOG_FILE_DIR", str(log_dir)):
            with patch("trustgate_ai.core.logging_config.ENABLE_FILE_LOGGING", True):
                setup_logging(log_level="ERROR", enable_file=True)

                file_handler = _file_handler()
                assert file_handler is not None
                assert file_handler.level == logging.DEBUG
                assert (log_dir / "trustgate_ai.log").exists()

                logging.getLogger().removeHandler(file_handler)
                file_handler.close()


class TestSetupLoggingHandlerManagement:
    def test_setup_logging_removes_existing_handlers(self):
        """Calling setup_logging twice should not stack console handlers."""
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)

        console_handlers = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
        assert len(console_handlers) == 1


class TestSetupLoggingModuleSpecificLevels:
    @pytest.mark.parametrize(
        "module_name,expected_level",
        [
            ("trustgate_ai.trust_core.engine", logging.INFO),
            ("trustgate_ai.trust_core.policy", logging.DEBUG),
            ("trustgate_ai.server.api", logging.DEBUG),
            ("httpx", logging.WARNING),
        ],
    )
    def test_module_specific_log_levels(self, module_name, expected_level):
        setup_logging(enable_file=False)
        assert logging.getLogger(module_name).level == expected_level

    def test_all_module_log_levels_configured(self):
        setup_logging(enable_file=False)
        for module_name, level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(module_name).level == getattr(logging, level)


class TestGetLogger:
    def test_get_logger_same_name_returns_same_instance(self):
        assert get_logger("trustgate_ai.trust_core.audit") is get_logger("trustgate_ai.trust_core.audit")

    def test_get_logger_inherits_module_level(self):
        setup_logging(enable_file=False)
        child = get_logger("trustgate_ai.trust_core.audit.stores")
        assert child.getEffectiveLevel() == logging.INFO
