"""
Tests for the logging configuration module.
"""

import logging
import os
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from contact_mirror.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    LOG_FILE_PREFIX,
    ROOT_LOGGER_NAME,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_logging,
    stream_supports_color,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Leave the package logger without handlers after each test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @pytest.mark.parametrize("value", ["1", "true", "YES"])
    def test_debug_flag(self, value):
        with patch.dict(os.environ, {"CONTACT_MIRROR_DEBUG": value}):
            assert get_log_level_from_env() == logging.DEBUG

    @pytest.mark.parametrize(
        "name,level",
        [
            ("WARNING", logging.WARNING),
            ("warn", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
            ("INVALID", logging.INFO),
        ],
    )
    def test_level_names(self, name, level):
        with patch.dict(
            os.environ, {"CONTACT_MIRROR_LOG_LEVEL": name, "CONTACT_MIRROR_DEBUG": ""}
        ):
            assert get_log_level_from_env() == level

    def test_default_is_info(self, monkeypatch):
        monkeypatch.delenv("CONTACT_MIRROR_LOG_LEVEL", raising=False)
        monkeypatch.delenv("CONTACT_MIRROR_DEBUG", raising=False)
        assert get_log_level_from_env() == logging.INFO


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {"CONTACT_MIRROR_LOG_FILE": "/custom/path/app.log"})
    def test_custom_log_file_from_env(self):
        assert get_log_file_path() == Path("/custom/path/app.log")

    @pytest.mark.parametrize("value", ["none", "disabled", ""])
    def test_disabled_from_env(self, value):
        with patch.dict(os.environ, {"CONTACT_MIRROR_LOG_FILE": value}):
            assert get_log_file_path() is None

    def test_dated_file_in_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONTACT_MIRROR_LOG_FILE", raising=False)
        path = get_log_file_path(tmp_path)
        assert path.parent == tmp_path
        assert path.name.startswith(LOG_FILE_PREFIX)
        assert path.suffix == ".log"


class TestColoredFormatter:
    """Tests for ColoredFormatter class."""

    def test_colors_disabled(self):
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        assert formatter.use_colors is False

    @patch("sys.stderr")
    def test_non_tty_disables_colors(self, mock_stderr):
        mock_stderr.isatty.return_value = False
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    @patch("sys.stderr")
    def test_respects_no_color(self, mock_stderr):
        mock_stderr.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    def test_colored_output_does_not_alter_record(self):
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        formatter.use_colors = True
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )

        result = formatter.format(record)

        assert "\033[32m" in result
        assert record.levelname == "INFO"
        assert record.msg == "Test message"


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_package_logger(self):
        logger = setup_logging(enable_file_logging=False)
        assert logger.name == ROOT_LOGGER_NAME
        assert logger.propagate is False

    def test_verbose_uses_debug(self):
        logger = setup_logging(verbose=True, enable_file_logging=False)
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_explicit_level(self):
        logger = setup_logging(level=logging.WARNING, enable_file_logging=False)
        assert logger.level == logging.WARNING

    def test_handlers_replaced_on_repeat(self):
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)
        assert len(logger.handlers) == 1

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "test.log"
        logger = setup_logging(log_file=log_file, use_colors=False)

        logger.debug("Debug detail")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        assert "Debug detail" in log_file.read_text(encoding="utf-8")

    def test_file_in_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONTACT_MIRROR_LOG_FILE", raising=False)
        setup_logging(log_dir=tmp_path / "logs", use_colors=False)
        assert len(list((tmp_path / "logs").glob(f"{LOG_FILE_PREFIX}*.log"))) == 1


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs."""

    def test_keeps_newest(self, tmp_path):
        for day in range(1, 5):
            path = tmp_path / f"{LOG_FILE_PREFIX}2026010{day}.log"
            path.write_text("x", encoding="utf-8")
            os.utime(path, (time.time() + day, time.time() + day))

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 2
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == [
            f"{LOG_FILE_PREFIX}20260103.log",
            f"{LOG_FILE_PREFIX}20260104.log",
        ]

    def test_zero_disables_cleanup(self, tmp_path):
        (tmp_path / f"{LOG_FILE_PREFIX}20260101.log").write_text("x", encoding="utf-8")
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0


class TestGetLogger:
    """Tests for get_logger function."""

    def test_module_name_kept(self):
        assert get_logger("contact_mirror.sync").name == "contact_mirror.sync"

    def test_prefix_added(self):
        assert get_logger("mymodule").name == "contact_mirror.mymodule"

    def test_root_name_kept(self):
        assert get_logger(ROOT_LOGGER_NAME).name == ROOT_LOGGER_NAME


class TestStreamSupportsColor:
    """Tests for stream_supports_color."""

    def test_stream_without_isatty(self):
        assert stream_supports_color(object()) is False

    @patch.dict(os.environ, {"TERM": "dumb", "NO_COLOR": ""})
    def test_dumb_terminal(self):
        stream = MagicMock()
        stream.isatty.return_value = True
        assert stream_supports_color(stream) is False

    @patch.dict(os.environ, {"TERM": "xterm-256color", "NO_COLOR": ""})
    def test_interactive_terminal(self):
        stream = MagicMock()
        stream.isatty.return_value = True
        assert stream_supports_color(stream) is True


class TestHandlerLevels:
    """Tests for the levels of the installed handlers."""

    def test_file_handler_records_debug_below_console_level(self, tmp_path):
        log_file = tmp_path / "x.log"
        logger = setup_logging(
            level=logging.WARNING, log_file=log_file, use_colors=False
        )

        levels = {type(h): h.level for h in logger.handlers}
        assert levels[logging.StreamHandler] == logging.WARNING
        assert levels[logging.FileHandler] == logging.DEBUG
