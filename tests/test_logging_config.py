"""Tests for logging configuration."""

import logging
import os
import time

import pytest

from berean.logging_config import (
    DEFAULT_LOG_FILENAME,
    CleanupRotatingFileHandler,
    ColorFormatter,
    _purge_old_logs,
    configure_logging,
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_only(restore_root_logger):
    log_file = configure_logging(level="DEBUG")

    assert log_file is None
    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert logging.getLogger("httpx").level == logging.INFO


def test_noisy_loggers_quieted(restore_root_logger):
    configure_logging(level="INFO")
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_file_handler_writes(tmp_path, restore_root_logger):
    log_file = configure_logging(level="INFO", log_dir=tmp_path / "logs")

    assert log_file == tmp_path / "logs" / DEFAULT_LOG_FILENAME
    assert any(
        isinstance(h, CleanupRotatingFileHandler) for h in restore_root_logger.handlers
    )

    logging.getLogger("berean.test").info("hello log")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert "hello log" in log_file.read_text()


def test_purge_old_logs(tmp_path):
    log_file = tmp_path / DEFAULT_LOG_FILENAME
    log_file.write_text("current")
    old = tmp_path / f"{DEFAULT_LOG_FILENAME}.1"
    old.write_text("old")
    recent = tmp_path / f"{DEFAULT_LOG_FILENAME}.2"
    recent.write_text("recent")

    stale = time.time() - 30 * 86400
    os.utime(old, (stale, stale))
    os.utime(log_file, (stale, stale))

    removed = _purge_old_logs(tmp_path, log_file, retention_days=14)

    assert removed == 1
    assert not old.exists()
    assert recent.exists()
    assert log_file.exists()


def test_purge_disabled(tmp_path):
    log_file = tmp_path / DEFAULT_LOG_FILENAME
    assert _purge_old_logs(tmp_path, log_file, retention_days=0) == 0


def test_color_formatter_restores_levelname():
    formatter = ColorFormatter("%(levelname)s %(message)s", use_color=True)
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)

    output = formatter.format(record)

    assert "\x1b[31m" in output
    assert record.levelname == "ERROR"


def test_plain_formatter_has_no_color():
    formatter = ColorFormatter("%(levelname)s %(message)s", use_color=False)
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "fine", None, None)

    assert formatter.format(record) == "INFO fine"
