"""Logging setup for applications embedding the Berean client.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed once by the host application through :func:`configure_logging`.
"""

from __future__ import annotations

import copy
import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator


DEFAULT_LOG_FILENAME = "berean.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: "36",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "35",
}

# Transport chatter that drowns out generation logs at DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

SECONDS_PER_DAY = 86400


def _rotated_files(log_file: Path) -> Iterator[Path]:
    """Yield ``berean.log.1``, ``berean.log.2``... next to ``log_file``."""
    for path in log_file.parent.glob(f"{log_file.name}.*"):
        if path.suffix[1:].isdigit():
            yield path


def _purge_old_logs(log_dir: Path, log_file: Path, retention_days: int) -> int:
    """Delete rotated copies of ``log_file`` older than ``retention_days``.

    The active file is never touched.

    Returns:
        The number of files removed.
    """
    if retention_days <= 0:
        return 0

    cutoff = time.time() - retention_days * SECONDS_PER_DAY
    removed = 0
    for path in _rotated_files(Path(log_dir) / log_file.name):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed


class CleanupRotatingFileHandler(RotatingFileHandler):
    """Size-rotating file handler that also prunes expired rotations.

    Pruning runs at most once per ``cleanup_interval_seconds``, piggybacking
    on whichever record is emitted first after the interval elapses.
    """

    def __init__(
        self,
        filename: Path,
        max_bytes: int,
        retention_days: int,
        cleanup_interval_seconds: int = 3600,
    ) -> None:
        super().__init__(filename, maxBytes=max_bytes, backupCount=1000, encoding="utf-8")
        self.retention_days = retention_days
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._next_cleanup = 0.0

    def emit(self, record: logging.LogRecord) -> None:
        if self.retention_days > 0 and time.time() >= self._next_cleanup:
            self._next_cleanup = time.time() + self.cleanup_interval_seconds
            log_file = Path(self.baseFilename)
            _purge_old_logs(log_file.parent, log_file, self.retention_days)
        super().emit(record)


class ColorFormatter(logging.Formatter):
    """Colors the level name for terminals."""

    def __init__(self, fmt: str, use_color: bool = True) -> None:
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        code = LEVEL_COLORS.get(record.levelno) if self.use_color else None
        if code is None:
            return super().format(record)
        # Other handlers share the record, so color a copy.
        colored = copy.copy(record)
        colored.levelname = f"\x1b[{code}m{record.levelname}\x1b[0m"
        return super().format(colored)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    isatty = getattr(handler.stream, "isatty", None)
    handler.setFormatter(ColorFormatter(LOG_FORMAT, use_color=bool(isatty and isatty())))
    handler.setLevel(level)
    return handler


def _file_handler(log_file: Path, level: int, max_bytes: int, retention_days: int) -> logging.Handler:
    handler = CleanupRotatingFileHandler(
        filename=log_file,
        max_bytes=max_bytes,
        retention_days=retention_days,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def configure_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    retention_days: int = 14,
) -> Path | None:
    """Install console (and optionally file) handlers on the root logger.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.

    Args:
        level: Level name such as ``"DEBUG"``; unknown names fall back to INFO.
        log_dir: Directory for ``berean.log``; console only when None.
        max_bytes: Size at which the log file rotates.
        retention_days: Age after which rotated files are deleted (0 keeps all).

    Returns:
        The active log file, or None when logging to the console only.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handlers = [_console_handler(log_level)]

    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / DEFAULT_LOG_FILENAME
        handlers.append(_file_handler(log_file, log_level, max_bytes, retention_days))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    dependency_level = logging.INFO if log_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)

    if log_file is not None:
        removed = _purge_old_logs(log_dir, log_file, retention_days)
        if removed:
            logging.getLogger(__name__).info(f"Purged {removed} old log file(s) from {log_dir}")

    return log_file
