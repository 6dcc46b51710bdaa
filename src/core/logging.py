from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional

LOG_FILE_PREFIX = "brave-debug-"
LOG_FILE_SUFFIX = ".txt"
ROOT_LOGGER_NAME = "udemigo"


class UtcFormatter(logging.Formatter):
    """Formatter that renders timestamps in UTC using ISO-8601."""

    converter = time.gmtime

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="seconds")


@dataclass(frozen=True)
class LogEntry:
    """One formatted log line kept in memory for the debug window."""

    timestamp: str
    level: str
    message: str

    def format(self) -> str:
        return f"{self.timestamp} {self.level} {self.message}"


def new_log_filename(now: Optional[datetime] = None) -> str:
    """Return a fresh ``brave-debug-<timestamp>.txt`` name."""
    now = now or datetime.now()
    return f"{LOG_FILE_PREFIX}{now.strftime('%Y-%m-%dT%H-%M-%S-%f')}{LOG_FILE_SUFFIX}"


def list_log_files(log_dir: Path) -> List[Path]:
    """Log files in ``log_dir``, most recently modified first."""
    if not log_dir.exists():
        return []
    files = [
        p for p in log_dir.iterdir()
        if p.is_file() and p.name.startswith(LOG_FILE_PREFIX) and p.name.endswith(LOG_FILE_SUFFIX)
    ]
    files.sort(key=lambda p: (p.stat().st_mtime, p.name), reverse=True)
    return files


def prune_log_files(log_dir: Path, retention: int, keep: Optional[Path] = None) -> List[Path]:
    """
    Delete all but the ``retention`` most recently modified log files.

    Args:
        log_dir: Directory holding the log files
        retention: Number of files to keep, ``keep`` included
        keep: File that must survive regardless of its age (the active file)

    Returns:
        Paths that were removed
    """
    candidates = list_log_files(log_dir)
    allowed = max(retention, 1)
    if keep is not None:
        candidates = [p for p in candidates if p != keep]
        allowed -= 1
    removed: List[Path] = []
    for path in candidates[allowed:]:
        try:
            path.unlink()
            removed.append(path)
        except OSError:
            # Another process may hold the file open on Windows; try again next rotation.
            continue
    return removed


class TimestampedRotatingFileHandler(RotatingFileHandler):
    """
    Size-rotating handler that starts a new timestamped file on rollover.

    Unlike the stock handler, rotated files are not renamed to ``.1``/``.2``.
    Each rollover opens ``brave-debug-<timestamp>.txt`` and prunes the
    directory down to ``retention`` files.
    """

    def __init__(self, log_dir: Path, max_bytes: int, retention: int, encoding: str = "utf-8") -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.retention = retention
        super().__init__(
            self.log_dir / new_log_filename(),
            mode="a",
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )
        prune_log_files(self.log_dir, retention, keep=self.current_path)

    @property
    def current_path(self) -> Path:
        return Path(self.baseFilename)

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        # backupCount=0 disables rollover in the base class; size is all that matters here.
        if self.maxBytes <= 0:
            return False
        if self.stream is None:
            self.stream = self._open()
        msg = "%s\n" % self.format(record)
        self.stream.seek(0, 2)
        position = self.stream.tell()
        # An oversized record still goes into an empty file.
        return position > 0 and position + len(msg) >= self.maxBytes

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None
        next_path = self.log_dir / new_log_filename()
        while next_path == self.current_path or next_path.exists():
            next_path = self.log_dir / new_log_filename()
        self.baseFilename = str(next_path)
        self.stream = self._open()
        prune_log_files(self.log_dir, self.retention, keep=self.current_path)


class RingBufferHandler(logging.Handler):
    """Keeps the last N records in memory and pushes them to subscribers."""

    def __init__(self, capacity: int = 1000) -> None:
        super().__init__()
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._subscribers: List[Callable[[LogEntry], None]] = []
        self._guard = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            formatter = self.formatter or logging.Formatter()
            entry = LogEntry(
                timestamp=formatter.formatTime(record, None),
                level=record.levelname,
                message=f"{record.name} {record.getMessage()}",
            )
        except Exception:
            self.handleError(record)
            return
        with self._guard:
            self._entries.append(entry)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(entry)
            except Exception:
                self.handleError(record)

    def entries(self) -> List[LogEntry]:
        with self._guard:
            return list(self._entries)

    def subscribe(self, callback: Callable[[LogEntry], None]) -> None:
        with self._guard:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEntry], None]) -> None:
        with self._guard:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()


_ring_buffer = RingBufferHandler()


def configure_logging(
    log_dir: Path,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB default
    retention: int = 5,
    ring_buffer_size: int = 1000,
) -> Logger:
    """
    Configure the application logger with console, rotating file and ring buffer handlers.

    The file sink is always enabled, packaged builds included: it is the only
    diagnostic channel end users can send back.

    Args:
        log_dir: Directory for log files
        level: Logging level (default: INFO)
        max_bytes: Size at which a new log file is started (default: 5 MB)
        retention: Number of log files to keep (default: 5)
        ring_buffer_size: Number of entries kept in memory for the debug window

    Returns:
        Configured application logger
    """
    global _ring_buffer

    formatter = UtcFormatter(
        fmt="%(asctime)sZ %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if handler is not _ring_buffer:
            handler.close()

    file_handler = TimestampedRotatingFileHandler(log_dir, max_bytes=max_bytes, retention=retention)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if _ring_buffer.capacity != ring_buffer_size:
        previous = _ring_buffer
        _ring_buffer = RingBufferHandler(ring_buffer_size)
        for callback in list(previous._subscribers):
            _ring_buffer.subscribe(callback)
    _ring_buffer.setFormatter(formatter)
    root_logger.addHandler(_ring_buffer)

    root_logger.debug("Logging configured. File: %s (max %d bytes, %d files kept)",
                      file_handler.current_path, max_bytes, retention)
    return root_logger


def get_logger(name: Optional[str] = None) -> Logger:
    """Return a child logger under the application namespace."""
    base = logging.getLogger(ROOT_LOGGER_NAME)
    if name:
        return base.getChild(name)
    return base


def get_ring_buffer() -> RingBufferHandler:
    """Return the process-wide in-memory log buffer."""
    return _ring_buffer


def get_file_handler() -> Optional[TimestampedRotatingFileHandler]:
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        if isinstance(handler, TimestampedRotatingFileHandler):
            return handler
    return None


def get_logging_info() -> Dict[str, object]:
    """Describe the active file sink (directory, current file, retained files)."""
    handler = get_file_handler()
    if handler is None:
        return {"enabled": False, "log_dir": None, "current_file": None, "files": []}
    files = list_log_files(handler.log_dir)
    return {
        "enabled": True,
        "log_dir": str(handler.log_dir),
        "current_file": str(handler.current_path),
        "max_bytes": handler.maxBytes,
        "retention": handler.retention,
        "files": [{"name": p.name, "size": p.stat().st_size} for p in files],
        "buffered_entries": len(_ring_buffer.entries()),
    }
