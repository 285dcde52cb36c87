"""
Structured logging for job lifecycle events.
Emits human-readable console lines and, optionally, JSON lines for log shipping.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.markup import escape

log = logging.getLogger(__name__)


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable events.

    Usage:
        logger = StructuredLogger("plexsync.jobs", log_dir=Path("/var/log/plexsync"))
        logger.info("file_fetched", message_id="42", key="root/movies/a.mkv")
    """

    def __init__(self, name: str, log_dir: Path | None = None):
        """
        Initialize structured logger.

        Args:
            name: Logger name used for console output
            log_dir: Directory for JSON log files (None = disabled)
        """
        self.name = name
        self._logger = logging.getLogger(name)
        self._json_file = None
        # Several jobs may log at once
        self._write_lock = threading.Lock()

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"plexsync_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

    @property
    def json_enabled(self) -> bool:
        return self._json_file is not None and not self._json_file.closed

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output, escaped for Rich markup."""
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return escape(" ".join(parts))

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self.json_enabled:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **context,
        }
        try:
            with self._write_lock:
                self._json_file.write(json.dumps(entry, default=str) + "\n")
                self._json_file.flush()
        except OSError as e:
            log.warning(f"JSON event logging failed: {e}")

    def _emit(self, level: int, event: str, **context) -> None:
        # The console already carries these events from the downloader
        self._logger.debug(self._format_message(event, **context))
        self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self.json_enabled:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class JobLogger:
    """Specialized logger for tree download job events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def job_started(self, message_id: str, root: str, file_count: int):
        self.logger.info(
            "job_started", message_id=message_id, root=root, file_count=file_count
        )

    def branch_skipped(self, message_id: str, path: str, reason: str):
        self.logger.info(
            "branch_skipped", message_id=message_id, path=path, reason=reason
        )

    def file_fetched(self, message_id: str, key: str, size_bytes: int):
        self.logger.debug(
            "file_fetched", message_id=message_id, key=key, size_bytes=size_bytes
        )

    def file_failed(self, message_id: str, key: str, error: str):
        self.logger.error("file_failed", message_id=message_id, key=key, error=error)

    def job_completed(
        self,
        message_id: str,
        success: bool,
        files_fetched: int,
        bytes_fetched: int,
        branches_skipped: int,
        duration_s: float,
    ):
        self.logger.info(
            "job_completed",
            message_id=message_id,
            success=success,
            files_fetched=files_fetched,
            bytes_fetched=bytes_fetched,
            size_mb=round(bytes_fetched / (1024 * 1024), 2),
            branches_skipped=branches_skipped,
            duration_s=round(duration_s, 2),
        )


def create_job_logger(log_dir: Path | None = None) -> JobLogger:
    """Create the job event logger, writing JSON lines when log_dir is set."""
    return JobLogger(StructuredLogger("plexsync.jobs", log_dir=log_dir))
