"""JSONL logging for investigation runs."""

import copy
import json
import os
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any


def get_log_path(run_name: str = "jobtrace", base_path: Path | None = None) -> Path:
    """
    Get the log file path for a run.

    Args:
        run_name: Log file stem
        base_path: Base directory for logs (default: ~/var/log/jobtrace)

    Returns:
        Path to the log file: {base}/{date}/{run_name}.jsonl
    """
    if base_path is None:
        home = Path(os.environ.get("HOME", "/tmp"))
        base_path = home / "var" / "log" / "jobtrace"

    today = date.today().isoformat()
    return base_path / today / f"{run_name}.jsonl"


class RunLogger:
    """
    JSONL logger for one investigation run.

    Every entry carries the run ID and any fields bound with bind(), so
    the lines for one run or one job can be pulled out of a day's log.
    The file is only created once the first entry is written.
    """

    def __init__(self, log_path: Path | None = None, run_id: str | None = None):
        """
        Initialize logger.

        Args:
            log_path: Path to log file (default: auto-generated)
            run_id: Identifier recorded in every entry (default: random)
        """
        self.log_path = log_path or get_log_path()
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.fields: dict[str, Any] = {}
        self._root = self
        self._file = None

    def bind(self, **fields: Any) -> "RunLogger":
        """Return a child logger that adds fields to every entry it writes."""
        child = copy.copy(self)
        child.fields = {**self.fields, **fields}
        return child

    def _ensure_file(self) -> None:
        """Ensure log file is open."""
        if self._file is None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.log_path, "a")

    def _log(self, level: str, message: str, **extra: Any) -> None:
        """Write a log entry through the root logger's file."""
        root = self._root
        root._ensure_file()
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "run_id": self.run_id,
            "message": message,
            **self.fields,
            **extra,
        }
        root._file.write(json.dumps(entry, default=str) + "\n")
        root._file.flush()

    def debug(self, message: str, **extra: Any) -> None:
        """Log debug message."""
        self._log("debug", message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        """Log info message."""
        self._log("info", message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        """Log warning message."""
        self._log("warning", message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        """Log error message."""
        self._log("error", message, **extra)

    def close(self) -> None:
        """Close the log file. Bound children leave it to the root."""
        if self._root is self and self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "RunLogger":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


class NullLogger(RunLogger):
    """Logger that discards everything (used with --no-log)."""

    def __init__(self):
        super().__init__(log_path=Path(os.devnull))

    def _log(self, level: str, message: str, **extra: Any) -> None:
        pass
