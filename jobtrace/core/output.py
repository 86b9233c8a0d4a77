"""Structured output helper for investigation results."""

import json
from typing import Any


class Output:
    """Collects per-job results, errors and warnings for one run."""

    def __init__(self):
        self.data: dict[str, Any] = {}
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def emit(self, data: dict[str, Any]) -> None:
        """Store structured output data."""
        self.data.update(data)

    def error(self, message: str) -> None:
        """Record an error message."""
        self.errors.append(message)

    def warning(self, message: str) -> None:
        """Record a warning message."""
        if message not in self.warnings:
            self.warnings.append(message)

    def to_json(self) -> str:
        """Return data, errors and warnings as a JSON string."""
        payload = dict(self.data)
        payload["errors"] = self.errors
        payload["warnings"] = self.warnings
        return json.dumps(payload, indent=2, default=str)
