"""Shared helpers for cluster and file access."""

from jobtrace.lib.filesystem import read_optional, read_required
from jobtrace.lib.process import CommandError, check_tool, run_command

__all__ = [
    "CommandError",
    "check_tool",
    "read_optional",
    "read_required",
    "run_command",
]
