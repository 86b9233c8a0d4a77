"""Filesystem utilities for bundle access."""

from typing import TYPE_CHECKING

from jobtrace.errors import SourceUnavailable

if TYPE_CHECKING:
    from jobtrace.core.context import Context


def read_required(
    path: str,
    source: str,
    context: "Context | None" = None,
) -> str:
    """
    Read a file that must exist.

    Args:
        path: Path to file
        source: Evidence source name used in the error
        context: Execution context (for testing)

    Returns:
        File contents

    Raises:
        SourceUnavailable: If the file is missing or unreadable
    """
    if context is None:
        from jobtrace.core.context import Context
        context = Context()

    try:
        return context.read_file(path)
    except FileNotFoundError:
        raise SourceUnavailable(source, f"file not found: {path}")
    except OSError as e:
        raise SourceUnavailable(source, f"cannot read {path}: {e}") from e


def read_optional(
    path: str,
    context: "Context | None" = None,
) -> str | None:
    """
    Read a file that may legitimately be absent.

    Args:
        path: Path to file
        context: Execution context (for testing)

    Returns:
        File contents, or None if the file doesn't exist
    """
    if context is None:
        from jobtrace.core.context import Context
        context = Context()

    if not context.file_exists(path):
        return None
    try:
        return context.read_file(path)
    except OSError:
        return None
