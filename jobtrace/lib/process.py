"""Process utilities for cluster commands."""

from typing import TYPE_CHECKING

from jobtrace.errors import JobtraceError

if TYPE_CHECKING:
    from jobtrace.core.context import Context


class CommandError(JobtraceError):
    """Error running a command."""

    pass


def run_command(
    cmd: list[str],
    context: "Context | None" = None,
) -> str:
    """
    Run a command and return its output.

    Args:
        cmd: Command and arguments
        context: Execution context (for testing)

    Returns:
        Command stdout

    Raises:
        CommandError: If the command cannot be started or exits non-zero
    """
    if context is None:
        from jobtrace.core.context import Context
        context = Context()

    try:
        result = context.run(cmd)
    except OSError as e:
        raise CommandError(f"Command failed: {' '.join(cmd)}: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise CommandError(
            f"Command failed ({result.returncode}): {' '.join(cmd)}: {stderr}"
        )
    return result.stdout


def check_tool(
    name: str,
    context: "Context | None" = None,
    required: bool = False,
) -> bool:
    """
    Check if a tool exists in PATH.

    Args:
        name: Tool name to check
        context: Execution context (for testing)
        required: Raise if tool is missing

    Returns:
        True if tool exists

    Raises:
        CommandError: If required=True and tool is missing
    """
    if context is None:
        from jobtrace.core.context import Context
        context = Context()

    exists = context.check_tool(name)

    if required and not exists:
        raise CommandError(f"Required tool not found: {name}")

    return exists
