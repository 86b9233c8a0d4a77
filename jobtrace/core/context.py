"""Execution context for testability."""

import shutil
import subprocess
from pathlib import Path


class Context:
    """
    Wraps external calls for testability.

    In production: executes real commands and reads real files
    In tests: replaced with MockContext serving canned cluster output
    """

    def check_tool(self, name: str) -> bool:
        """Check if a tool exists in PATH."""
        return shutil.which(name) is not None

    def run(
        self,
        cmd: list[str],
        check: bool = False,
        timeout: int | None = None,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        """
        Run a command and return result.

        Args:
            cmd: Command and arguments as list
            check: Raise on non-zero exit code
            timeout: Timeout in seconds (None waits for the command)
            **kwargs: Additional subprocess.run arguments

        Returns:
            CompletedProcess with stdout, stderr, returncode
        """
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=check,
            timeout=timeout,
            **kwargs,
        )

    def run_to_file(self, cmd: list[str], path: str) -> subprocess.CompletedProcess:
        """
        Run a command with stdout streamed into a file.

        Node journals can be hundreds of megabytes, so they are written
        to disk instead of being buffered through a pipe.

        Args:
            cmd: Command and arguments as list
            path: File receiving stdout

        Returns:
            CompletedProcess with stderr and returncode (stdout is None)
        """
        with open(path, "w") as fh:
            return subprocess.run(
                cmd,
                stdout=fh,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )

    def read_file(self, path: str) -> str:
        """Read file contents, tolerating stray bytes in log captures."""
        return Path(path).read_text(errors="replace")

    def file_exists(self, path: str) -> bool:
        """Check if file exists."""
        return Path(path).is_file()

    def dir_exists(self, path: str) -> bool:
        """Check if directory exists."""
        return Path(path).is_dir()

    def rglob(self, pattern: str, root: str = ".") -> list[str]:
        """Recursively find files matching pattern under root."""
        return sorted(str(p) for p in Path(root).rglob(pattern) if p.is_file())
