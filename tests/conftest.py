"""Shared test fixtures."""

import fnmatch
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Add project root to path so tests run without an install
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

FIXTURES_DIR = Path(__file__).parent / "fixtures"

WORKER_ID = "a" * 64
SANDBOX_ID = "b" * 64
OTHER_JOB_ID = "c" * 64
LIVE_JOB12_ID = "d" * 64
LIVE_JOB13_ID = "e" * 64
LIVE_JOB20_ID = "f" * 64

EVENTS_CMD = ("oc", "get", "events", "-o", "json", "--all-namespaces")
NODES_CMD = (
    "oc", "get", "nodes", "-l", "node-role.kubernetes.io/worker",
    "-o", "jsonpath={.items[*].metadata.name}",
)


def node_logs_cmd(node: str) -> tuple:
    return ("oc", "adm", "node-logs", node, "--path=journal")


class MockContext:
    """Mock Context for testing without a cluster or real sosreports."""

    def __init__(
        self,
        tools_available: list[str] | None = None,
        command_outputs: dict[tuple, str | Exception | subprocess.CompletedProcess] | None = None,
        file_contents: dict[str, str] | None = None,
    ):
        self.tools_available = set(tools_available or [])
        self.command_outputs = command_outputs or {}
        self.file_contents = file_contents or {}
        self.commands_run: list[list[str]] = []

    def check_tool(self, name: str) -> bool:
        """Check if tool is in mocked available list."""
        return name in self.tools_available

    def _lookup(self, cmd: list[str]):
        self.commands_run.append(cmd)
        key = tuple(cmd)
        if key not in self.command_outputs:
            raise KeyError(f"No mock output for command: {cmd}")
        output = self.command_outputs[key]
        if isinstance(output, Exception):
            raise output
        return output

    def run(
        self,
        cmd: list[str],
        check: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        """Return mocked command output."""
        output = self._lookup(cmd)

        # Allow passing CompletedProcess directly (e.g. non-zero returncode)
        if isinstance(output, subprocess.CompletedProcess):
            return output

        return subprocess.CompletedProcess(cmd, returncode=0, stdout=output, stderr="")

    def run_to_file(self, cmd: list[str], path: str) -> subprocess.CompletedProcess:
        """Store mocked stdout as the content of path."""
        output = self._lookup(cmd)
        if isinstance(output, subprocess.CompletedProcess):
            if output.returncode == 0:
                self.file_contents[path] = output.stdout or ""
            return subprocess.CompletedProcess(
                cmd, returncode=output.returncode, stdout=None, stderr=output.stderr
            )
        self.file_contents[path] = output
        return subprocess.CompletedProcess(cmd, returncode=0, stdout=None, stderr="")

    def fetch_count(self, node: str) -> int:
        """How many times a node journal was requested."""
        return self.commands_run.count(list(node_logs_cmd(node)))

    def read_file(self, path: str) -> str:
        """Return mocked file content."""
        if path not in self.file_contents:
            raise FileNotFoundError(f"No mock content for: {path}")
        return self.file_contents[path]

    def file_exists(self, path: str) -> bool:
        """Check if path is in mocked files."""
        return path in self.file_contents

    def dir_exists(self, path: str) -> bool:
        """A directory exists if any mocked file lives under it."""
        prefix = path.rstrip("/") + "/"
        return any(p.startswith(prefix) for p in self.file_contents)

    def rglob(self, pattern: str, root: str = ".") -> list[str]:
        """Return mocked files under root whose name matches pattern."""
        prefix = root.rstrip("/") + "/"
        return sorted(
            p for p in self.file_contents
            if p.startswith(prefix) and fnmatch.fnmatch(os.path.basename(p), pattern)
        )



@pytest.fixture
def mock_context():
    """Factory fixture for creating MockContext instances."""
    def _create(**kwargs) -> MockContext:
        return MockContext(**kwargs)
    return _create


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to test fixtures directory."""
    return FIXTURES_DIR


def load_fixture(category: str, name: str) -> str:
    """Load a fixture file by category and name."""
    fixture_path = FIXTURES_DIR / category / name
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture not found: {fixture_path}")
    return fixture_path.read_text()


def make_bundle(base: Path, dirname: str, kubelet: str, dmesg: str | None = None,
                hostname: str | None = None, boot: str | None = None,
                crio_logs: dict[str, str] | None = None) -> Path:
    """Lay out a minimal extracted sosreport on disk."""
    root = base / dirname
    journal = root / "sos_commands" / "openshift" / "journalctl_--no-pager_--unit_kubelet"
    journal.parent.mkdir(parents=True)
    journal.write_text(kubelet)
    if dmesg is not None:
        path = root / "sos_commands" / "kernel" / "dmesg_-T"
        path.parent.mkdir(parents=True)
        path.write_text(dmesg)
    if hostname is not None:
        path = root / "sos_commands" / "host" / "hostname"
        path.parent.mkdir(parents=True)
        path.write_text(hostname)
    if boot is not None:
        path = root / "sos_commands" / "logs" / "journalctl_--no-pager_--catalog_--boot"
        path.parent.mkdir(parents=True)
        path.write_text(boot)
    for cid, text in (crio_logs or {}).items():
        path = root / "sos_commands" / "crio" / "containers" / "logs" / f"crictl_logs_-t_{cid}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return root


def live_outputs() -> dict:
    """Canned oc output for a two-node cluster."""
    return {
        EVENTS_CMD: load_fixture("live", "events.json"),
        NODES_CMD: "worker-1 worker-2",
        node_logs_cmd("worker-1"): load_fixture("live", "worker-1.journal"),
        node_logs_cmd("worker-2"): load_fixture("live", "worker-2.journal"),
    }
