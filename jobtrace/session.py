"""Per-run resolution state."""

import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from jobtrace.core.logging import NullLogger
from jobtrace.evidence import BundleSource, EvidenceCache, LiveNodeSource

if TYPE_CHECKING:
    from jobtrace.core.context import Context
    from jobtrace.core.logging import RunLogger


class ResolutionSession:
    """
    Owns everything mutable during one investigation run.

    Holds the evidence cache, the job -> node table built by the locator and
    the spool directory for live journals. Use as a context manager; the
    spool directory is removed on exit, including when an exception escapes.
    """

    def __init__(self, context: "Context", logger: "RunLogger | None" = None):
        self.context = context
        self.logger = logger or NullLogger()
        self.cache = EvidenceCache()
        self.job_nodes: dict[int, str | None] = {}
        self._nodes: dict[str, LiveNodeSource] = {}
        self._bundles: dict[str, BundleSource] = {}
        self._workdir: Path | None = None

    @property
    def workdir(self) -> Path:
        if self._workdir is None:
            self._workdir = Path(tempfile.mkdtemp(prefix="jobtrace-"))
        return self._workdir

    def node(self, name: str) -> LiveNodeSource:
        """The (shared) evidence source for a cluster node."""
        if name not in self._nodes:
            self._nodes[name] = LiveNodeSource(
                name, self.context, self.cache, self.workdir, self.logger
            )
        return self._nodes[name]

    def bundle(self, root: str) -> BundleSource:
        """The (shared) evidence source for a sosreport root."""
        if root not in self._bundles:
            self._bundles[root] = BundleSource(root, self.context, self.cache, self.logger)
        return self._bundles[root]

    def jobs_by_node(self) -> dict[str, list[int]]:
        """Reverse grouping of resolved jobs, in job insertion order."""
        groups: dict[str, list[int]] = {}
        for job_id, node in self.job_nodes.items():
            if node:
                groups.setdefault(node, []).append(job_id)
        return groups

    def close(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None

    def __enter__(self) -> "ResolutionSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
