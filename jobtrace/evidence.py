"""
Evidence sources: where log text comes from.

A source is either a live cluster node (journal fetched with
``oc adm node-logs``) or an extracted sosreport bundle on disk. Both expose
the same accessors and go through one EvidenceCache, so every blob is
retrieved at most once per run no matter how many jobs are checked
against it.
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from jobtrace.errors import SourceUnavailable
from jobtrace.lib.filesystem import read_optional, read_required

if TYPE_CHECKING:
    from jobtrace.core.context import Context
    from jobtrace.core.logging import RunLogger


KUBELET_JOURNAL = "sos_commands/openshift/journalctl_--no-pager_--unit_kubelet"
HOSTNAME_FILE = "sos_commands/host/hostname"
DMESG_FILE = "sos_commands/kernel/dmesg_-T"
BOOT_JOURNAL = "sos_commands/logs/journalctl_--no-pager_--catalog_--boot"
CRIO_LOG_TEMPLATE = "sos_commands/crio/containers/logs/crictl_logs_-t_{container_id}"

_SOS_PREFIX_RE = re.compile(r"^sosreport-")
_SOS_DATE_SUFFIX_RE = re.compile(r"-\d{4}-\d{2}-\d{2}-.*$")

Loader = Callable[[], "str | None"]


class EvidenceCache:
    """
    Write-once, read-many store of fetched log text.

    Keys are (source kind, source name, blob) tuples. Failed retrievals are
    not stored, so a later caller may try the same source again.
    """

    def __init__(self):
        self._texts: dict[tuple, str | None] = {}
        self.retrievals = 0

    def get(self, key: tuple, loader: Loader) -> str | None:
        if key in self._texts:
            return self._texts[key]
        self.retrievals += 1
        text = loader()
        self._texts[key] = text
        return text

    def __contains__(self, key: tuple) -> bool:
        return key in self._texts

    def __len__(self) -> int:
        return len(self._texts)


class LiveNodeSource:
    """A cluster node whose full systemd journal is fetched with oc."""

    kind = "node"

    def __init__(
        self,
        node: str,
        context: "Context",
        cache: EvidenceCache,
        workdir: Path,
        logger: "RunLogger | None" = None,
    ):
        self.name = node
        self.context = context
        self.cache = cache
        self.workdir = workdir
        self.logger = logger

    @property
    def label(self) -> str:
        return self.name

    def journal(self) -> str:
        """Full node journal text; raises SourceUnavailable on failure."""
        return self.cache.get((self.kind, self.name, "journal"), self._retrieve)

    def kernel_log(self) -> str | None:
        # journald imports kernel messages, so the node journal carries the
        # oom-kill records as well
        return self.journal()

    def boot_kernel_log(self) -> str | None:
        return None

    def app_log(self, container_id: str) -> str | None:
        return None

    def _retrieve(self) -> str:
        cmd = ["oc", "adm", "node-logs", self.name, "--path=journal"]
        spool = self.workdir / f"{self.name}.journal"
        try:
            result = self.context.run_to_file(cmd, str(spool))
        except OSError as e:
            raise SourceUnavailable(self.name, f"cannot run oc: {e}") from e
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise SourceUnavailable(
                self.name, f"failed to fetch journal (exit {result.returncode}): {stderr}"
            )
        text = read_required(str(spool), self.name, self.context)
        if self.logger:
            self.logger.info("Fetched node journal", node=self.name, bytes=len(text))
        return text


class BundleSource:
    """An extracted sosreport directory."""

    kind = "sosreport"

    def __init__(
        self,
        root: str,
        context: "Context",
        cache: EvidenceCache,
        logger: "RunLogger | None" = None,
    ):
        self.root = root
        self.context = context
        self.cache = cache
        self.logger = logger
        self._name: str | None = None

    @property
    def name(self) -> str:
        """Hostname of the node the bundle was collected on."""
        if self._name is None:
            self._name = infer_hostname(self.root, self.context)
        return self._name

    @property
    def label(self) -> str:
        return os.path.basename(self.root.rstrip("/"))

    def _path(self, relative: str) -> str:
        return os.path.join(self.root, relative)

    def journal(self) -> str:
        """Kubelet journal text; raises SourceUnavailable if missing."""
        path = self._path(KUBELET_JOURNAL)

        def load() -> str:
            text = read_required(path, self.label, self.context)
            if self.logger:
                self.logger.info("Read kubelet journal", bundle=self.label, bytes=len(text))
            return text

        return self.cache.get((self.kind, self.root, "journal"), load)

    def kernel_log(self) -> str | None:
        path = self._path(DMESG_FILE)
        return self.cache.get(
            (self.kind, self.root, "dmesg"), lambda: read_optional(path, self.context)
        )

    def boot_kernel_log(self) -> str | None:
        path = self._path(BOOT_JOURNAL)
        return self.cache.get(
            (self.kind, self.root, "boot"), lambda: read_optional(path, self.context)
        )

    def app_log(self, container_id: str) -> str | None:
        path = self._path(CRIO_LOG_TEMPLATE.format(container_id=container_id))
        text = self.cache.get(
            (self.kind, self.root, f"crio:{container_id}"),
            lambda: read_optional(path, self.context),
        )
        return text or None


def infer_hostname(root: str, context: "Context") -> str:
    """
    Hostname for a sosreport root.

    Reads sos_commands/host/hostname; without it, derives the name from the
    directory (sosreport-<host>-YYYY-MM-DD-<suffix>).
    """
    text = read_optional(os.path.join(root, HOSTNAME_FILE), context)
    lines = text.splitlines() if text else []
    if lines and lines[0].strip():
        return lines[0].strip()
    dirname = os.path.basename(root.rstrip("/"))
    dirname = _SOS_PREFIX_RE.sub("", dirname)
    return _SOS_DATE_SUFFIX_RE.sub("", dirname)


def discover_bundles(directory: str, context: "Context") -> list[str]:
    """
    Find sosreport roots under a directory.

    A root is identified by its kubelet journal at
    <root>/sos_commands/openshift/journalctl_--no-pager_--unit_kubelet.
    """
    journal_name = os.path.basename(KUBELET_JOURNAL)
    parent_dir = os.path.dirname(KUBELET_JOURNAL)
    roots: list[str] = []
    seen: set[str] = set()
    for path in context.rglob(journal_name, directory):
        journal_dir = os.path.dirname(path)
        if journal_dir == parent_dir:
            root = directory
        elif journal_dir.endswith("/" + parent_dir):
            root = journal_dir[: -len(parent_dir) - 1] or "/"
        else:
            continue
        if root not in seen:
            seen.add(root)
            roots.append(root)
    return roots
