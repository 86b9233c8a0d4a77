"""
Extraction functions for the log record shapes jobtrace understands.

Each function handles exactly one record shape (kubelet kill event,
PLEG container-finished, kernel oom-kill summary, ...) so a new kernel or
kubelet format variant is a new pattern here, not a change elsewhere.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache


CONTAINER_ID = r"[0-9a-f]{64}"
CONTAINER_ID_RE = re.compile(rf"(?<![0-9a-f])({CONTAINER_ID})(?![0-9a-f])")
UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
)

# kubelet: "Killing container with a grace period" ... containerName="worker"
#          containerID="cri-o://<id>" gracePeriod=30
WORKER_KILL_RE = re.compile(
    rf'containerName="worker"\s+containerID="(?:cri-o|containerd|docker)://({CONTAINER_ID})"'
)
# kubelet generic.go: "Generic (PLEG): container finished" podID="<uuid>"
#                     containerID="<id>" exitCode=137
FINISHED_ID_RE = re.compile(rf'containerID="({CONTAINER_ID})"')
POD_UID_FIELD_RE = re.compile(
    r'(?:podUID|podID|"ID")[=:]"?([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})'
)
# kubelet PLEG: event={"ID":"<uuid>","Type":"ContainerStarted","Data":"<id>"}
PLEG_STARTED_RE = re.compile(rf'"ContainerStarted","Data":"?({CONTAINER_ID})')
# cri-o: Created container <id>: aap/automation-job-4-abcde/worker
CRIO_CREATED_RE = re.compile(rf"(?:Created|Started) container:? ({CONTAINER_ID})")

# kernel summary record "oom-kill:constraint=...". systemd also logs
# "Failed with result 'oom-kill'" for the scope, which is not a kernel record.
OOM_KILL_RECORD_RE = re.compile(r"\boom-kill:")
OOM_INVOKED_MARKER = "invoked oom-killer"
EVICTION_MARKER = "eviction_manager"
TASKS_STATE_HEADER = "Tasks state (memory values in pages)"

OOM_CGROUP_FIELD_RE = re.compile(r"\b(cpuset|oom_memcg|task_memcg)=([^,\s]+)")
OOM_PID_RE = re.compile(r"\bpid=(\d+)")
OOM_TASK_RE = re.compile(r"\btask=([^,]+)")

KILLED_PROCESS_RE = re.compile(r"Killed process (\d+) \(([^)]*)\)")
KILLED_FIELD_RES = {
    "total_vm": re.compile(r"total-vm:(\d+)kB"),
    "anon_rss": re.compile(r"anon-rss:(\d+)kB"),
    "file_rss": re.compile(r"file-rss:(\d+)kB"),
    "shmem_rss": re.compile(r"shmem-rss:(\d+)kB"),
}
MEMCG_USAGE_RE = re.compile(
    r"memory: usage (\d+)kB, limit (\d+)kB, failcnt (\d+)"
)
# Tasks state rows. pid brackets may be padded ("[    555]") or not
# ("[555]"); rss is always the fourth number after the bracket, both for
# the pgtables_bytes layout and the older nr_ptes/nr_pmds layout.
TASK_ROW_RE = re.compile(r"\[\s*(\d+)\s*\]((?:\s+-?\d+){5,})\s+(\S+)\s*$")


@lru_cache(maxsize=256)
def job_tag_re(job_id: int) -> re.Pattern:
    """Pattern for the job tag "job-<id>" that does not also match job-<id>N."""
    return re.compile(rf"job-{job_id}(?!\d)")


def has_job_tag(line: str, job_id: int) -> bool:
    return job_tag_re(job_id).search(line) is not None


def job_lines(text: str, job_id: int) -> list[str]:
    """All lines of text tagged with the job."""
    tag = job_tag_re(job_id)
    return [line for line in text.splitlines() if tag.search(line)]


def extract_worker_kill_id(line: str) -> str | None:
    """Container ID from a kubelet kill record naming the worker container."""
    m = WORKER_KILL_RE.search(line)
    return m.group(1) if m else None


def extract_finished_id(line: str) -> str | None:
    """Container ID from a "container finished" lifecycle record."""
    if "container finished" not in line:
        return None
    m = FINISHED_ID_RE.search(line)
    return m.group(1) if m else None


def extract_pod_uid(line: str) -> str | None:
    """Pod instance UUID from a record, preferring explicit UID fields."""
    m = POD_UID_FIELD_RE.search(line)
    if m:
        return m.group(1)
    m = UUID_RE.search(line)
    return m.group(0) if m else None


def extract_started_ids(line: str) -> list[str]:
    """Container IDs from container-start records (kubelet PLEG or cri-o)."""
    ids = PLEG_STARTED_RE.findall(line)
    ids.extend(CRIO_CREATED_RE.findall(line))
    return ids


def is_eviction_line(line: str) -> bool:
    return EVICTION_MARKER in line


def is_oom_kill_line(line: str) -> bool:
    return OOM_KILL_RECORD_RE.search(line) is not None


def is_oom_invoked_line(line: str) -> bool:
    return OOM_INVOKED_MARKER in line


@dataclass
class OomKillRecord:
    """Parsed kernel "oom-kill:" summary record."""

    line: str
    cgroups: dict[str, str] = field(default_factory=dict)
    pid: int | None = None
    task: str | None = None

    def references(self, container_id: str) -> bool:
        """True if the record's cgroup paths name the container."""
        if self.cgroups:
            return any(container_id in path for path in self.cgroups.values())
        return container_id in self.line


def parse_oom_kill(line: str) -> OomKillRecord | None:
    """Parse an oom-kill record; None if the line is not one."""
    if not is_oom_kill_line(line):
        return None
    record = OomKillRecord(line=line)
    record.cgroups = dict(OOM_CGROUP_FIELD_RE.findall(line))
    m = OOM_PID_RE.search(line)
    if m:
        record.pid = int(m.group(1))
    m = OOM_TASK_RE.search(line)
    if m:
        record.task = m.group(1).strip()
    return record


def parse_killed_process(line: str) -> dict | None:
    """
    Parse the kernel "Killed process" victim line.

    Every size field is optional; older kernels omit shmem-rss and some
    distributions truncate the line.
    """
    m = KILLED_PROCESS_RE.search(line)
    if not m:
        return None
    victim: dict = {"pid": int(m.group(1)), "name": m.group(2)}
    for key, pattern in KILLED_FIELD_RES.items():
        fm = pattern.search(line)
        if fm:
            victim[key] = int(fm.group(1))
    return victim


def parse_memcg_usage(line: str) -> dict | None:
    """Parse "memory: usage NkB, limit NkB, failcnt N"."""
    m = MEMCG_USAGE_RE.search(line)
    if not m:
        return None
    return {
        "usage": int(m.group(1)),
        "limit": int(m.group(2)),
        "failcnt": int(m.group(3)),
    }


def parse_task_row(line: str) -> tuple[int, str, int] | None:
    """Parse a Tasks state row into (pid, name, rss_pages)."""
    m = TASK_ROW_RE.search(line)
    if not m:
        return None
    numbers = m.group(2).split()
    # uid tgid total_vm rss ...
    return int(m.group(1)), m.group(3), int(numbers[3])


def extract_event_node(message: str, job_id: int) -> str | None:
    """
    Node name from a scheduler event message.

    "Successfully assigned aap/automation-job-4-x8k2p to worker-1" puts the
    node in the fifth whitespace-separated token.
    """
    if "assigned" not in message:
        return None
    tag = job_tag_re(job_id)
    m = tag.search(message)
    if not m or m.start() < message.index("assigned"):
        return None
    tokens = message.split()
    if len(tokens) < 5:
        return None
    return tokens[4]
