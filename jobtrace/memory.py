"""
Memory report extraction from a kernel OOM dump.

A kernel log may hold many OOM reports. The report for one container is
bounded by the "invoked oom-killer" marker preceding its oom-kill record
and the next marker after it, so a long task dump is never truncated and
a neighbouring report never leaks in.
"""

from dataclasses import asdict, dataclass, field

from jobtrace import patterns


PAGE_SIZE_KB = 4
KB_PER_MB = 1024
KB_PER_GB = 1024 * 1024


def format_kb(kb: int) -> str:
    """Render a kB figure with an MB/GB hint: 2048 -> '2048kB (2MB)'."""
    if kb >= KB_PER_GB:
        return f"{kb}kB ({kb / KB_PER_GB:.1f}GB)"
    if kb >= KB_PER_MB:
        return f"{kb}kB ({kb // KB_PER_MB}MB)"
    return f"{kb}kB"


@dataclass
class ProcessUsage:
    count: int = 0
    rss_kb: int = 0


@dataclass
class MemoryReport:
    """Victim and cgroup memory figures, all in kB; any may be missing."""

    pid: int | None = None
    name: str | None = None
    total_vm: int | None = None
    anon_rss: int | None = None
    file_rss: int | None = None
    shmem_rss: int | None = None
    cgroup_usage: int | None = None
    cgroup_limit: int | None = None
    cgroup_failcnt: int | None = None
    processes: dict[str, ProcessUsage] = field(default_factory=dict)
    region: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.name is None and self.cgroup_usage is None and not self.processes

    def top_processes(self) -> list[tuple[str, ProcessUsage]]:
        """Processes ordered by aggregate RSS, largest first."""
        return sorted(self.processes.items(), key=lambda item: (-item[1].rss_kb, item[0]))

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("region")
        data["processes"] = {
            name: asdict(usage) for name, usage in self.top_processes()
        }
        return data


def report_region(lines: list[str], pid: int | None, container_id: str) -> list[str]:
    """Lines of the single OOM report that killed the container."""
    kill_index = None
    for index, line in enumerate(lines):
        record = patterns.parse_oom_kill(line)
        if record is None or not record.references(container_id):
            continue
        if pid is None or record.pid == pid:
            kill_index = index
    if kill_index is None:
        return []

    start = 0
    for index in range(kill_index, -1, -1):
        if patterns.is_oom_invoked_line(lines[index]):
            start = index
            break

    end = len(lines)
    for index in range(kill_index + 1, len(lines)):
        if patterns.is_oom_invoked_line(lines[index]):
            end = index
            break

    return lines[start:end]


def aggregate_tasks(region: list[str]) -> dict[str, ProcessUsage]:
    """Sum RSS by process name over the Tasks state dump, if present."""
    processes: dict[str, ProcessUsage] = {}
    in_dump = False
    for line in region:
        if patterns.TASKS_STATE_HEADER in line:
            in_dump = True
            continue
        if not in_dump:
            continue
        if patterns.is_oom_kill_line(line):
            break
        row = patterns.parse_task_row(line)
        if row is None:
            continue
        _, name, rss_pages = row
        usage = processes.setdefault(name, ProcessUsage())
        usage.count += 1
        usage.rss_kb += rss_pages * PAGE_SIZE_KB
    return processes


def extract(text: str, pid: int | None, container_id: str) -> MemoryReport:
    """
    Parse the OOM report for container_id out of kernel text.

    Args:
        text: Kernel messages holding the oom-kill record
        pid: Victim PID from the oom-kill record, if known
        container_id: Resolved container ID

    Returns:
        MemoryReport; fields the log does not carry stay None
    """
    report = MemoryReport(pid=pid)
    region = report_region(text.splitlines(), pid, container_id)
    report.region = region

    for line in region:
        victim = patterns.parse_killed_process(line)
        if victim and (pid is None or victim["pid"] == pid):
            report.pid = victim["pid"]
            report.name = victim["name"]
            report.total_vm = victim.get("total_vm")
            report.anon_rss = victim.get("anon_rss")
            report.file_rss = victim.get("file_rss")
            report.shmem_rss = victim.get("shmem_rss")
            break

    for line in region:
        usage = patterns.parse_memcg_usage(line)
        if usage:
            report.cgroup_usage = usage["usage"]
            report.cgroup_limit = usage["limit"]
            report.cgroup_failcnt = usage["failcnt"]

    report.processes = aggregate_tasks(region)
    return report
