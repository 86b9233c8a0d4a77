"""Classify how a job's container ended: eviction, kernel OOM kill, or neither."""

from dataclasses import dataclass, field

from jobtrace import patterns


NONE = "none"
EVICTION = "eviction"
KERNEL_OOM = "kernel_oom"

DESCRIPTIONS = {
    NONE: "No OOM detected",
    EVICTION: "Eviction (node under memory pressure)",
    KERNEL_OOM: "Kernel OOM Kill (pod exceeded memory limit)",
}


@dataclass
class Classification:
    """Termination cause plus the records that show it."""

    kind: str = NONE
    pid: int | None = None
    eviction_lines: list[str] = field(default_factory=list)
    oom_kill_lines: list[str] = field(default_factory=list)
    kernel_source: str | None = None

    @property
    def description(self) -> str:
        return DESCRIPTIONS[self.kind]


def eviction_records(text: str, job_id: int) -> list[str]:
    """eviction_manager records tagged with the job."""
    return [
        line
        for line in text.splitlines()
        if patterns.is_eviction_line(line) and patterns.has_job_tag(line, job_id)
    ]


def oom_kill_records(text: str | None, container_id: str) -> list[patterns.OomKillRecord]:
    """Kernel oom-kill records whose cgroup paths name the container."""
    if not text:
        return []
    records = []
    for line in text.splitlines():
        record = patterns.parse_oom_kill(line)
        if record is not None and record.references(container_id):
            records.append(record)
    return records


def classify(
    job_id: int,
    container_id: str,
    text: str,
    kernel_text: str | None,
    fallback_kernel_text: str | None = None,
) -> Classification:
    """
    Decide whether the job was evicted, OOM killed, or neither.

    Eviction wins over kernel OOM evidence. Kernel evidence is looked up in
    kernel_text first and in fallback_kernel_text (a persisted full-boot
    log) when the ring buffer has nothing. The last matching oom-kill
    record that carries a pid= field supplies the victim PID.

    Args:
        job_id: Numeric job identifier
        container_id: Resolved container ID
        text: Journal with kubelet eviction_manager records
        kernel_text: Kernel messages (dmesg, or the node journal)
        fallback_kernel_text: Secondary kernel log

    Returns:
        Classification
    """
    result = Classification()
    result.eviction_lines = eviction_records(text, job_id)

    records = oom_kill_records(kernel_text, container_id)
    result.kernel_source = "primary" if records else None
    if not records and fallback_kernel_text:
        records = oom_kill_records(fallback_kernel_text, container_id)
        if records:
            result.kernel_source = "fallback"
    result.oom_kill_lines = [record.line for record in records]

    if result.eviction_lines:
        result.kind = EVICTION
    elif records:
        result.kind = KERNEL_OOM
        pids = [record.pid for record in records if record.pid is not None]
        result.pid = pids[-1] if pids else None
    return result
