"""
Container resolution: which container ID ran a job.

Tiers are tried in strict confidence order and the first tier with a
unique answer wins:

1. kill event  - kubelet killed a container explicitly named "worker"
2. finished    - a "container finished" record for the job's pod
3. started     - every container-start record tagged with the job

Tier 3 commonly sees several IDs (pod sandbox, sidecars). The one that
also appears in a kernel oom-kill record is preferred; otherwise the last
started candidate is taken. That last step is an approximation and is
flagged as ambiguous on the result.
"""

from dataclasses import dataclass, field

from jobtrace import patterns


TIER_KILL = 1
TIER_FINISHED = 2
TIER_STARTED = 3


@dataclass
class Resolution:
    """Outcome of resolving a job to a container."""

    container_id: str
    tier: int
    candidates: list[str] = field(default_factory=list)
    ambiguous: bool = False


def _unique(ids) -> list[str]:
    seen: list[str] = []
    for cid in ids:
        if cid not in seen:
            seen.append(cid)
    return seen


def kill_event_candidates(lines: list[str]) -> list[str]:
    """Tier 1 candidates from job-tagged lines."""
    return _unique(
        cid for cid in (patterns.extract_worker_kill_id(line) for line in lines) if cid
    )


def finished_candidates(text: str, lines: list[str]) -> list[str]:
    """
    Tier 2 candidates.

    "container finished" records usually carry only the pod UID, so the UID
    is taken from the first job-tagged record that has one and used to
    select finished records anywhere in the text. Without a UID, finished
    records that are themselves job-tagged are used.
    """
    pod_uid = None
    for line in lines:
        pod_uid = patterns.extract_pod_uid(line)
        if pod_uid:
            break

    if pod_uid:
        ids = [
            patterns.extract_finished_id(line)
            for line in text.splitlines()
            if pod_uid in line
        ]
        found = _unique(cid for cid in ids if cid)
        if found:
            return found

    return _unique(
        cid for cid in (patterns.extract_finished_id(line) for line in lines) if cid
    )


def started_candidates(lines: list[str]) -> list[str]:
    """Tier 3 candidates, in start order."""
    ids: list[str] = []
    for line in lines:
        ids.extend(patterns.extract_started_ids(line))
    return _unique(ids)


def oom_referenced(candidates: list[str], kernel_text: str | None) -> str | None:
    """First candidate named by a kernel oom-kill record's cgroup path."""
    if not kernel_text:
        return None
    records = [
        record
        for record in (patterns.parse_oom_kill(line) for line in kernel_text.splitlines())
        if record is not None
    ]
    for cid in candidates:
        if any(record.references(cid) for record in records):
            return cid
    return None


def disambiguate(candidates: list[str], kernel_text: str | None) -> tuple[str, bool]:
    """
    Reduce several candidates to one.

    Returns (container_id, ambiguous). ambiguous is True when the choice
    fell back to position rather than OOM evidence.
    """
    if len(candidates) == 1:
        return candidates[0], False
    oom_match = oom_referenced(candidates, kernel_text)
    if oom_match:
        return oom_match, False
    return candidates[-1], True


def has_started_record(text: str, job_id: int) -> bool:
    """
    Cheap existence check used when scanning nodes.

    True if any container-start record in text is tagged with the job.
    """
    for line in text.splitlines():
        if patterns.has_job_tag(line, job_id) and patterns.extract_started_ids(line):
            return True
    return False


def resolve(job_id: int, text: str, kernel_text: str | None = None) -> Resolution | None:
    """
    Resolve the container ID that ran job_id in a journal.

    Args:
        job_id: Numeric job identifier
        text: Kubelet (or full node) journal text
        kernel_text: Kernel messages used to break tier-3 ties

    Returns:
        Resolution, or None if no tier found any candidate
    """
    lines = patterns.job_lines(text, job_id)
    if not lines:
        return None

    tiers = [
        (TIER_KILL, kill_event_candidates(lines)),
        (TIER_FINISHED, finished_candidates(text, lines)),
    ]
    for tier, candidates in tiers:
        if len(candidates) == 1:
            return Resolution(candidates[0], tier, candidates)

    started = started_candidates(lines)
    if started:
        cid, ambiguous = disambiguate(started, kernel_text)
        return Resolution(cid, TIER_STARTED, started, ambiguous)

    # Tiers 1/2 had several IDs and tier 3 had none: settle the first of them.
    for tier, candidates in tiers:
        if candidates:
            cid, ambiguous = disambiguate(candidates, kernel_text)
            return Resolution(cid, tier, candidates, ambiguous)

    return None
