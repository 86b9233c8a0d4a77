"""
Per-job investigation pipeline and batch bookkeeping.

For each (job, source) pair: resolve the container, classify the
termination, extract the memory report. Live runs group jobs by node so
each node journal is fetched once; offline runs walk the discovered
sosreports, which are cached the same way.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from jobtrace import classifier, patterns
from jobtrace.errors import SourceUnavailable
from jobtrace.locator import DEFAULT_NODE_SELECTOR, locate_jobs
from jobtrace.memory import MemoryReport, extract
from jobtrace.resolver import Resolution, resolve

if TYPE_CHECKING:
    from jobtrace.session import ResolutionSession


EXIT_OK = 0
EXIT_NONE_FOUND = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3


@dataclass
class JobResult:
    """Everything learned about one job."""

    job_id: int
    found: bool = False
    source: str | None = None
    source_kind: str | None = None
    bundle: str | None = None
    resolution: Resolution | None = None
    classification: classifier.Classification | None = None
    memory: MemoryReport | None = None
    container_lines: list[str] = field(default_factory=list)
    app_log: str | None = None
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def container_id(self) -> str | None:
        return self.resolution.container_id if self.resolution else None

    def to_dict(self, verbose: bool = False) -> dict:
        data: dict = {
            "job_id": self.job_id,
            "found": self.found,
            "source": self.source,
            "source_kind": self.source_kind,
        }
        if self.bundle:
            data["bundle"] = self.bundle
        if not self.found:
            data["reason"] = self.reason
            return data
        data["container_id"] = self.container_id
        data["tier"] = self.resolution.tier
        data["ambiguous"] = self.resolution.ambiguous
        data["classification"] = self.classification.kind
        data["pid"] = self.classification.pid
        data["memory"] = self.memory.to_dict() if self.memory else None
        data["warnings"] = self.warnings
        if verbose:
            data["candidates"] = self.resolution.candidates
            data["container_lines"] = self.container_lines
            data["eviction_lines"] = self.classification.eviction_lines
            data["oom_kill_lines"] = self.classification.oom_kill_lines
            data["oom_report"] = self.memory.region if self.memory else []
        return data


@dataclass
class BatchSummary:
    requested: int
    found: int
    missing: list[int]

    @property
    def exit_code(self) -> int:
        if self.found == self.requested:
            return EXIT_OK
        if self.found == 0:
            return EXIT_NONE_FOUND
        return EXIT_PARTIAL

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "found": self.found,
            "missing": self.missing,
        }


def summarize(results: list[JobResult]) -> BatchSummary:
    missing = [r.job_id for r in results if not r.found]
    return BatchSummary(requested=len(results), found=len(results) - len(missing), missing=missing)


def unique_jobs(job_ids: list[int]) -> list[int]:
    """Input order with duplicates dropped."""
    return list(dict.fromkeys(job_ids))


def investigate_source(job_id: int, source, session: "ResolutionSession") -> JobResult | None:
    """
    Run resolution and classification for one job against one source.

    Returns None when the job's container cannot be resolved there.
    Raises SourceUnavailable if the source's journal cannot be read.
    """
    text = source.journal()
    kernel_text = source.kernel_log()
    resolution = resolve(job_id, text, kernel_text)
    if resolution is None:
        return None
    if resolution.ambiguous:
        # no candidate in the ring buffer; the boot journal may still name one
        boot_text = source.boot_kernel_log()
        if boot_text:
            resolution = resolve(job_id, text, boot_text)

    cid = resolution.container_id
    result = JobResult(
        job_id=job_id,
        found=True,
        source=source.name,
        source_kind=source.kind,
        resolution=resolution,
    )
    if source.kind == "sosreport":
        result.bundle = source.label
    if resolution.ambiguous:
        result.warnings.append(
            f"{len(resolution.candidates)} candidate containers and no OOM record to "
            "tell them apart; picked the last one started"
        )

    fallback = None
    if not classifier.oom_kill_records(kernel_text, cid):
        fallback = source.boot_kernel_log()
    if kernel_text is None and source.kind == "sosreport":
        if fallback:
            result.warnings.append(
                "dmesg_-T not found; kernel OOM detection limited to the boot journal"
            )
        else:
            result.warnings.append(
                "dmesg_-T and the boot journal not found; kernel OOM kills cannot be detected"
            )

    result.classification = classifier.classify(job_id, cid, text, kernel_text, fallback)
    if result.classification.kind == classifier.KERNEL_OOM:
        oom_text = kernel_text if result.classification.kernel_source == "primary" else fallback
        result.memory = extract(oom_text or "", result.classification.pid, cid)

    result.container_lines = [line for line in text.splitlines() if cid in line]
    result.app_log = source.app_log(cid)

    session.logger.bind(job_id=job_id, source=source.name).info(
        "Job resolved",
        container_id=cid,
        tier=resolution.tier,
        ambiguous=resolution.ambiguous,
        classification=result.classification.kind,
        pid=result.classification.pid,
    )
    return result


def run_live(
    session: "ResolutionSession",
    job_ids: list[int],
    namespace: str | None = None,
    selector: str = DEFAULT_NODE_SELECTOR,
) -> list[JobResult]:
    """Locate jobs on the cluster and investigate each, one fetch per node."""
    job_ids = unique_jobs(job_ids)
    locate_jobs(session, job_ids, namespace=namespace, selector=selector)

    results: dict[int, JobResult] = {}
    for node, node_jobs in session.jobs_by_node().items():
        source = session.node(node)
        for job_id in node_jobs:
            log = session.logger.bind(job_id=job_id, node=node)
            try:
                result = investigate_source(job_id, source, session)
            except SourceUnavailable as e:
                log.error("Node journal unavailable", reason=e.reason)
                results[job_id] = JobResult(
                    job_id, source=node, source_kind=source.kind, reason=str(e)
                )
                continue
            if result is None:
                log.warning("Container not found on node")
                result = JobResult(
                    job_id,
                    source=node,
                    source_kind=source.kind,
                    reason=f"no container for job-{job_id} in the journal of node {node}",
                )
            results[job_id] = result

    ordered = []
    for job_id in job_ids:
        result = results.get(job_id)
        if result is None:
            result = JobResult(job_id, reason="job not found in events or on any scanned node")
        ordered.append(result)
    return ordered


def run_offline(
    session: "ResolutionSession",
    job_ids: list[int],
    roots: list[str],
) -> list[JobResult]:
    """Search sosreport roots for each job; the first bundle that resolves wins."""
    job_ids = unique_jobs(job_ids)
    results = []
    for job_id in job_ids:
        result = None
        log = session.logger.bind(job_id=job_id)
        tag = patterns.job_tag_re(job_id)
        for root in roots:
            source = session.bundle(root)
            try:
                text = source.journal()
            except SourceUnavailable as e:
                session.logger.warning("Skipping sosreport", bundle=root, reason=e.reason)
                continue
            if not tag.search(text):
                continue
            result = investigate_source(job_id, source, session)
            if result is not None:
                break
            log.warning("Job tagged but container unresolved", bundle=root)
        if result is None:
            log.warning("Job not found", bundles=len(roots))
            result = JobResult(
                job_id, reason=f"no job with id {job_id} found in {len(roots)} sosreport(s)"
            )
        results.append(result)
    return results
