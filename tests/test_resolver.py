"""Tests for container resolution."""

from jobtrace import resolver
from tests.conftest import OTHER_JOB_ID, SANDBOX_ID, WORKER_ID, load_fixture

POD_UID = "5b2a9c1e-3d4f-4a6b-9c8d-1e2f3a4b5c6d"


def started_line(job_id: int, cid: str) -> str:
    return (
        f'"SyncLoop (PLEG): event for pod" pod="aap/automation-job-{job_id}-x8k2p" '
        f'event={{"ID":"{POD_UID}","Type":"ContainerStarted","Data":"{cid}"}}'
    )


def kill_line(job_id: int, cid: str, name: str = "worker") -> str:
    return (
        f'"Killing container with a grace period" pod="aap/automation-job-{job_id}-x8k2p" '
        f'containerName="{name}" containerID="cri-o://{cid}" gracePeriod=30'
    )


def oom_line(cid: str, pid: int = 555) -> str:
    return (
        "oom-kill:constraint=CONSTRAINT_MEMCG,nodemask=(null),"
        f"cpuset=crio-{cid}.scope,mems_allowed=0,"
        f"oom_memcg=/kubepods.slice/crio-{cid}.scope,"
        f"task_memcg=/kubepods.slice/crio-{cid}.scope,task=ansible-playboo,pid={pid},uid=1000"
    )


class TestResolve:
    """Tests for resolve()."""

    def test_kill_event_wins(self):
        """A worker kill record resolves at tier 1."""
        text = "\n".join([
            started_line(4, SANDBOX_ID),
            started_line(4, WORKER_ID),
            kill_line(4, WORKER_ID),
        ])
        resolution = resolver.resolve(4, text)
        assert resolution.container_id == WORKER_ID
        assert resolution.tier == resolver.TIER_KILL
        assert not resolution.ambiguous

    def test_kill_event_of_other_container_ignored(self):
        """Kill records for non-worker containers do not count for tier 1."""
        text = "\n".join([kill_line(4, SANDBOX_ID, name="pause"), started_line(4, WORKER_ID)])
        resolution = resolver.resolve(4, text)
        assert resolution.tier == resolver.TIER_STARTED
        assert resolution.container_id == WORKER_ID

    def test_finished_by_pod_uid(self):
        """Finished records are correlated through the pod UID."""
        text = load_fixture("sosreport", "kubelet_job4.log")
        resolution = resolver.resolve(4, text)
        assert resolution.container_id == WORKER_ID
        assert resolution.tier == resolver.TIER_FINISHED
        assert resolution.candidates == [WORKER_ID]

    def test_job_boundary(self):
        """job-42 records never leak into job-4."""
        text = load_fixture("sosreport", "kubelet_job4.log")
        resolution = resolver.resolve(42, text)
        assert resolution.container_id == OTHER_JOB_ID
        assert WORKER_ID not in resolution.candidates

    def test_single_started_candidate(self):
        """One start record resolves at tier 3 without ambiguity."""
        resolution = resolver.resolve(4, started_line(4, WORKER_ID))
        assert resolution.tier == resolver.TIER_STARTED
        assert resolution.container_id == WORKER_ID
        assert not resolution.ambiguous

    def test_oom_evidence_breaks_tie(self):
        """With several start records, the OOM-referenced one wins."""
        text = "\n".join([started_line(4, WORKER_ID), started_line(4, SANDBOX_ID)])
        resolution = resolver.resolve(4, text, kernel_text=oom_line(WORKER_ID))
        assert resolution.container_id == WORKER_ID
        assert resolution.candidates == [WORKER_ID, SANDBOX_ID]
        assert not resolution.ambiguous

    def test_positional_fallback_is_flagged(self):
        """Without OOM evidence the last start record wins, flagged ambiguous."""
        text = "\n".join([started_line(4, SANDBOX_ID), started_line(4, WORKER_ID)])
        resolution = resolver.resolve(4, text, kernel_text=oom_line(OTHER_JOB_ID))
        assert resolution.container_id == WORKER_ID
        assert resolution.ambiguous

    def test_unknown_job(self):
        """No tagged lines means no resolution."""
        text = load_fixture("sosreport", "kubelet_job4.log")
        assert resolver.resolve(99, text) is None

    def test_tagged_without_records(self):
        """Tagged lines with no container records resolve to nothing."""
        text = 'kubelet.go:2425] "SyncLoop ADD" source="api" pods=["aap/automation-job-4-x8k2p"]'
        assert resolver.resolve(4, text) is None

    def test_multiple_kill_records_fall_through(self):
        """Several tier-1 IDs defer to lower tiers."""
        text = "\n".join([
            kill_line(4, WORKER_ID),
            kill_line(4, SANDBOX_ID),
            started_line(4, WORKER_ID),
        ])
        resolution = resolver.resolve(4, text)
        assert resolution.tier == resolver.TIER_STARTED
        assert resolution.container_id == WORKER_ID

    def test_multiple_kill_records_settled_when_nothing_else(self):
        """With no lower tier, the ambiguous tier-1 set is disambiguated."""
        text = "\n".join([kill_line(4, WORKER_ID), kill_line(4, SANDBOX_ID)])
        resolution = resolver.resolve(4, text, kernel_text=oom_line(WORKER_ID))
        assert resolution.tier == resolver.TIER_KILL
        assert resolution.container_id == WORKER_ID
        assert not resolution.ambiguous


class TestHelpers:
    """Tests for the tier helper functions."""

    def test_disambiguate_single(self):
        assert resolver.disambiguate([WORKER_ID], None) == (WORKER_ID, False)

    def test_disambiguate_without_kernel_text(self):
        assert resolver.disambiguate([SANDBOX_ID, WORKER_ID], None) == (WORKER_ID, True)

    def test_has_started_record(self):
        """Start record existence check respects job boundaries."""
        text = load_fixture("sosreport", "kubelet_job4.log")
        assert resolver.has_started_record(text, 4)
        assert resolver.has_started_record(text, 42)
        assert not resolver.has_started_record(text, 420)

    def test_started_candidates_keep_order(self):
        lines = [started_line(4, SANDBOX_ID), started_line(4, WORKER_ID), started_line(4, SANDBOX_ID)]
        assert resolver.started_candidates(lines) == [SANDBOX_ID, WORKER_ID]
