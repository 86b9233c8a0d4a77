"""Tests for OOM memory report extraction."""

import pytest

from jobtrace import memory
from tests.conftest import LIVE_JOB12_ID, WORKER_ID, load_fixture


@pytest.mark.parametrize(
    "kb,expected",
    [
        (0, "0kB"),
        (1023, "1023kB"),
        (1024, "1024kB (1MB)"),
        (2048, "2048kB (2MB)"),
        (524288, "524288kB (512MB)"),
        (1048576, "1048576kB (1.0GB)"),
        (2097152, "2097152kB (2.0GB)"),
        (1572864, "1572864kB (1.5GB)"),
    ],
)
def test_format_kb(kb, expected):
    assert memory.format_kb(kb) == expected


class TestExtract:
    """Tests for extract()."""

    def test_sosreport_report(self):
        """The second OOM report in dmesg belongs to the worker container."""
        dmesg = load_fixture("sosreport", "dmesg_job4.log")
        report = memory.extract(dmesg, 555, WORKER_ID)

        assert report.pid == 555
        assert report.name == "ansible-playboo"
        assert report.total_vm == 1200000
        assert report.anon_rss == 524288
        assert report.file_rss == 1024
        assert report.shmem_rss == 0
        assert report.cgroup_usage == 1048576
        assert report.cgroup_limit == 1048576
        assert report.cgroup_failcnt == 4821

    def test_region_is_bounded(self):
        """Neighbouring reports never leak into the region."""
        dmesg = load_fixture("sosreport", "dmesg_job4.log")
        report = memory.extract(dmesg, 555, WORKER_ID)
        assert "invoked oom-killer" in report.region[0]
        assert report.region[0].find("ansible-playboo") != -1
        assert not any("python3" in line for line in report.region)

    def test_processes_aggregated_by_name(self):
        """Task rows are summed per name, pages converted to kB."""
        dmesg = load_fixture("sosreport", "dmesg_job4.log")
        report = memory.extract(dmesg, 555, WORKER_ID)

        top = report.top_processes()
        assert [name for name, _ in top] == ["ansible-playboo", "ssh", "dumb-init"]
        assert report.processes["ansible-playboo"].rss_kb == 524288
        assert report.processes["ssh"].count == 2
        assert report.processes["ssh"].rss_kb == 128000
        assert report.processes["dumb-init"].rss_kb == 3200

    def test_unpadded_rows_in_journal(self):
        """Journal-style rows without padding, with other units interleaved."""
        journal = load_fixture("live", "worker-1.journal")
        report = memory.extract(journal, 900, LIVE_JOB12_ID)

        assert report.anon_rss == 2097152
        assert report.cgroup_failcnt == 77
        assert set(report.processes) == {"ansible-playboo", "sh"}
        assert report.processes["ansible-playboo"].rss_kb == 2097152
        assert report.processes["sh"].rss_kb == 8000

    def test_missing_fields_stay_none(self):
        """A bare oom-kill record yields an otherwise empty report."""
        text = f"oom-kill:constraint=CONSTRAINT_MEMCG,task_memcg=/crio-{WORKER_ID}.scope,task=x,pid=7,uid=0"
        report = memory.extract(text, 7, WORKER_ID)
        assert report.region == [text]
        assert report.name is None
        assert report.cgroup_usage is None
        assert report.processes == {}
        assert report.empty

    def test_no_matching_record(self):
        """Unknown container gives an empty region."""
        dmesg = load_fixture("sosreport", "dmesg_job4.log")
        report = memory.extract(dmesg, None, "0" * 64)
        assert report.region == []
        assert report.empty

    def test_to_dict(self):
        """Serialized report drops the raw region and orders processes."""
        dmesg = load_fixture("sosreport", "dmesg_job4.log")
        data = memory.extract(dmesg, 555, WORKER_ID).to_dict()
        assert "region" not in data
        assert list(data["processes"]) == ["ansible-playboo", "ssh", "dumb-init"]
        assert data["processes"]["ssh"] == {"count": 2, "rss_kb": 128000}
        assert data["anon_rss"] == 524288


class TestAggregateTasks:
    """Tests for aggregate_tasks()."""

    def test_rows_before_header_ignored(self):
        region = [
            "[  100]  0  100  1000  50  0  0  0 early",
            "Tasks state (memory values in pages):",
            "[  101]  0  101  1000  10  0  0  0 late",
        ]
        processes = memory.aggregate_tasks(region)
        assert list(processes) == ["late"]
        assert processes["late"].rss_kb == 40

    def test_stops_at_oom_kill(self):
        region = [
            "Tasks state (memory values in pages):",
            "[  101]  0  101  1000  10  0  0  0 a",
            "oom-kill:constraint=CONSTRAINT_MEMCG,pid=101",
            "[  102]  0  102  1000  10  0  0  0 b",
        ]
        assert list(memory.aggregate_tasks(region)) == ["a"]
