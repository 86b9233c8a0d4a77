"""Plain-text rendering of investigation results."""

import os
import re
import sys

from jobtrace import classifier
from jobtrace.investigate import BatchSummary, JobResult
from jobtrace.memory import format_kb


class Palette:
    """ANSI colors, disabled for NO_COLOR or non-terminal output."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.red = "\033[31m" if enabled else ""
        self.green = "\033[32m" if enabled else ""
        self.yellow = "\033[33m" if enabled else ""
        self.highlight = "\033[1;33m" if enabled else ""
        self.reset = "\033[0m" if enabled else ""

    @classmethod
    def detect(cls, wanted: bool = True, stream=None) -> "Palette":
        stream = stream or sys.stdout
        enabled = (
            wanted
            and not os.environ.get("NO_COLOR")
            and hasattr(stream, "isatty")
            and stream.isatty()
        )
        return cls(enabled)

    def label(self, text: str) -> str:
        return f"{self.red}{text}{self.reset}"

    def mark(self, line: str, terms: list[str]) -> str:
        """Highlight every occurrence of terms in line."""
        terms = sorted({t for t in terms if t}, key=len, reverse=True)
        if not self.enabled or not terms:
            return line
        # whole tokens only, so pid 55 does not light up inside 5550
        pattern = re.compile(
            r"(?<![0-9A-Za-z])(?:" + "|".join(map(re.escape, terms)) + r")(?![0-9A-Za-z])"
        )
        return pattern.sub(lambda m: f"{self.highlight}{m.group(0)}{self.reset}", line)


def _lines_block(lines: list[str], terms: list[str], palette: Palette) -> list[str]:
    return [palette.mark(line, terms) for line in lines]


def render_memory(result: JobResult, palette: Palette) -> list[str]:
    memory = result.memory
    lines: list[str] = []
    if memory is None or memory.empty:
        return lines

    if memory.name is not None:
        lines.append(f"{palette.label('Victim:')} {memory.name} (pid {memory.pid})")
        for label, value in (
            ("total-vm", memory.total_vm),
            ("anon-rss", memory.anon_rss),
            ("file-rss", memory.file_rss),
            ("shmem-rss", memory.shmem_rss),
        ):
            if value is not None:
                lines.append(f"  {label + ':':11} {format_kb(value)}")

    if memory.cgroup_usage is not None:
        lines.append(palette.label("Cgroup memory:"))
        lines.append(f"  {'usage:':11} {format_kb(memory.cgroup_usage)}")
        lines.append(f"  {'limit:':11} {format_kb(memory.cgroup_limit)}")
        lines.append(f"  {'failcnt:':11} {memory.cgroup_failcnt}")

    if memory.processes:
        lines.append(palette.label("Processes in cgroup (by RSS):"))
        for name, usage in memory.top_processes():
            lines.append(f"  {name:20} x{usage.count:<4} {format_kb(usage.rss_kb)}")
    return lines


def render_job(result: JobResult, palette: Palette, verbose: bool = False) -> str:
    """Render one job's findings."""
    lines = [f"{palette.label('Job ID:')} {palette.highlight}{result.job_id}{palette.reset}"]

    if not result.found:
        if result.source:
            lines.append(f"{palette.label('Node:')} {result.source}")
        lines.append(f"{palette.yellow}Not found: {result.reason}{palette.reset}")
        return "\n".join(lines)

    cid = result.container_id
    cls = result.classification
    terms = [f"job-{result.job_id}", cid, "oom-kill", "eviction"]
    if cls.pid is not None:
        terms.append(str(cls.pid))

    lines.append(f"{palette.label('Node:')} {result.source}")
    if result.bundle:
        lines.append(f"{palette.label('Source:')} sosreport at {result.bundle}")
    lines.append("")
    lines.append(
        f"{palette.label('Container ID:')} {palette.highlight}{cid}{palette.reset} "
        f"(tier {result.resolution.tier})"
    )
    for warning in result.warnings:
        lines.append(f"{palette.yellow}Warning: {warning}{palette.reset}")

    if verbose:
        lines.append(palette.label("Container Logs:"))
        lines.extend(_lines_block(result.container_lines, terms, palette))
        if result.app_log:
            lines.append("")
            lines.append(palette.label("Container Application Logs (crio):"))
            lines.extend(_lines_block(result.app_log.splitlines(), terms, palette))
    else:
        lines.append(
            f"{palette.label('Container Logs:')} {len(result.container_lines)} line(s)"
            " (use -v to show)"
        )

    lines.append("")
    if cls.kind == classifier.NONE:
        lines.append(f"{palette.green}{cls.description} for this job.{palette.reset}")
        return "\n".join(lines)

    lines.append(f"{palette.label('OOM Type:')} {cls.description}")
    if cls.kind == classifier.EVICTION:
        lines.append(palette.label("Eviction Logs:"))
        lines.extend(_lines_block(cls.eviction_lines, terms, palette))
        return "\n".join(lines)

    lines.append(f"{palette.label('PID:')} {cls.pid if cls.pid is not None else 'unknown'}")
    if cls.kernel_source == "fallback":
        lines.append("(found in the boot journal; the ring buffer had rotated)")
    lines.extend(render_memory(result, palette))
    lines.append(palette.label("OOM Logs:"))
    oom_lines = result.memory.region if (verbose and result.memory) else cls.oom_kill_lines
    lines.extend(_lines_block(oom_lines, terms, palette))
    return "\n".join(lines)


def render_summary(summary: BatchSummary, palette: Palette) -> str:
    line = f"Found {summary.found} of {summary.requested} job(s)"
    if summary.missing:
        line += f"; missing: {', '.join(str(j) for j in summary.missing)}"
        color = palette.red if summary.found == 0 else palette.yellow
    else:
        color = palette.green
    return f"{color}{line}{palette.reset}"


def render(results: list[JobResult], summary: BatchSummary, palette: Palette, verbose: bool = False) -> str:
    blocks = [render_job(result, palette, verbose) for result in results]
    separator = "\n" + "-" * 60 + "\n"
    return separator.join(blocks) + "\n\n" + render_summary(summary, palette)
