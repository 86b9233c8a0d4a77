"""Command-line interface for jobtrace."""

import argparse
import re
import signal
import sys
from pathlib import Path

from jobtrace import __version__
from jobtrace.core.config import load_config
from jobtrace.core.context import Context
from jobtrace.core.logging import NullLogger, RunLogger, get_log_path
from jobtrace.core.output import Output
from jobtrace.errors import UsageError
from jobtrace.evidence import KUBELET_JOURNAL, discover_bundles
from jobtrace.investigate import EXIT_USAGE, run_live, run_offline, summarize
from jobtrace.lib.process import CommandError, check_tool
from jobtrace.report import Palette, render
from jobtrace.session import ResolutionSession


JOB_ID_RE = re.compile(r"^\d+$")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="jobtrace",
        description=(
            "Find the container that ran an Ansible Automation Platform job and "
            "report whether its pod was evicted or OOM killed"
        ),
        epilog=(
            "Live mode (default) queries the cluster with oc. "
            "Offline mode (-d) analyzes extracted sosreports."
        ),
    )
    parser.add_argument("--version", action="version", version=f"jobtrace {__version__}")
    parser.add_argument(
        "-s",
        "--job",
        action="append",
        dest="jobs",
        required=True,
        metavar="JOB_ID",
        help="Job ID to search for (repeatable, or comma separated)",
    )
    parser.add_argument(
        "-n",
        "--namespace",
        help="Namespace where AAP jobs run (default: all namespaces; live mode only)",
    )
    parser.add_argument(
        "-d",
        "--directory",
        help="Directory containing extracted sosreport(s), searched recursively",
    )
    parser.add_argument(
        "-l",
        "--selector",
        help="Node label selector for the node scan (default: node-role.kubernetes.io/worker)",
    )
    parser.add_argument(
        "--format",
        choices=["plain", "json"],
        help="Output format (default: plain)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show matched log lines and the full OOM report",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--log-file", type=Path, help="Write the JSONL run log here")
    parser.add_argument("--no-log", action="store_true", help="Do not write a run log")
    return parser


def parse_job_ids(values: list[str]) -> list[int]:
    """Split comma separated values and validate each job ID."""
    job_ids = []
    for value in values:
        for item in value.split(","):
            item = item.strip()
            if not item:
                continue
            if not JOB_ID_RE.match(item):
                raise UsageError(f"Job ID must be numeric, got '{item}'")
            job_ids.append(int(item))
    if not job_ids:
        raise UsageError("Missing job id parameter (-s)")
    return job_ids


def make_logger(args: argparse.Namespace, config: dict) -> RunLogger:
    if args.no_log:
        return NullLogger()
    if args.log_file:
        return RunLogger(log_path=args.log_file)
    base = Path(config["log_dir"]).expanduser() if config.get("log_dir") else None
    return RunLogger(log_path=get_log_path(base_path=base))


def _terminate(signum, frame) -> None:
    # turn SIGTERM into SystemExit so the session spool is cleaned up
    sys.exit(128 + signum)


def investigate(
    args: argparse.Namespace,
    config: dict,
    session: ResolutionSession,
    output: Output,
) -> list:
    """Run the live or offline investigation selected by args."""
    job_ids = parse_job_ids(args.jobs)

    if args.directory:
        if args.namespace:
            output.warning("-n (namespace) is ignored in offline mode.")
        if not session.context.dir_exists(args.directory):
            raise UsageError(f"Directory '{args.directory}' does not exist.")
        roots = discover_bundles(args.directory, session.context)
        if not roots:
            raise UsageError(
                f"No sosreport directories found under '{args.directory}'. "
                f"Expected structure: <dir>/{KUBELET_JOURNAL}"
            )
        session.logger.info("Offline run", jobs=job_ids, bundles=roots)
        output.emit({"mode": "offline", "bundles": roots})
        return run_offline(session, job_ids, roots)

    try:
        check_tool("oc", session.context, required=True)
    except CommandError as e:
        raise UsageError(
            f"{e}. Please make sure the OpenShift CLI is installed and in your PATH."
        ) from e
    namespace = args.namespace or config.get("namespace")
    selector = args.selector or config["node_selector"]
    session.logger.info("Live run", jobs=job_ids, namespace=namespace, selector=selector)
    output.emit({"mode": "live", "namespace": namespace, "selector": selector})
    return run_live(session, job_ids, namespace=namespace, selector=selector)


def main(
    argv: list[str] | None = None,
    context: Context | None = None,
    output: Output | None = None,
) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    config = load_config()
    context = context or Context()
    output = output or Output()
    fmt = args.format or config.get("format") or "plain"
    palette = Palette.detect(wanted=bool(config.get("color", True)) and not args.no_color)

    signal.signal(signal.SIGTERM, _terminate)

    with make_logger(args, config) as logger, ResolutionSession(context, logger) as session:
        try:
            results = investigate(args, config, session, output)
        except UsageError as e:
            logger.error("Usage error", error=str(e))
            output.error(str(e))
            if fmt == "json":
                print(output.to_json())
            else:
                print(f"Error: {e}", file=sys.stderr)
            return EXIT_USAGE

        summary = summarize(results)
        logger.info("Run complete", **summary.to_dict())
        output.emit({
            "jobs": [result.to_dict(verbose=args.verbose) for result in results],
            "summary": summary.to_dict(),
        })

        if fmt == "json":
            print(output.to_json())
        else:
            for warning in output.warnings:
                print(f"{palette.yellow}Warning: {warning}{palette.reset}", file=sys.stderr)
            print(render(results, summary, palette, verbose=args.verbose))

        return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
