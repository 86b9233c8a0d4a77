"""
Job-to-node resolution for live clusters.

Phase A reads cluster events once and trusts "Successfully assigned"
scheduler messages. Phase B handles whatever is left by walking the
worker nodes: each node journal is fetched once and checked against
every still-unresolved job, so the number of journal fetches is bounded
by the number of nodes, not nodes x jobs.
"""

import json
from typing import TYPE_CHECKING

from jobtrace import patterns
from jobtrace.errors import SourceUnavailable
from jobtrace.lib.process import CommandError, run_command
from jobtrace.resolver import has_started_record

if TYPE_CHECKING:
    from jobtrace.session import ResolutionSession


DEFAULT_NODE_SELECTOR = "node-role.kubernetes.io/worker"


def events_command(namespace: str | None = None) -> list[str]:
    cmd = ["oc", "get", "events", "-o", "json"]
    if namespace:
        cmd.extend(["-n", namespace])
    else:
        cmd.append("--all-namespaces")
    return cmd


def nodes_command(selector: str) -> list[str]:
    return [
        "oc", "get", "nodes", "-l", selector,
        "-o", "jsonpath={.items[*].metadata.name}",
    ]


def event_messages(events_json: str) -> list[str]:
    """Messages of every event in `oc get events -o json` output."""
    data = json.loads(events_json)
    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ValueError("events output is not an object with an items list")
    return [
        item.get("message") or ""
        for item in items
        if isinstance(item, dict)
    ]


def resolve_from_events(messages: list[str], job_ids: list[int]) -> dict[int, str]:
    """Phase A: node for each job that has a scheduler assignment event."""
    found: dict[int, str] = {}
    for job_id in job_ids:
        for message in messages:
            node = patterns.extract_event_node(message, job_id)
            if node:
                found[job_id] = node
                break
    return found


def list_nodes(session: "ResolutionSession", selector: str) -> list[str]:
    stdout = run_command(nodes_command(selector), session.context)
    return stdout.split()


def scan_nodes(
    session: "ResolutionSession",
    job_ids: list[int],
    nodes: list[str],
) -> dict[int, str]:
    """
    Phase B: assign unresolved jobs to nodes by scanning journals.

    Each node is fetched at most once (through the session cache) and
    tested against all outstanding jobs. Stops as soon as nothing is left.
    """
    pending = list(job_ids)
    found: dict[int, str] = {}
    for node in nodes:
        if not pending:
            break
        try:
            text = session.node(node).journal()
        except SourceUnavailable as e:
            session.logger.warning("Skipping node", node=node, reason=e.reason)
            continue
        for job_id in list(pending):
            if has_started_record(text, job_id):
                found[job_id] = node
                pending.remove(job_id)
                session.logger.info("Job found by node scan", job_id=job_id, node=node)
    return found


def locate_jobs(
    session: "ResolutionSession",
    job_ids: list[int],
    namespace: str | None = None,
    selector: str = DEFAULT_NODE_SELECTOR,
) -> dict[int, str | None]:
    """
    Resolve each job to the node that ran it.

    Results are recorded in session.job_nodes (None = unresolved) and
    returned in job_ids order.

    Args:
        session: Run state (context, cache, logger)
        job_ids: De-duplicated job IDs in report order
        namespace: Restrict the event query to one namespace
        selector: Label selector for the node scan

    Returns:
        Mapping of job ID to node name or None
    """
    for job_id in job_ids:
        session.job_nodes.setdefault(job_id, None)

    try:
        messages = event_messages(run_command(events_command(namespace), session.context))
    except (CommandError, ValueError) as e:
        session.logger.warning("Event lookup failed", error=str(e))
        messages = []

    for job_id, node in resolve_from_events(messages, job_ids).items():
        session.job_nodes[job_id] = node
        session.logger.info("Job found in events", job_id=job_id, node=node)

    unresolved = [j for j in job_ids if not session.job_nodes.get(j)]
    if unresolved:
        try:
            nodes = list_nodes(session, selector)
        except CommandError as e:
            session.logger.error("Node listing failed", selector=selector, error=str(e))
            nodes = []
        if not nodes:
            session.logger.warning("No nodes to scan", selector=selector)
        for job_id, node in scan_nodes(session, unresolved, nodes).items():
            session.job_nodes[job_id] = node

    return {job_id: session.job_nodes.get(job_id) for job_id in job_ids}
