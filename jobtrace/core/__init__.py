"""Core jobtrace plumbing: execution context, config, logging, output."""

from jobtrace.core.context import Context
from jobtrace.core.logging import NullLogger, RunLogger
from jobtrace.core.output import Output

__all__ = [
    "Context",
    "NullLogger",
    "Output",
    "RunLogger",
]
