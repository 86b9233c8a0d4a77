"""Exception hierarchy for jobtrace."""


class JobtraceError(Exception):
    """Base class for jobtrace errors."""

    pass


class UsageError(JobtraceError):
    """Invalid input or missing prerequisite; fatal before any work starts."""

    pass


class SourceUnavailable(JobtraceError):
    """A node journal or bundle file could not be retrieved."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
