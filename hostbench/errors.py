"""Exception taxonomy for a benchmark run."""

from __future__ import annotations


class HostbenchError(Exception):
    """Base class for every error raised by hostbench."""


class SetupFailure(HostbenchError):
    """The host cannot run the suite at all (fatal, exit status 1)."""


class ToolUnavailable(HostbenchError):
    """A benchmark binary could not be obtained or does not support this host."""


class ToolTransientFailure(HostbenchError):
    """A tool produced nothing usable within its attempt budget."""

    def __init__(self, message: str, *, attempts: int = 0, raw_output: str = ""):
        super().__init__(message)
        self.attempts = attempts
        self.raw_output = raw_output


class ParseFailure(HostbenchError, ValueError):
    """Raw tool output did not match the expected grammar."""


class InterruptedRun(HostbenchError):
    """The user cancelled the run; a partial report is still produced."""
