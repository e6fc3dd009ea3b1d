"""Bounded-retry execution of external benchmark tools.

Every tool is run under a wall-clock timeout. After each attempt a
tool-specific predicate classifies the output; busy results and timeouts are
retried up to the attempt budget, fatal results stop immediately. The retry
decision itself is the pure function :func:`next_state`, so it can be tested
without sleeping or spawning processes.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .utils import run_command


logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 2.0


class Verdict(str, Enum):
    USABLE = "usable"
    BUSY = "busy"
    FATAL = "fatal"


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    RETRY = "retry"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FATAL_ERROR = "fatal_error"


TERMINAL_STATES = frozenset({AttemptState.SUCCEEDED, AttemptState.EXHAUSTED, AttemptState.FATAL_ERROR})


def next_state(verdict: Verdict, attempt: int, max_attempts: int) -> AttemptState:
    """Decide what follows attempt number ``attempt`` (1-based)."""
    if verdict is Verdict.USABLE:
        return AttemptState.SUCCEEDED
    if verdict is Verdict.FATAL:
        return AttemptState.FATAL_ERROR
    if attempt >= max_attempts:
        return AttemptState.EXHAUSTED
    return AttemptState.RETRY


@dataclass(frozen=True)
class RawOutput:
    """Output of a single finished attempt."""

    command: tuple[str, ...]
    stdout: str
    returncode: int
    duration_seconds: float
    attempts: int = 1


@dataclass(frozen=True)
class TimedOut:
    """The final attempt hit the wall-clock timeout."""

    command: tuple[str, ...]
    timeout: float
    attempts: int
    last_output: RawOutput | None = None

    @property
    def message(self) -> str:
        return f"{self.command[0]} timed out after {self.timeout:g}s ({self.attempts} attempt(s))"


@dataclass(frozen=True)
class BadAfterRetries:
    """No attempt produced a usable result."""

    command: tuple[str, ...]
    attempts: int
    last_output: RawOutput
    fatal: bool = False

    @property
    def message(self) -> str:
        if self.fatal:
            return f"{self.command[0]} reported an unrecoverable error"
        return f"{self.command[0]} returned no usable result after {self.attempts} attempt(s)"


InvocationOutcome = RawOutput | TimedOut | BadAfterRetries
BadResultPredicate = Callable[[RawOutput], Verdict]
CommandRunner = Callable[..., tuple[str, float, int]]


def exit_status_predicate(output: RawOutput) -> Verdict:
    """Default predicate: usable on exit status 0, busy on empty output, fatal otherwise."""
    if output.returncode == 0:
        return Verdict.USABLE
    if not output.stdout.strip():
        return Verdict.BUSY
    return Verdict.FATAL


class RetryingInvoker:
    """Run external commands with a timeout and a bounded retry loop."""

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._runner = runner
        self._sleep = sleep

    def invoke(
        self,
        command: str | Path,
        args: Sequence[str] = (),
        *,
        timeout: float,
        max_attempts: int | None = None,
        is_bad_result: BadResultPredicate | None = None,
        cwd: Path | None = None,
        merge_stderr: bool = True,
    ) -> InvocationOutcome:
        argv = (str(command), *(str(arg) for arg in args))
        budget = max_attempts or self.max_attempts
        predicate = is_bad_result or exit_status_predicate
        last_output: RawOutput | None = None
        timed_out = False

        state = AttemptState.ATTEMPTING
        attempt = 0
        while state not in TERMINAL_STATES:
            attempt += 1
            logger.debug("Running %s (attempt %d of %d)", shlex.join(argv), attempt, budget)
            try:
                stdout, duration, returncode = self._runner(
                    argv, timeout=timeout, cwd=cwd, merge_stderr=merge_stderr
                )
            except subprocess.TimeoutExpired:
                timed_out = True
                verdict = Verdict.BUSY
                logger.info("%s timed out after %gs", argv[0], timeout)
            else:
                timed_out = False
                last_output = RawOutput(argv, stdout, returncode, duration, attempt)
                verdict = predicate(last_output)
                logger.debug("%s attempt %d classified as %s", argv[0], attempt, verdict.value)

            state = next_state(verdict, attempt, budget)
            if state is AttemptState.RETRY:
                self._sleep(self.backoff_seconds)

        if state is AttemptState.SUCCEEDED and last_output is not None:
            return last_output
        if timed_out or last_output is None:
            return TimedOut(argv, timeout, attempt, last_output)
        return BadAfterRetries(argv, attempt, last_output, fatal=state is AttemptState.FATAL_ERROR)
