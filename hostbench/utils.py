"""Utility functions for running external tools."""

from __future__ import annotations

import os
import signal
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path


def parse_float(token: str) -> float:
    """Parse float, handling European decimal separator."""
    return float(token.replace(",", "."))


def _kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the child and everything it spawned."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def run_command(
    command: Sequence[str],
    *,
    timeout: float | None = None,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    merge_stderr: bool = True,
) -> tuple[str, float, int]:
    """Run a command and return its output, duration, and return code.

    The child gets its own session, so a terminal Ctrl+C reaches only this
    process and the tool keeps running until it finishes. If waiting is cut
    short (timeout, or an exception raised by a signal handler) the child's
    whole process group is killed before the exception propagates.
    """
    start = time.perf_counter()

    # Force English locale to ensure parseable output
    run_env = os.environ.copy()
    run_env["LC_ALL"] = "C"
    run_env["LANGUAGE"] = "C"

    # Merge any additional environment variables
    if env:
        run_env.update(env)

    with subprocess.Popen(
        list(command),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
        text=True,
        errors="replace",
        env=run_env,
        cwd=cwd,
        start_new_session=True,
    ) as process:
        try:
            stdout, _ = process.communicate(timeout=timeout)
        except BaseException:
            _kill_process_group(process)
            raise
    duration = time.perf_counter() - start
    return stdout or "", duration, process.returncode


def collapse_whitespace(text: str) -> str:
    """Join all words with single spaces, the way an unquoted shell echo does."""
    return " ".join(text.split())
