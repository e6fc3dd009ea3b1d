"""Sequencing of benchmark drivers with failure isolation."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from enum import Enum

from .accumulator import ResultAccumulator
from .benchmarks.base import BenchmarkBase, RunContext
from .errors import InterruptedRun, ToolUnavailable
from .models import TestSection
from .types import TestFamily


logger = logging.getLogger(__name__)


class TestState(str, Enum):
    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED_BY_FLAG = "skipped_by_flag"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


class RunCoordinator:
    """Run each enabled driver in order and feed its sections to the accumulator.

    A driver that raises never stops the run: ``ToolUnavailable`` marks the
    test unavailable, anything else becomes a failed section. Cancellation is
    checked between tests only; an ``InterruptedRun`` raised while a driver is
    running abandons that test.
    """

    def __init__(
        self,
        benchmarks: Sequence[BenchmarkBase],
        accumulator: ResultAccumulator,
        context: RunContext,
        *,
        skipped: Collection[TestFamily] = (),
    ):
        self.benchmarks = list(benchmarks)
        self.accumulator = accumulator
        self.context = context
        self.states: dict[TestFamily, TestState] = {
            bench.family: TestState.SKIPPED_BY_FLAG if bench.family in skipped else TestState.PENDING
            for bench in self.benchmarks
        }
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def request_cancel(self) -> None:
        self._cancel_requested = True

    def _unavailable(self, bench: BenchmarkBase, reason: str) -> None:
        print(f"{bench.family.label} unavailable: {reason}. Skipping test.")
        self.accumulator.append(TestSection.unavailable(bench.family, reason))
        self.states[bench.family] = TestState.UNAVAILABLE

    def _run_one(self, bench: BenchmarkBase) -> None:
        self.states[bench.family] = TestState.RUNNING
        print(f"\nExecuting {bench.name}")

        ok, reason = bench.validate(self.context)
        if not ok:
            self._unavailable(bench, reason)
            return

        try:
            sections = bench.execute(self.context)
        except InterruptedRun:
            logger.warning("%s interrupted", bench.name)
            self.request_cancel()
            self.states[bench.family] = TestState.CANCELLED
            return
        except ToolUnavailable as exc:
            self._unavailable(bench, str(exc))
            return
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("%s failed: %s", bench.name, message)
            self.accumulator.append(TestSection.failure(bench.family, message))
            self.states[bench.family] = TestState.COMPLETED
            return

        for section in sections:
            self.accumulator.append(section)
        self.states[bench.family] = TestState.COMPLETED

    def run(self) -> dict[TestFamily, TestState]:
        """Run every pending test; return the final state of each."""
        for bench in self.benchmarks:
            if self.states[bench.family] is not TestState.PENDING:
                continue
            if self._cancel_requested:
                self.states[bench.family] = TestState.CANCELLED
                continue
            self._run_one(bench)
        return dict(self.states)
