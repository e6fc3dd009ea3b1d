"""Append-only store of test sections for one run."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from .models import AggregateReport, GovernorSnapshot, RuntimeSummary, SystemInfo, TestSection


class ResultAccumulator:
    """Collects sections in execution order and builds report snapshots.

    Sections are never reordered or deduplicated. ``snapshot()`` works at any
    time, including mid-run; ``finalize()`` closes the run exactly once.
    """

    def __init__(
        self,
        *,
        version: str,
        system: SystemInfo,
        governor: GovernorSnapshot | None = None,
        started_at: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._sections: list[TestSection] = []
        self._version = version
        self._system = system
        self._governor = governor or GovernorSnapshot()
        self._start = int(started_at if started_at is not None else clock())
        self._time = time.strftime("%Y%m%d-%H%M%S", time.localtime(self._start))
        self._end: int | None = None
        self._interrupted = False

    def set_governor(self, governor: GovernorSnapshot) -> None:
        self._governor = governor

    def append(self, section: TestSection) -> None:
        with self._lock:
            if self._end is not None:
                raise RuntimeError("Cannot append to a finalized report")
            self._sections.append(section)

    def finalize(self, *, interrupted: bool = False) -> AggregateReport:
        with self._lock:
            if self._end is not None:
                raise RuntimeError("Report was already finalized")
            self._end = int(self._clock())
            self._interrupted = interrupted
        return self.snapshot()

    def snapshot(self) -> AggregateReport:
        with self._lock:
            sections = tuple(self._sections)
            end = self._end if self._end is not None else int(self._clock())
            interrupted = self._interrupted
        return AggregateReport(
            version=self._version,
            time=self._time,
            system=self._system,
            governor=self._governor,
            sections=sections,
            runtime=RuntimeSummary(start=self._start, end=max(end, self._start)),
            interrupted=interrupted,
        )
