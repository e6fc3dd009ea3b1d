"""Data models for benchmark results and system information."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .types import TestFamily


class MetricStatus(str, Enum):
    OK = "ok"
    BUSY = "busy"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MetricRecord:
    """One measurement (or the reason there is none)."""

    test_name: TestFamily
    subtest_name: str
    value: float | None
    unit: str
    status: MetricStatus
    attributes: Mapping[str, float] = field(default_factory=dict)
    message: str = ""

    def __post_init__(self) -> None:
        if self.status is MetricStatus.OK:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValueError(f"{self.test_name.value}/{self.subtest_name}: ok record needs a numeric value")
        elif self.value is not None:
            raise ValueError(f"{self.test_name.value}/{self.subtest_name}: {self.status.value} record carries a value")

    @classmethod
    def ok(
        cls,
        test_name: TestFamily,
        subtest_name: str,
        value: float,
        unit: str,
        attributes: Mapping[str, float] | None = None,
    ) -> MetricRecord:
        return cls(test_name, subtest_name, value, unit, MetricStatus.OK, dict(attributes or {}))

    @classmethod
    def busy(cls, test_name: TestFamily, subtest_name: str, unit: str = "", message: str = "") -> MetricRecord:
        return cls(test_name, subtest_name, None, unit, MetricStatus.BUSY, message=message)

    @classmethod
    def failed(cls, test_name: TestFamily, subtest_name: str, unit: str = "", message: str = "") -> MetricRecord:
        return cls(test_name, subtest_name, None, unit, MetricStatus.FAILED, message=message)

    @classmethod
    def skipped(cls, test_name: TestFamily, subtest_name: str, message: str = "") -> MetricRecord:
        return cls(test_name, subtest_name, None, "", MetricStatus.SKIPPED, message=message)


@dataclass(frozen=True)
class TestSection:
    """All records produced by one run of one test family."""

    __test__ = False

    test_name: TestFamily
    records: tuple[MetricRecord, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    message: str = ""

    def __post_init__(self) -> None:
        for record in self.records:
            if record.test_name is not self.test_name:
                raise ValueError(
                    f"record {record.subtest_name!r} belongs to {record.test_name.value}, not {self.test_name.value}"
                )

    @property
    def status(self) -> MetricStatus:
        statuses = {record.status for record in self.records}
        if MetricStatus.OK in statuses:
            return MetricStatus.OK
        if MetricStatus.BUSY in statuses:
            return MetricStatus.BUSY
        if statuses == {MetricStatus.SKIPPED}:
            return MetricStatus.SKIPPED
        return MetricStatus.FAILED

    @property
    def is_unavailable(self) -> bool:
        return self.status is MetricStatus.SKIPPED

    def get(self, subtest_name: str) -> MetricRecord | None:
        for record in self.records:
            if record.subtest_name == subtest_name:
                return record
        return None

    @classmethod
    def unavailable(cls, test_name: TestFamily, reason: str) -> TestSection:
        return cls(test_name, (MetricRecord.skipped(test_name, "unavailable", reason),), message=reason)

    @classmethod
    def failure(cls, test_name: TestFamily, reason: str, metadata: Mapping[str, Any] | None = None) -> TestSection:
        return cls(
            test_name,
            (MetricRecord.failed(test_name, "error", message=reason),),
            metadata=dict(metadata or {}),
            message=reason,
        )


@dataclass(frozen=True)
class SystemInfo:
    """Host details reported ahead of the results."""

    arch: str
    cpu_model: str
    cpu_cores: int
    cpu_freq: str
    ram_kib: int
    distro: str
    kernel: str
    uptime_seconds: float


@dataclass(frozen=True)
class GovernorSnapshot:
    """CPU frequency governor and policy before and during the run."""

    original_governor: str = ""
    original_policy: str = ""
    tested_governor: str = "unknown"
    tested_policy: str = "unknown"


@dataclass(frozen=True)
class RuntimeSummary:
    start: int
    end: int

    @property
    def elapsed(self) -> int:
        return max(0, self.end - self.start)

    def describe(self) -> str:
        elapsed = self.elapsed
        if elapsed > 60:
            return f"{elapsed // 60} min {elapsed % 60} sec"
        return f"{elapsed} sec"


@dataclass(frozen=True)
class AggregateReport:
    """Complete report - top-level data structure."""

    version: str
    time: str
    system: SystemInfo
    governor: GovernorSnapshot
    sections: tuple[TestSection, ...]
    runtime: RuntimeSummary
    interrupted: bool = False

    def sections_for(self, family: TestFamily) -> list[TestSection]:
        return [section for section in self.sections if section.test_name is family]
