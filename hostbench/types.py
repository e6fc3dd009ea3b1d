"""Benchmark family identifiers."""

from __future__ import annotations

from enum import Enum


class TestFamily(str, Enum):
    """Tool families, valued by their top-level JSON key."""

    __test__ = False

    DISK = "fio"
    NETWORK = "iperf"
    GEEKBENCH = "geekbench"
    UNIXBENCH = "unixbench"
    PASSMARK = "passmark"
    CPUMINER = "cpuminer-multi"

    @property
    def label(self) -> str:
        return FAMILY_LABELS[self]


FAMILY_LABELS: dict[TestFamily, str] = {
    TestFamily.DISK: "fio disk",
    TestFamily.NETWORK: "iperf3 network",
    TestFamily.GEEKBENCH: "Geekbench",
    TestFamily.UNIXBENCH: "UnixBench",
    TestFamily.PASSMARK: "PassMark PerformanceTest",
    TestFamily.CPUMINER: "cpuminer-multi",
}
