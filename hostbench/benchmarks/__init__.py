"""Benchmark drivers and registry."""

from __future__ import annotations

from .base import BenchmarkBase, RunContext
from .cpuminer import CpuminerBenchmark
from .fio import FioBenchmark
from .geekbench import GeekbenchBenchmark
from .iperf3 import IPerf3Benchmark
from .passmark import PassMarkBenchmark
from .unixbench import UnixBenchBenchmark


def default_benchmarks() -> list[BenchmarkBase]:
    """Fresh driver instances in execution order."""
    return [
        FioBenchmark(),
        IPerf3Benchmark(),
        GeekbenchBenchmark(),
        UnixBenchBenchmark(),
        PassMarkBenchmark(),
        CpuminerBenchmark(),
    ]


__all__ = [
    "BenchmarkBase",
    "CpuminerBenchmark",
    "FioBenchmark",
    "GeekbenchBenchmark",
    "IPerf3Benchmark",
    "PassMarkBenchmark",
    "RunContext",
    "UnixBenchBenchmark",
    "default_benchmarks",
]
