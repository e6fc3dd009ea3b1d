"""Base definitions for benchmark drivers and their defaults."""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from pathlib import Path

from ..config import RunConfig
from ..invoker import RetryingInvoker
from ..models import SystemInfo, TestSection
from ..provisioning import ToolProvisioner
from ..types import TestFamily


# fio
DEFAULT_FIO_BLOCK_SIZES = ("4k", "8k", "64k", "512k", "1m", "16m")
DEFAULT_FIO_OPERATIONS = ("read", "write", "randread", "randwrite")
DEFAULT_FIO_RUNTIME = 3
DEFAULT_FIO_TIMEOUT = 60.0
DEFAULT_FIO_SIZE = "1G"
DEFAULT_FIO_SIZE_ARM = "512M"
DEFAULT_FIO_MIN_FREE_KIB = 2 * 1024 * 1024
DEFAULT_FIO_MIN_FREE_KIB_ARM = 512 * 1024

# iperf3
DEFAULT_IPERF_STREAMS = 8
DEFAULT_IPERF_TIMEOUT = 15.0
DEFAULT_IPERF_PAUSE = 1.0
DEFAULT_PING_TIMEOUT = 10.0

# Geekbench
DEFAULT_GEEKBENCH_TIMEOUT = 1800.0
DEFAULT_GEEKBENCH_RESULT_DELAY = 10.0
DEFAULT_GEEKBENCH_PAGE_TIMEOUT = 10.0

# UnixBench
DEFAULT_UNIXBENCH_TIMEOUT = 7200.0

# PassMark
DEFAULT_PASSMARK_TIMEOUT = 3600.0

# cpuminer-multi
DEFAULT_CPUMINER_GRACE = 60.0


@dataclass
class RunContext:
    """Everything a driver needs to run its tool on this host."""

    config: RunConfig
    arch: str
    workdir: Path
    system: SystemInfo
    invoker: RetryingInvoker
    provisioner: ToolProvisioner
    connectivity: dict[str, bool] = field(default_factory=dict)


class BenchmarkBase(ABC):
    """Base class for all benchmark drivers."""

    family: TestFamily
    description: str

    @property
    def name(self) -> str:
        return self.family.value

    def validate(self, context: RunContext) -> tuple[bool, str]:
        """Check if the benchmark can run on this host."""
        return True, ""

    def execute(self, context: RunContext) -> list[TestSection]:
        """Run the tool and return its sections in execution order."""
        raise NotImplementedError(f"{self.__class__.__name__} must implement execute()")
