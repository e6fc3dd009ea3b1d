"""Shared fixtures: golden tool outputs and report builders."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from hostbench.benchmarks import RunContext
from hostbench.config import RunConfig
from hostbench.invoker import RetryingInvoker
from hostbench.models import AggregateReport, GovernorSnapshot, RuntimeSummary, SystemInfo, TestSection
from hostbench.provisioning import ToolProvisioner


FIXTURES = Path(__file__).parent / "fixtures"
TERSE_FIELD_COUNT = 130


@pytest.fixture
def fixture_text() -> Callable[[str], str]:
    def load(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")

    return load


@pytest.fixture
def fio_terse() -> Callable[..., str]:
    """Build one ``fio --minimal`` (terse v3) line."""

    def build(jobname: str, bandwidth: float, iops: float, *, write: bool = False, version: str = "3") -> str:
        fields = ["0"] * TERSE_FIELD_COUNT
        fields[0] = version
        fields[1] = "fio-3.28"
        fields[2] = jobname
        speed_field, iops_field = (48, 49) if write else (7, 8)
        fields[speed_field - 1] = str(bandwidth)
        fields[iops_field - 1] = str(iops)
        return ";".join(fields)

    return build


@pytest.fixture
def system_info() -> SystemInfo:
    return SystemInfo(
        arch="x64",
        cpu_model="Example CPU @ 3.00GHz",
        cpu_cores=4,
        cpu_freq="3000 MHz",
        ram_kib=8_000_000,
        distro="Ubuntu 22.04.4 LTS",
        kernel="5.15.0-105-generic",
        uptime_seconds=1234.56,
    )


@pytest.fixture
def make_report(system_info: SystemInfo) -> Callable[..., AggregateReport]:
    def build(
        sections: Sequence[TestSection] = (),
        *,
        start: int = 1_718_000_000,
        end: int = 1_718_000_125,
        interrupted: bool = False,
    ) -> AggregateReport:
        return AggregateReport(
            version="v2024-06-09",
            time="20240610-061320",
            system=system_info,
            governor=GovernorSnapshot("powersave", "powersave", "performance", "performance"),
            sections=tuple(sections),
            runtime=RuntimeSummary(start=start, end=end),
            interrupted=interrupted,
        )

    return build


@pytest.fixture
def make_context(tmp_path: Path, system_info: SystemInfo) -> Callable[..., RunContext]:
    """Build a RunContext whose tools never leave the test process."""

    def build(
        config: RunConfig | None = None,
        *,
        invoke: Callable[..., tuple[str, float, int]] | None = None,
        provision: Callable[..., tuple[str, float, int]] | None = None,
        which: Callable[[str], str | None] = lambda name: f"/usr/bin/{name}",
        opener: Callable[..., object] | None = None,
        arch: str = "x64",
        connectivity: dict[str, bool] | None = None,
    ) -> RunContext:
        def unexpected(*args, **kwargs):
            raise AssertionError(f"unexpected call: {args}")

        return RunContext(
            config=config or RunConfig(),
            arch=arch,
            workdir=tmp_path,
            system=system_info,
            invoker=RetryingInvoker(runner=invoke or unexpected, sleep=lambda _: None),
            provisioner=ToolProvisioner(
                tmp_path, which=which, runner=provision or unexpected, opener=opener or unexpected
            ),
            connectivity={"IPv4": True, "IPv6": False} if connectivity is None else connectivity,
        )

    return build
