from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ..invoker import RawOutput
from ..models import TestSection
from ..output import format_iops, format_speed
from ..parsers import FIO_TERSE_V3, FioTerseGrammar, parse_fio_minimal, parse_fio_section
from ..system_checks import available_space_kib, is_arm
from ..types import TestFamily
from ..utils import run_command
from .base import (
    DEFAULT_FIO_BLOCK_SIZES,
    DEFAULT_FIO_MIN_FREE_KIB,
    DEFAULT_FIO_MIN_FREE_KIB_ARM,
    DEFAULT_FIO_OPERATIONS,
    DEFAULT_FIO_RUNTIME,
    DEFAULT_FIO_SIZE,
    DEFAULT_FIO_SIZE_ARM,
    DEFAULT_FIO_TIMEOUT,
    BenchmarkBase,
    RunContext,
)


logger = logging.getLogger(__name__)


def current_partition(directory: Path) -> str:
    """Device backing ``directory`` as reported by ``df -P``."""
    try:
        stdout, _, returncode = run_command(["df", "-P", str(directory)], timeout=10, merge_stderr=False)
    except (OSError, subprocess.SubprocessError):
        return ""
    lines = stdout.strip().splitlines()
    if returncode != 0 or len(lines) < 2:
        return ""
    return lines[-1].split()[0]


class FioBenchmark(BenchmarkBase):
    family = TestFamily.DISK
    description = "fio disk speed tests"

    def __init__(
        self,
        block_sizes: tuple[str, ...] = DEFAULT_FIO_BLOCK_SIZES,
        operations: tuple[str, ...] = DEFAULT_FIO_OPERATIONS,
        grammar: FioTerseGrammar = FIO_TERSE_V3,
    ):
        self.block_sizes = block_sizes
        self.operations = operations
        self.grammar = grammar

    def validate(self, context: RunContext) -> tuple[bool, str]:
        arm = is_arm(context.arch)
        required = DEFAULT_FIO_MIN_FREE_KIB_ARM if arm else DEFAULT_FIO_MIN_FREE_KIB
        try:
            available = available_space_kib(context.workdir)
        except OSError as exc:
            return False, f"Cannot determine free space: {exc}"
        if available < required:
            return False, f"Less than {'512MB' if arm else '2GB'} of space available"
        return True, ""

    def build_command(self, fio: Path, test_file: Path, block_size: str, operation: str, size: str) -> list[str]:
        return [
            str(fio),
            "--randrepeat=1",
            "--ioengine=libaio",
            "--direct=1",
            "--gtod_reduce=1",
            f"--name={operation}",
            f"--filename={test_file}",
            f"--bs={block_size}",
            "--iodepth=64",
            f"--size={size}",
            f"--readwrite={operation}",
            f"--runtime={DEFAULT_FIO_RUNTIME}",
            "--time_based",
            "--group_reporting",
            "--minimal",
        ]

    def execute(self, context: RunContext) -> list[TestSection]:
        disk_path = context.provisioner.tool_dir("disk")
        fio = context.provisioner.prebuilt_binary("fio", context.arch)
        size = DEFAULT_FIO_SIZE_ARM if is_arm(context.arch) else DEFAULT_FIO_SIZE
        test_file = disk_path / "test.fio"

        runs: list[tuple[str, str, str | None]] = []
        try:
            for block_size in self.block_sizes:
                for operation in self.operations:
                    print(f"Running fio {operation} disk test with {block_size} block size...")
                    command = self.build_command(fio, test_file, block_size, operation, size)
                    outcome = context.invoker.invoke(command[0], command[1:], timeout=DEFAULT_FIO_TIMEOUT)
                    if not isinstance(outcome, RawOutput):
                        logger.warning("fio %s/%s: %s", block_size, operation, outcome.message)
                        runs.append((block_size, operation, None))
                        continue
                    runs.append((block_size, operation, outcome.stdout))
                    self._report_progress(outcome.stdout, operation)
        finally:
            test_file.unlink(missing_ok=True)

        return [parse_fio_section(current_partition(context.workdir), runs, self.grammar)]

    def _report_progress(self, stdout: str, operation: str) -> None:
        try:
            speed, iops = parse_fio_minimal(stdout, operation, self.grammar)
        except ValueError as exc:
            logger.warning("fio %s: %s", operation, exc)
            return
        print(f"Results: Speed: {format_speed(speed)}, IOPS: {format_iops(iops)}")
