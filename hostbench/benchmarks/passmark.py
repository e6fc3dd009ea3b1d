from __future__ import annotations

from ..errors import ToolTransientFailure, ToolUnavailable
from ..invoker import RawOutput
from ..models import TestSection
from ..parsers import parse_passmark_results
from ..types import TestFamily
from .base import DEFAULT_PASSMARK_TIMEOUT, BenchmarkBase, RunContext


PASSMARK_DOWNLOADS = {
    "x64": ("https://www.passmark.com/downloads/pt_linux_x64.zip", "pt_linux_x64"),
    "aarch64": ("https://www.passmark.com/downloads/pt_linux_arm64.zip", "pt_linux_arm64"),
}
RESULTS_FILE = "results_all.yml"


class PassMarkBenchmark(BenchmarkBase):
    family = TestFamily.PASSMARK
    description = "PassMark PerformanceTest CPU and memory marks"

    def validate(self, context: RunContext) -> tuple[bool, str]:
        if context.arch not in PASSMARK_DOWNLOADS:
            return False, f"PassMark PerformanceTest has no build for {context.arch}"
        return True, ""

    def execute(self, context: RunContext) -> list[TestSection]:
        url, executable = PASSMARK_DOWNLOADS[context.arch]
        install_dir = context.provisioner.tool_dir("passmark")
        archive = context.provisioner.download(url, install_dir / "passmark.zip")
        context.provisioner.extract_zip(archive, install_dir, executables=[f"PerformanceTest/{executable}"])
        binary = install_dir / "PerformanceTest" / executable
        if not binary.exists():
            raise ToolUnavailable(f"{executable} not found in {archive.name}")

        config = context.config
        print("Running PassMark PerformanceTest...")
        outcome = context.invoker.invoke(
            binary,
            ["-r", str(config.passmark_autorun), "-d", str(config.passmark_duration)],
            timeout=DEFAULT_PASSMARK_TIMEOUT,
            max_attempts=1,
            cwd=binary.parent,
        )
        if not isinstance(outcome, RawOutput):
            last = outcome.last_output.stdout if outcome.last_output else ""
            raise ToolTransientFailure(outcome.message, attempts=outcome.attempts, raw_output=last)

        results = binary.parent / RESULTS_FILE
        if not results.is_file():
            raise ToolTransientFailure(f"PassMark did not write {RESULTS_FILE}", attempts=outcome.attempts)
        return [parse_passmark_results(results.read_text(encoding="utf-8", errors="replace"))]
