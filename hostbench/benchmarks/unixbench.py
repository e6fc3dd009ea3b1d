from __future__ import annotations

from ..errors import ToolTransientFailure, ToolUnavailable
from ..invoker import RawOutput
from ..models import TestSection
from ..parsers import parse_unixbench_report
from ..types import TestFamily
from .base import DEFAULT_UNIXBENCH_TIMEOUT, BenchmarkBase, RunContext


UNIXBENCH_REPOSITORY = "https://github.com/kdlucas/byte-unixbench"


class UnixBenchBenchmark(BenchmarkBase):
    family = TestFamily.UNIXBENCH
    description = "UnixBench system benchmarks index"

    def execute(self, context: RunContext) -> list[TestSection]:
        checkout = context.workdir / "byte-unixbench"
        context.provisioner.git_clone(UNIXBENCH_REPOSITORY, checkout)
        bench_dir = checkout / "UnixBench"
        if not (bench_dir / "Run").exists():
            raise ToolUnavailable("UnixBench checkout has no UnixBench/Run script")

        runs = context.config.unixbench_runs
        print(f"Running UnixBench ({runs} iteration(s))...")
        outcome = context.invoker.invoke(
            bench_dir / "Run",
            ["-i", str(runs)],
            timeout=DEFAULT_UNIXBENCH_TIMEOUT,
            max_attempts=1,
            cwd=bench_dir,
        )
        if not isinstance(outcome, RawOutput):
            last = outcome.last_output.stdout if outcome.last_output else ""
            raise ToolTransientFailure(outcome.message, attempts=outcome.attempts, raw_output=last)

        (bench_dir / "unixbench_results.txt").write_text(outcome.stdout)
        return [parse_unixbench_report(outcome.stdout)]
