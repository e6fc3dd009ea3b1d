from __future__ import annotations

from pathlib import Path

from ..errors import ToolTransientFailure
from ..invoker import RawOutput, Verdict, exit_status_predicate
from ..models import TestSection
from ..parsers import parse_cpuminer_output
from ..types import TestFamily
from .base import DEFAULT_CPUMINER_GRACE, BenchmarkBase, RunContext


CPUMINER_REPOSITORY = "https://github.com/tpruvot/cpuminer-multi"


def _benchmark_verdict(output: RawOutput) -> Verdict:
    # --time-limit ends the miner with a non-zero status on some builds
    if "CPU #" in output.stdout:
        return Verdict.USABLE
    return exit_status_predicate(output)


class CpuminerBenchmark(BenchmarkBase):
    family = TestFamily.CPUMINER
    description = "cpuminer-multi hash rate benchmark"

    def _resolve_binary(self, context: RunContext) -> Path:
        local = context.provisioner.local_binary("cpuminer")
        if local is not None:
            return local
        checkout = context.workdir / "cpuminer-multi"
        context.provisioner.git_clone(CPUMINER_REPOSITORY, checkout)
        return context.provisioner.build([str(checkout / "build.sh")], checkout, checkout / "cpuminer")

    def execute(self, context: RunContext) -> list[TestSection]:
        binary = self._resolve_binary(context)
        duration = context.config.cpuminer_duration
        print(f"Running cpuminer-multi benchmark ({duration}s)...")
        outcome = context.invoker.invoke(
            binary,
            ["--benchmark", "--cpu-priority=2", f"--time-limit={duration}"],
            timeout=duration + DEFAULT_CPUMINER_GRACE,
            max_attempts=1,
            is_bad_result=_benchmark_verdict,
            cwd=binary.parent,
        )
        if not isinstance(outcome, RawOutput):
            last = outcome.last_output.stdout if outcome.last_output else ""
            raise ToolTransientFailure(outcome.message, attempts=outcome.attempts, raw_output=last)
        return [parse_cpuminer_output(outcome.stdout)]
