from __future__ import annotations

import logging
import random
import shutil
import subprocess
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from ..config import IP_MODES, IperfServer
from ..invoker import BadAfterRetries, RawOutput
from ..models import TestSection
from ..parsers import classify_iperf3_attempt, parse_iperf_section, parse_ping_latency
from ..types import TestFamily
from ..utils import run_command
from .base import (
    DEFAULT_IPERF_PAUSE,
    DEFAULT_IPERF_STREAMS,
    DEFAULT_IPERF_TIMEOUT,
    DEFAULT_PING_TIMEOUT,
    BenchmarkBase,
    RunContext,
)


logger = logging.getLogger(__name__)


def measure_latency(host: str) -> str:
    """Round-trip time of one ping to ``host``, or ``--``."""
    ping = shutil.which("ping")
    if not ping:
        return "--"
    try:
        stdout, _, _ = run_command([ping, "-c1", host], timeout=DEFAULT_PING_TIMEOUT, merge_stderr=False)
    except (OSError, subprocess.SubprocessError):
        return "--"
    return parse_ping_latency(stdout)


class IPerf3Benchmark(BenchmarkBase):
    family = TestFamily.NETWORK
    description = "iperf3 network speed tests"

    def __init__(
        self,
        *,
        choose_port: Callable[[Sequence[int]], int] = random.choice,
        latency: Callable[[str], str] = measure_latency,
        pause: Callable[[float], None] = time.sleep,
    ):
        self._choose_port = choose_port
        self._latency = latency
        self._pause = pause

    def modes(self, context: RunContext) -> list[str]:
        """IP modes to test; every mode when connectivity was not probed."""
        if context.config.skip_net_info:
            return list(IP_MODES)
        return [mode for mode in IP_MODES if context.connectivity.get(mode)]

    def validate(self, context: RunContext) -> tuple[bool, str]:
        if not context.config.iperf_servers:
            return False, "No iperf3 servers configured"
        modes = self.modes(context)
        if not modes:
            return False, "Neither IPv4 nor IPv6 connectivity was detected"
        if not any(server.supports(mode) for server in context.config.iperf_servers for mode in modes):
            return False, f"No configured iperf3 server supports {'/'.join(modes)}"
        return True, ""

    def _run_direction(
        self, context: RunContext, iperf: Path, server: IperfServer, mode: str, reverse: bool
    ) -> str | None:
        direction = "recv" if reverse else "send"
        print(f"Performing {mode} iperf3 {direction} test {'from' if reverse else 'to'} {server.host}...")
        args = [
            "-6" if mode == "IPv6" else "-4",
            "-c",
            server.host,
            "-p",
            str(self._choose_port(server.ports)),
            "-P",
            str(DEFAULT_IPERF_STREAMS),
        ]
        if reverse:
            args.append("-R")
        outcome = context.invoker.invoke(
            iperf,
            args,
            timeout=DEFAULT_IPERF_TIMEOUT,
            is_bad_result=classify_iperf3_attempt,
        )
        if isinstance(outcome, RawOutput):
            return outcome.stdout
        logger.warning("iperf3 %s %s to %s: %s", mode, direction, server.host, outcome.message)
        if isinstance(outcome, BadAfterRetries) and outcome.fatal:
            return outcome.last_output.stdout
        return None

    def execute(self, context: RunContext) -> list[TestSection]:
        iperf = context.provisioner.prebuilt_binary("iperf3", context.arch)
        sections: list[TestSection] = []
        for mode in self.modes(context):
            for server in context.config.iperf_servers:
                if not server.supports(mode):
                    continue
                send = self._run_direction(context, iperf, server, mode, reverse=False)
                self._pause(DEFAULT_IPERF_PAUSE)
                recv = self._run_direction(context, iperf, server, mode, reverse=True)
                latency = self._latency(server.host)
                sections.append(parse_iperf_section(mode, server.provider, server.location, send, recv, latency))
        return sections
