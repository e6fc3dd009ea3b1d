"""Command-line interface for hostbench."""

from __future__ import annotations

import argparse
import logging
import shutil
import signal
import sys
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from .accumulator import ResultAccumulator
from .benchmarks import RunContext, default_benchmarks
from .config import DEFAULT_IPERF_SERVERS, IperfServer, RunConfig
from .coordinator import RunCoordinator
from .errors import InterruptedRun, SetupFailure
from .invoker import RetryingInvoker
from .models import AggregateReport, GovernorSnapshot
from .output import post_json_report, render_json, render_text, write_json_report
from .provisioning import ToolProvisioner
from .system_checks import (
    GovernorManager,
    check_write_permission,
    detect_arch,
    detect_connectivity,
    wait_for_idle_load,
)
from .system_info import gather_system_info


logger = logging.getLogger(__name__)

REPORT_VERSION = "v2024-06-09"
LOCAL_TOOLS = ("fio", "iperf3", "geekbench6", "cpuminer")


class CommaSeparatedListAction(argparse.Action):
    """Parse comma-separated values and accumulate across repeated flags."""

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        current = list(getattr(namespace, self.dest, []) or [])
        tokens = [part.strip() for part in str(values).split(",") if part.strip()]
        if not tokens:
            parser.error(f"{option_string} requires at least one value.")
        current.extend(tokens)
        setattr(namespace, self.dest, current)


def parse_iperf_server(text: str) -> IperfServer:
    try:
        return IperfServer.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{text!r} is not an integer") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"{value} must be at least 1")
    return value


def build_argument_parser() -> argparse.ArgumentParser:
    """Build and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hostbench",
        description="Benchmark a host with fio, iperf3, Geekbench, UnixBench, PassMark and cpuminer-multi.",
        add_help=False,
    )
    skips = parser.add_argument_group("test selection")
    skips.add_argument("-f", "-d", "--skip-disk", action="store_true", help="Skip the fio disk benchmark test.")
    skips.add_argument("-i", "--skip-network", action="store_true", help="Skip the iperf3 network test.")
    skips.add_argument("-g", "--skip-geekbench", action="store_true", help="Skip the Geekbench performance test.")
    skips.add_argument("-u", "--skip-unixbench", action="store_true", help="Skip the UnixBench performance test.")
    skips.add_argument("-p", "--skip-passmark", action="store_true", help="Skip the PassMark PerformanceTest.")
    skips.add_argument("-m", "--skip-cpuminer", action="store_true", help="Skip the cpuminer-multi benchmark test.")
    skips.add_argument(
        "-n",
        "--skip-net-info",
        action="store_true",
        help="Skip the IPv4/IPv6 connectivity lookup (iperf3 then tries every mode a server lists).",
    )
    skips.add_argument("-6", "--geekbench6", action="store_true", help="Run Geekbench 6 (the default).")

    parser.add_argument("-h", "--help", action="store_true", help="Print this message, detected settings, then exit.")
    parser.add_argument(
        "-b",
        "--prefer-bin",
        action="store_true",
        help="Prefer pre-compiled binaries over local packages.",
    )
    parser.add_argument("-c", "--skip-governor", action="store_true", help="Skip CPU governor and policy changes.")
    parser.add_argument("--no-wait-idle", action="store_true", help="Start without waiting for an idle load average.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    json_group = parser.add_argument_group("JSON output")
    json_group.add_argument("-j", "--json", action="store_true", help="Print JSON results to screen.")
    json_group.add_argument("-w", "--json-file", metavar="FILE", default="", help="Write JSON results to FILE.")
    json_group.add_argument(
        "-s",
        "--json-send",
        dest="json_send",
        action=CommaSeparatedListAction,
        metavar="URLS",
        default=[],
        help="POST JSON results to comma-separated URLs.",
    )

    tunables = parser.add_argument_group("tunables")
    tunables.add_argument("--unixbench-runs", type=positive_int, default=1, help="UnixBench iterations (default: 1).")
    tunables.add_argument("--passmark-autorun", type=positive_int, default=3, help="PassMark -r value (default: 3).")
    tunables.add_argument("--passmark-duration", type=positive_int, default=2, help="PassMark -d value (default: 2).")
    tunables.add_argument(
        "--cpuminer-duration",
        type=positive_int,
        default=300,
        help="cpuminer-multi time limit in seconds (default: 300).",
    )
    tunables.add_argument(
        "--iperf-server",
        dest="iperf_servers",
        action="append",
        type=parse_iperf_server,
        default=[],
        metavar="HOST:PORTS:PROVIDER:LOCATION:MODES",
        help="iperf3 server to test against (repeatable), e.g. 'host:5201-5209:name:City (1G):IPv4|IPv6'.",
    )
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Convert parsed arguments into a RunConfig."""
    return RunConfig(
        skip_disk=args.skip_disk,
        skip_network=args.skip_network,
        skip_geekbench=args.skip_geekbench,
        skip_unixbench=args.skip_unixbench,
        skip_passmark=args.skip_passmark,
        skip_cpuminer=args.skip_cpuminer,
        skip_net_info=args.skip_net_info,
        skip_governor=args.skip_governor,
        prefer_bin=args.prefer_bin,
        wait_idle=not args.no_wait_idle,
        json_print=args.json,
        json_file=Path(args.json_file) if args.json_file else None,
        json_urls=tuple(args.json_send),
        unixbench_runs=args.unixbench_runs,
        passmark_autorun=args.passmark_autorun,
        passmark_duration=args.passmark_duration,
        cpuminer_duration=args.cpuminer_duration,
        verbose=args.verbose,
        iperf_servers=tuple(args.iperf_servers) or DEFAULT_IPERF_SERVERS,
    )


def print_help_report(
    parser: argparse.ArgumentParser,
    config: RunConfig,
    arch: str,
    connectivity: dict[str, bool],
    which: Callable[[str], str | None] = shutil.which,
) -> int:
    """Usage, detected arch, flags, local binaries, connectivity and JSON options."""
    print(parser.format_help())
    print(f"Detected Arch: {arch}")
    print()
    print("Detected Flags:")
    flags = (
        (config.prefer_bin, "-b, force using precompiled binaries"),
        (config.skip_disk, "-f/d, skipping fio disk benchmark test"),
        (config.skip_network, "-i, skipping iperf network test"),
        (config.skip_geekbench, "-g, skipping geekbench test"),
        (config.skip_unixbench, "-u, skipping UnixBench test"),
        (config.skip_passmark, "-p, skipping PassMark PerformanceTest"),
        (config.skip_cpuminer, "-m, skipping cpuminer-multi test"),
        (config.skip_net_info, "-n, skipping network info lookup"),
        (config.skip_governor, "-c, skipping governor and policy changes"),
        (not config.skip_geekbench, "running Geekbench 6"),
    )
    for enabled, text in flags:
        if enabled:
            print(f"       {text}")
    print()
    print("Local Binary Check:")
    for tool in LOCAL_TOOLS:
        if not which(tool):
            print(f"       {tool} not detected, will download or build")
        elif config.prefer_bin:
            print(f"       {tool} detected, but using precompiled binary instead")
        else:
            print(f"       {tool} detected, using local package")
    print()
    print("Detected Connectivity:")
    if not connectivity:
        print("       not checked (-n)")
    for mode, connected in connectivity.items():
        print(f"       {mode} {'connected' if connected else 'not connected'}")
    print()
    print("JSON Options:")
    if not config.json_requested:
        print("       none")
    if config.json_print:
        print("       printing json to screen after test")
    if config.json_file is not None:
        print(f"       writing json to file ({config.json_file}) after test")
    if config.json_urls:
        print(f"       sharing json results to {', '.join(config.json_urls)}")
    print()
    print("Exiting...")
    return 0


def create_workdir(base: Path) -> Path:
    """Timestamped directory that holds every downloaded or built tool."""
    stamp = datetime.now().astimezone().isoformat(timespec="seconds").replace(":", "_")
    workdir = base / stamp
    workdir.mkdir(parents=True, exist_ok=True)
    return workdir


def emit_report(report: AggregateReport, config: RunConfig) -> None:
    """Print the tables and deliver JSON wherever it was requested."""
    print(render_text(report))
    if not config.json_requested:
        return
    payload = render_json(report)
    if config.json_print:
        print(payload)
    if config.json_file is not None:
        try:
            write_json_report(report, config.json_file)
        except OSError as exc:
            logger.error("Failed to write %s: %s", config.json_file, exc)
        else:
            print(f"Wrote {config.json_file}")
    if config.json_urls:
        post_json_report(payload, config.json_urls)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the benchmark suite."""
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)

    print(time.strftime("%a %b %d %H:%M:%S %Z %Y"))
    try:
        arch = detect_arch()
    except SetupFailure as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    connectivity = {} if config.skip_net_info else detect_connectivity()
    if args.help:
        return print_help_report(parser, config, arch, connectivity)

    base = Path.cwd()
    try:
        check_write_permission(base)
    except SetupFailure as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    workdir = create_workdir(base)
    governors = GovernorManager()
    governor = GovernorSnapshot()
    previous_handler = signal.getsignal(signal.SIGINT)
    try:
        if config.wait_idle:
            wait_for_idle_load()
        governor = governors.observe() if config.skip_governor else governors.apply_performance()

        system = gather_system_info(arch)
        accumulator = ResultAccumulator(version=REPORT_VERSION, system=system, governor=governor)
        context = RunContext(
            config=config,
            arch=arch,
            workdir=workdir,
            system=system,
            invoker=RetryingInvoker(),
            provisioner=ToolProvisioner(workdir, prefer_bin=config.prefer_bin),
            connectivity=connectivity,
        )
        coordinator = RunCoordinator(default_benchmarks(), accumulator, context, skipped=config.skipped_families())

        def handle_interrupt(signum, frame) -> None:
            if coordinator.cancel_requested:
                raise InterruptedRun("Benchmark aborted")
            print("\nInterrupt received, finishing the current test (Ctrl+C again to abort it)...")
            coordinator.request_cancel()

        signal.signal(signal.SIGINT, handle_interrupt)
        try:
            coordinator.run()
        except InterruptedRun:
            coordinator.request_cancel()
        report = accumulator.finalize(interrupted=coordinator.cancel_requested)
    except KeyboardInterrupt:
        print("\nBenchmark aborted before any test ran.")
        return 0
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        shutil.rmtree(workdir, ignore_errors=True)
        if not config.skip_governor:
            governors.restore(governor)

    emit_report(report, config)
    return 0
