"""Run configuration built from the command line."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .types import TestFamily


IP_MODES = ("IPv4", "IPv6")


@dataclass(frozen=True)
class IperfServer:
    """A public or private iperf3 server to test against.

    Written on the command line as ``HOST:PORTS:PROVIDER:LOCATION:MODES``,
    e.g. ``192.168.1.3:5201-5209:home:Stockholm, SE (1G):IPv4|IPv6``.
    """

    host: str
    first_port: int
    last_port: int
    provider: str
    location: str
    modes: tuple[str, ...] = ("IPv4",)

    def supports(self, mode: str) -> bool:
        return mode in self.modes

    @property
    def ports(self) -> range:
        return range(self.first_port, self.last_port + 1)

    @classmethod
    def parse(cls, text: str) -> IperfServer:
        # Split from the right so IPv6 literals keep their colons.
        parts = text.rsplit(":", 4)
        if len(parts) != 5:
            raise ValueError(f"Expected HOST:PORTS:PROVIDER:LOCATION:MODES, got {text!r}")
        host, ports, provider, location, modes_text = (part.strip() for part in parts)
        if not host:
            raise ValueError(f"Missing iperf3 host in {text!r}")

        low, _, high = ports.partition("-")
        try:
            first_port = int(low)
            last_port = int(high) if high else first_port
        except ValueError:
            raise ValueError(f"Invalid iperf3 port range {ports!r}") from None
        if not 0 < first_port <= last_port <= 65535:
            raise ValueError(f"Invalid iperf3 port range {ports!r}")

        modes = tuple(mode for mode in IP_MODES if mode in modes_text.split("|"))
        if not modes:
            raise ValueError(f"No IP modes (IPv4, IPv6) in {modes_text!r}")
        return cls(host, first_port, last_port, provider, location, modes)


DEFAULT_IPERF_SERVERS = (IperfServer("192.168.1.3", 5201, 5201, "home", "Stockholm, SE (1G)", ("IPv4",)),)


@dataclass(frozen=True)
class RunConfig:
    """Everything the command line decides about one run."""

    skip_disk: bool = False
    skip_network: bool = False
    skip_geekbench: bool = False
    skip_unixbench: bool = False
    skip_passmark: bool = False
    skip_cpuminer: bool = False
    skip_net_info: bool = False
    skip_governor: bool = False
    prefer_bin: bool = False
    wait_idle: bool = True
    json_print: bool = False
    json_file: Path | None = None
    json_urls: tuple[str, ...] = ()
    geekbench_versions: tuple[int, ...] = (6,)
    unixbench_runs: int = 1
    passmark_autorun: int = 3
    passmark_duration: int = 2
    cpuminer_duration: int = 300
    iperf_servers: tuple[IperfServer, ...] = field(default=DEFAULT_IPERF_SERVERS)
    verbose: bool = False

    @property
    def json_requested(self) -> bool:
        return self.json_print or self.json_file is not None or bool(self.json_urls)

    def skipped_families(self) -> frozenset[TestFamily]:
        flags = {
            TestFamily.DISK: self.skip_disk,
            TestFamily.NETWORK: self.skip_network,
            TestFamily.GEEKBENCH: self.skip_geekbench,
            TestFamily.UNIXBENCH: self.skip_unixbench,
            TestFamily.PASSMARK: self.skip_passmark,
            TestFamily.CPUMINER: self.skip_cpuminer,
        }
        return frozenset(family for family, skipped in flags.items() if skipped)
