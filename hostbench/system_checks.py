"""Host prerequisites and environment management for benchmarking."""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import time
from collections.abc import Callable
from pathlib import Path
from urllib import error, request

from .errors import SetupFailure
from .models import GovernorSnapshot
from .utils import run_command


logger = logging.getLogger(__name__)

SYSFS_CPU = Path("/sys/devices/system/cpu")
PERFORMANCE = "performance"

DEFAULT_IDLE_THRESHOLD = 0.1
DEFAULT_IDLE_INTERVAL = 5.0
DEFAULT_IDLE_MAX_WAIT = 600.0

CONNECTIVITY_PROBES = {
    "IPv4": ("-4", "ipv4.google.com", "https://ipv4.icanhazip.com"),
    "IPv6": ("-6", "ipv6.google.com", "https://ipv6.icanhazip.com"),
}


def _kernel_long_bit() -> int:
    try:
        stdout, _, returncode = run_command(["getconf", "LONG_BIT"], timeout=5)
    except (OSError, subprocess.SubprocessError):
        return 64 if "64" in platform.machine() else 32
    if returncode != 0 or not stdout.strip().isdigit():
        return 64 if "64" in platform.machine() else 32
    return int(stdout.strip())


def detect_arch(machine: str | None = None, long_bit: int | None = None) -> str:
    """Map the kernel machine type to ``x64``, ``x86``, ``aarch64`` or ``arm``."""
    machine = machine if machine is not None else platform.machine()
    if "x86_64" in machine:
        return "x64"
    if len(machine) == 4 and machine[0] == "i" and machine.endswith("86"):
        return "x86"
    if "aarch" in machine or "arm" in machine:
        bits = long_bit if long_bit is not None else _kernel_long_bit()
        return "aarch64" if bits == 64 else "arm"
    raise SetupFailure(f"Architecture {machine!r} is not supported")


def is_arm(arch: str) -> bool:
    return arch in ("aarch64", "arm")


def check_write_permission(directory: Path, probe_name: str = ".hostbench-write-test") -> None:
    """Raise ``SetupFailure`` unless files can be created in ``directory``."""
    probe = directory / probe_name
    try:
        probe.touch()
        probe.unlink()
    except OSError as exc:
        raise SetupFailure(
            f"You do not have write permission in {directory}. Switch to an owned directory and re-run."
        ) from exc


def available_space_kib(directory: Path) -> int:
    return shutil.disk_usage(directory).free // 1024


def read_load_average(loadavg: Path = Path("/proc/loadavg")) -> float:
    """One-minute load average."""
    return float(loadavg.read_text().split()[0])


def wait_for_idle_load(
    threshold: float = DEFAULT_IDLE_THRESHOLD,
    interval: float = DEFAULT_IDLE_INTERVAL,
    max_wait: float = DEFAULT_IDLE_MAX_WAIT,
    *,
    read_load: Callable[[], float] = read_load_average,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll the load average until it drops below ``threshold``.

    Returns False when ``max_wait`` seconds pass first.
    """
    print("Checking system load... ")
    waited = 0.0
    while True:
        try:
            load = read_load()
        except (OSError, ValueError, IndexError) as exc:
            logger.warning("Unable to read load average: %s", exc)
            return False
        if load < threshold:
            print(f"Load average is below {threshold:g}. Proceeding with benchmarking.")
            return True
        if waited >= max_wait:
            logger.warning("Load average still %.2f after %gs, starting anyway", load, waited)
            return False
        print(f"Current load: {load:.2f}. Waiting for {interval:g} seconds... ")
        sleep(interval)
        waited += interval


def _probe_connectivity(mode: str) -> bool:
    flag, ping_host, fallback_url = CONNECTIVITY_PROBES[mode]
    try:
        _, _, returncode = run_command(["ping", flag, "-c", "1", "-W", "4", ping_host], timeout=10)
    except (OSError, subprocess.SubprocessError):
        returncode = 1
    if returncode == 0:
        return True
    try:
        with request.urlopen(fallback_url, timeout=4) as response:
            return bool(response.read().strip())
    except (OSError, error.URLError):
        return False


def detect_connectivity(probe: Callable[[str], bool] = _probe_connectivity) -> dict[str, bool]:
    """Which of IPv4 / IPv6 can reach the internet."""
    connectivity = {mode: probe(mode) for mode in CONNECTIVITY_PROBES}
    if not any(connectivity.values()):
        logger.warning("Both IPv4 AND IPv6 connectivity were not detected. Check for DNS issues...")
    return connectivity


class GovernorManager:
    """Read, switch and restore the CPU frequency governor and policy."""

    def __init__(self, sysfs_root: Path = SYSFS_CPU):
        self.sysfs_root = sysfs_root

    @property
    def governor_file(self) -> Path:
        return self.sysfs_root / "cpu0" / "cpufreq" / "scaling_governor"

    @property
    def policy_file(self) -> Path:
        return self.sysfs_root / "cpufreq" / "policy0" / "scaling_governor"

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text().strip()
        except OSError:
            return ""

    def _write_all(self, pattern: str, value: str) -> None:
        for path in sorted(self.sysfs_root.glob(pattern)):
            try:
                path.write_text(value)
            except OSError as exc:
                logger.debug("Cannot write %s: %s", path, exc)

    def _switch(self, label: str, current_file: Path, pattern: str) -> tuple[str, str]:
        if not current_file.exists():
            print(f"Unable to check CPU {label}. File not found.")
            return "", "unknown"
        original = self._read(current_file)
        print(f"Current CPU {label}: {original}")
        if original == PERFORMANCE:
            print(f"CPU {label} already set to {PERFORMANCE}")
            return original, original
        self._write_all(pattern, PERFORMANCE)
        if self._read(current_file) == PERFORMANCE:
            print(f"CPU {label} set to {PERFORMANCE}")
            return original, PERFORMANCE
        logger.warning("Failed to set CPU %s to %s (needs root)", label, PERFORMANCE)
        return original, original

    def apply_performance(self) -> GovernorSnapshot:
        """Switch governor and policy to ``performance`` and record what was there."""
        original_governor, tested_governor = self._switch(
            "governor", self.governor_file, "cpu[0-9]*/cpufreq/scaling_governor"
        )
        original_policy, tested_policy = self._switch(
            "policy", self.policy_file, "cpufreq/policy*/scaling_governor"
        )
        return GovernorSnapshot(original_governor, original_policy, tested_governor, tested_policy)

    def observe(self) -> GovernorSnapshot:
        """Report the current governor and policy without changing them."""
        governor = self._read(self.governor_file)
        policy = self._read(self.policy_file)
        print("Skipping CPU governor and policy checks/changes.")
        print(f"Current CPU governor: {governor or 'unknown'}")
        print(f"Current CPU policy: {policy or 'unknown'}")
        return GovernorSnapshot(governor, policy, governor or "unknown", policy or "unknown")

    def restore(self, snapshot: GovernorSnapshot) -> None:
        """Put back the governor and policy recorded in ``snapshot``."""
        if snapshot.original_governor and snapshot.original_governor != snapshot.tested_governor:
            print("Restoring original CPU governor...")
            self._write_all("cpu[0-9]*/cpufreq/scaling_governor", snapshot.original_governor)
        if snapshot.original_policy and snapshot.original_policy != snapshot.tested_policy:
            print("Restoring original CPU policy...")
            self._write_all("cpufreq/policy*/scaling_governor", snapshot.original_policy)
