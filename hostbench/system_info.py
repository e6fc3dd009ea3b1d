"""System information gathering."""

from __future__ import annotations

import os
import platform
from pathlib import Path

from .models import SystemInfo


PROC_ROOT = Path("/proc")


def parse_cpuinfo(text: str) -> tuple[str, int, str]:
    """Return ``(model, cores, freq)`` from ``/proc/cpuinfo`` contents.

    The last ``model name`` and ``cpu MHz`` entries win, matching what a
    per-line scan over all processors reports.
    """
    model = ""
    cores = 0
    freq = ""
    for line in text.splitlines():
        key, _, value = line.partition(":")
        key = key.strip()
        if key == "model name":
            model = value.strip()
            cores += 1
        elif key == "cpu MHz":
            freq = value.strip().split(".")[0]
    return model, cores, f"{freq or '???'} MHz"


def parse_meminfo_total(text: str) -> int | None:
    """MemTotal from ``/proc/meminfo`` in KiB."""
    for line in text.splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2:
                return int(parts[1])
    return None


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


def _read_uptime_seconds(proc_root: Path) -> float:
    fields = _read(proc_root / "uptime").split()
    try:
        return float(fields[0])
    except (IndexError, ValueError):
        return 0.0


def _detect_distro() -> str:
    """Best-effort distribution name."""
    try:
        info = platform.freedesktop_os_release()
    except OSError:
        info = {}
    return info.get("PRETTY_NAME") or info.get("NAME") or platform.system()


def gather_system_info(arch: str, proc_root: Path = PROC_ROOT) -> SystemInfo:
    """Gather system information for the benchmark report."""
    model, cores, freq = parse_cpuinfo(_read(proc_root / "cpuinfo"))
    ram_kib = parse_meminfo_total(_read(proc_root / "meminfo")) or 0

    return SystemInfo(
        arch=arch,
        cpu_model=model or platform.processor(),
        cpu_cores=cores or os.cpu_count() or 0,
        cpu_freq=freq,
        ram_kib=ram_kib,
        distro=_detect_distro(),
        kernel=platform.release(),
        uptime_seconds=_read_uptime_seconds(proc_root),
    )
