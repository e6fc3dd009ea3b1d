"""Console tables and JSON output for benchmark reports."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any
from urllib import error, request

from .models import AggregateReport, MetricRecord, MetricStatus, TestSection
from .types import TestFamily


logger = logging.getLogger(__name__)

RULE = "-" * 33
UNIXBENCH_INDEX_KEY = "System Benchmarks Index"


# --------------------------------------------------------------------------
# Number formatting
# --------------------------------------------------------------------------


def format_speed(kb_per_s: float | None) -> str:
    """Format a KB/s throughput, moving to MB/s or GB/s once it rounds to 1000 or more."""
    if kb_per_s is None:
        return ""
    value, unit = float(kb_per_s), "KB/s"
    for larger in ("MB/s", "GB/s"):
        if round(value, 2) < 1000:
            break
        value, unit = value / 1000, larger
    return f"{value:.2f} {unit}"


def format_size(kib: float | None) -> str:
    """Format a KiB memory size as KiB, MiB, GiB or TiB."""
    if kib is None:
        return ""
    value, unit = float(kib), "KiB"
    for threshold, candidate in ((1024**3, "TiB"), (1024**2, "GiB"), (1024, "MiB")):
        if value >= threshold:
            value, unit = value / threshold, candidate
            break
    return f"{value:.2f} {unit}"


def format_iops(iops: float | None) -> str:
    """Format IOPS, abbreviating thousands (``1.7k``)."""
    if iops is None:
        return ""
    if iops >= 1000:
        return f"{iops / 1000:.1f}k"
    return f"{int(iops)}"


def format_number(value: float) -> str:
    """Shortest plain rendering of a metric value (``940``, ``9.41``)."""
    return f"{value:g}"


def _json_number(value: float) -> int | float:
    number = float(value)
    return int(number) if number.is_integer() else number


# --------------------------------------------------------------------------
# JSON
# --------------------------------------------------------------------------


def _split_subtest(record: MetricRecord) -> tuple[str, str]:
    group, _, name = record.subtest_name.partition("/")
    return (group, name) if name else ("", group)


def _status_payload(record: MetricRecord) -> dict[str, str]:
    payload = {"status": record.status.value}
    if record.message:
        payload["message"] = record.message
    return payload


def _is_generic_failure(section: TestSection) -> bool:
    return len(section.records) == 1 and section.records[0].subtest_name == "error"


def _failure_payload(section: TestSection) -> dict[str, Any]:
    return {**dict(section.metadata), "status": section.status.value, "message": section.message}


def _fio_json(data: dict[str, Any], section: TestSection) -> None:
    data["partition"] = str(section.metadata.get("partition", ""))
    fio = data.setdefault("fio", {})
    for record in section.records:
        block_size, operation = _split_subtest(record)
        if record.status is MetricStatus.OK and record.value is not None:
            entry: dict[str, Any] = {
                "speed": _json_number(record.value),
                "iops": _json_number(record.attributes.get("iops", 0)),
            }
        else:
            entry = _status_payload(record)
        fio.setdefault(block_size, {})[operation] = entry


def _iperf_value(record: MetricRecord | None) -> str:
    if record is None:
        return MetricStatus.FAILED.value
    if record.status is MetricStatus.OK and record.value is not None:
        return f"{format_number(record.value)} {record.unit}".strip()
    return record.status.value


def _iperf_json(data: dict[str, Any], section: TestSection) -> None:
    meta = section.metadata
    data.setdefault("iperf", []).append(
        {
            "mode": meta.get("mode", ""),
            "provider": meta.get("provider", ""),
            "loc": meta.get("loc", ""),
            "send": _iperf_value(section.get("send")),
            "recv": _iperf_value(section.get("recv")),
            "latency": meta.get("latency", "--"),
        }
    )


def _geekbench_json(data: dict[str, Any], section: TestSection) -> None:
    entry: dict[str, Any] = {"version": section.metadata.get("version")}
    for name in ("single", "multi"):
        record = section.get(name)
        if record is not None and record.status is MetricStatus.OK and record.value is not None:
            entry[name] = _json_number(record.value)
        elif record is not None:
            entry[name] = _status_payload(record)
    entry["url"] = section.metadata.get("url", "")
    data.setdefault("geekbench", []).append(entry)


def _leaf(record: MetricRecord) -> Any:
    if record.status is MetricStatus.OK and record.value is not None:
        return _json_number(record.value)
    return _status_payload(record)


def _grouped_json(section: TestSection, leaf: Callable[[MetricRecord], Any]) -> dict[str, Any]:
    grouped: dict[str, Any] = {}
    for record in section.records:
        group, name = _split_subtest(record)
        if group:
            grouped.setdefault(group, {})[name] = leaf(record)
        else:
            grouped[name] = leaf(record)
    return grouped


def _unixbench_leaf(record: MetricRecord) -> Any:
    if record.status is MetricStatus.OK and record.value is not None and record.attributes:
        return {
            "baseline": _json_number(record.attributes.get("baseline", 0)),
            "result": _json_number(record.attributes.get("result", 0)),
            "index": _json_number(record.value),
        }
    return _leaf(record)


def _unixbench_json(data: dict[str, Any], section: TestSection) -> None:
    grouped = _grouped_json(section, _unixbench_leaf)
    data["unixbench"] = {core_mode: {UNIXBENCH_INDEX_KEY: values} for core_mode, values in grouped.items()}


def _passmark_json(data: dict[str, Any], section: TestSection) -> None:
    data["passmark"] = _grouped_json(section, _leaf)


def _cpuminer_json(data: dict[str, Any], section: TestSection) -> None:
    data["cpuminer-multi"] = _grouped_json(section, _leaf)


_JSON_BUILDERS: dict[TestFamily, Callable[[dict[str, Any], TestSection], None]] = {
    TestFamily.DISK: _fio_json,
    TestFamily.NETWORK: _iperf_json,
    TestFamily.GEEKBENCH: _geekbench_json,
    TestFamily.UNIXBENCH: _unixbench_json,
    TestFamily.PASSMARK: _passmark_json,
    TestFamily.CPUMINER: _cpuminer_json,
}

_LIST_FAMILIES = frozenset({TestFamily.NETWORK, TestFamily.GEEKBENCH})


def report_to_dict(report: AggregateReport) -> dict[str, Any]:
    """Convert a report into the JSON document structure."""
    system = report.system
    governor = report.governor
    data: dict[str, Any] = {
        "version": report.version,
        "time": report.time,
        "os": {
            "arch": system.arch,
            "distro": system.distro,
            "kernel": system.kernel,
            "uptime": _json_number(system.uptime_seconds),
        },
        "cpu": {
            "model": system.cpu_model,
            "cores": system.cpu_cores,
            "freq": system.cpu_freq,
            "original_governor": governor.original_governor,
            "original_policy": governor.original_policy,
            "tested_governor": governor.tested_governor,
            "tested_policy": governor.tested_policy,
        },
        "mem": {"ram": system.ram_kib, "ram_units": "KiB"},
    }

    for section in report.sections:
        if section.is_unavailable:
            continue
        family = section.test_name
        if _is_generic_failure(section):
            if family in _LIST_FAMILIES:
                data.setdefault(family.value, []).append(_failure_payload(section))
            else:
                data.setdefault(family.value, _failure_payload(section))
            continue
        _JSON_BUILDERS[family](data, section)

    if report.interrupted:
        data["interrupted"] = True
    data["runtime"] = {
        "start": report.runtime.start,
        "end": report.runtime.end,
        "elapsed": report.runtime.elapsed,
    }
    return data


def render_json(report: AggregateReport) -> str:
    """Render the report as one JSON document."""
    return json.dumps(report_to_dict(report), indent=2)


def write_json_report(report: AggregateReport, output_path: Path) -> None:
    """Write benchmark report to JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_json(report) + "\n")


def post_json_report(payload: str, urls: Iterable[str], timeout: float = 10.0) -> list[str]:
    """POST the JSON document to each URL; return the URLs that failed."""
    failed: list[str] = []
    body = payload.encode("utf-8")
    for url in urls:
        req = request.Request(url, data=body, headers={"Content-Type": "application/json"}, method="POST")
        try:
            with request.urlopen(req, timeout=timeout) as response:
                logger.info("Posted results to %s (HTTP %s)", url, response.status)
        except (OSError, error.URLError, error.HTTPError) as exc:
            logger.warning("Failed to send results to %s: %s", url, exc)
            failed.append(url)
    return failed


# --------------------------------------------------------------------------
# Text
# --------------------------------------------------------------------------


def _heading(title: str) -> list[str]:
    return ["", title, RULE]


def _system_lines(report: AggregateReport) -> list[str]:
    system = report.system
    governor = report.governor
    lines = _heading("Basic System Information:")
    lines.append(f"Processor  : {system.cpu_model}")
    lines.append(f"CPU cores  : {system.cpu_cores} @ {system.cpu_freq}")
    lines.append(f"RAM        : {format_size(system.ram_kib)}")
    lines.append(f"Distro     : {system.distro}")
    lines.append(f"Kernel     : {system.kernel}")
    lines.append(f"Governor   : {governor.tested_governor} (original: {governor.original_governor or 'unknown'})")
    lines.append(f"Policy     : {governor.tested_policy} (original: {governor.original_policy or 'unknown'})")
    return lines


def _fio_lines(section: TestSection) -> list[str]:
    block_sizes: list[str] = []
    operations: list[str] = []
    cells: dict[tuple[str, str], MetricRecord] = {}
    for record in section.records:
        block_size, operation = _split_subtest(record)
        block_sizes.append(block_size)
        operations.append(operation)
        cells[(block_size, operation)] = record
    block_sizes = list(dict.fromkeys(block_sizes))
    operations = list(dict.fromkeys(operations))

    def cell(block_size: str, operation: str) -> tuple[str, str]:
        record = cells.get((block_size, operation))
        if record is None or not block_size:
            return "", ""
        if record.status is not MetricStatus.OK:
            return record.status.value, ""
        return format_speed(record.value), f"({format_iops(record.attributes.get('iops'))})"

    partition = section.metadata.get("partition", "")
    lines = _heading(f"fio Disk Speed Tests (Partition {partition}):")
    for index in range(0, len(block_sizes), 2):
        left = block_sizes[index]
        right = block_sizes[index + 1] if index + 1 < len(block_sizes) else ""
        if index > 0:
            lines.append(f"{'':<10} | {'':<20} | {'':<20}")
        lines.append(f"{'Block Size':<10} | {left:<11} {'(IOPS)':>8} | {right:<11} {'(IOPS)' if right else '':>8}")
        lines.append(f"{'  ------':<10} | {'---':<11} {'---- ':>8} | {'----':<11} {'---- ':>8}")
        for operation in operations:
            left_speed, left_iops = cell(left, operation)
            right_speed, right_iops = cell(right, operation)
            lines.append(
                f"{operation.capitalize():<10} | {left_speed:<11} {left_iops:>8} | {right_speed:<11} {right_iops:>8}"
            )
    return lines


def _iperf_lines(sections: Sequence[TestSection]) -> list[str]:
    lines: list[str] = []
    mode = None
    for section in sections:
        meta = section.metadata
        if meta.get("mode") != mode:
            mode = meta.get("mode")
            lines.extend(_heading(f"iperf3 Network Speed Tests ({mode}):"))
            lines.append(
                f"{'Provider':<15} | {'Location (Link)':<25} | {'Send Speed':<15} | {'Recv Speed':<15} | {'Ping':<15}"
            )
            lines.append(f"{'-----':<15} | {'-----':<25} | {'----':<15} | {'----':<15} | {'----':<15}")
        lines.append(
            f"{meta.get('provider', ''):<15} | {meta.get('loc', ''):<25} | "
            f"{_iperf_value(section.get('send')):<15} | {_iperf_value(section.get('recv')):<15} | "
            f"{meta.get('latency', '--'):<15}"
        )
    return lines


def _record_text(record: MetricRecord | None) -> str:
    if record is None:
        return ""
    if record.status is MetricStatus.OK and record.value is not None:
        return format_number(record.value)
    return record.status.value


def _geekbench_lines(section: TestSection) -> list[str]:
    lines = _heading(f"Geekbench {section.metadata.get('version', '')} Benchmark Test:")
    lines.append(f"{'Test':<15} | {'Value':<30}")
    lines.append(f"{'':<15} | {'':<30}")
    lines.append(f"{'Single Core':<15} | {_record_text(section.get('single')):<30}")
    lines.append(f"{'Multi Core':<15} | {_record_text(section.get('multi')):<30}")
    lines.append(f"{'Full Test':<15} | {section.metadata.get('url', ''):<30}")
    return lines


def _unixbench_lines(section: TestSection) -> list[str]:
    names: list[str] = []
    values: dict[tuple[str, str], MetricRecord] = {}
    for record in section.records:
        core_mode, name = _split_subtest(record)
        names.append(name)
        values[(core_mode, name)] = record
    lines = _heading("UnixBench Results:")
    lines.append(f"{'Test':<45} | {'Single-core':>12} | {'Multi-core':>12}")
    lines.append(f"{'----':<45} | {'----':>12} | {'----':>12}")
    for name in dict.fromkeys(names):
        single = _record_text(values.get(("single-core", name)))
        multi = _record_text(values.get(("multi-core", name)))
        lines.append(f"{name:<45} | {single:>12} | {multi:>12}")
    return lines


def _passmark_lines(section: TestSection) -> list[str]:
    lines = _heading("PassMark PerformanceTest Results:")
    for record in section.records:
        group, name = _split_subtest(record)
        label = f"{group} {name}" if group else name
        unit = f" {record.unit}" if record.status is MetricStatus.OK and record.unit != "score" else ""
        lines.append(f"{label:<30} : {_record_text(record)}{unit}")
    return lines


def _cpuminer_lines(section: TestSection) -> list[str]:
    lines = _heading("cpuminer-multi Benchmark Results:")
    for record in section.records:
        core_mode, name = _split_subtest(record)
        label = name.replace("cpu_", "CPU #").replace("average", "Average").replace("benchmark", "Benchmark")
        text = _record_text(record)
        if record.status is MetricStatus.OK:
            text = f"{text} kH/s"
        lines.append(f"{core_mode:<12} {label:<12}: {text}")
    return lines


_TEXT_RENDERERS: dict[TestFamily, Callable[[TestSection], list[str]]] = {
    TestFamily.DISK: _fio_lines,
    TestFamily.GEEKBENCH: _geekbench_lines,
    TestFamily.UNIXBENCH: _unixbench_lines,
    TestFamily.PASSMARK: _passmark_lines,
    TestFamily.CPUMINER: _cpuminer_lines,
}


def describe_section_status(section: TestSection) -> str | None:
    """One-line note for sections that have no table to show."""
    if section.is_unavailable:
        return f"{section.test_name.label}: unavailable ({section.message})"
    if _is_generic_failure(section):
        return f"{section.test_name.label}: failed ({section.message})"
    return None


def render_text(report: AggregateReport) -> str:
    """Render the report as fixed-width console tables."""
    lines = _system_lines(report)
    pending_iperf: list[TestSection] = []

    def flush_iperf() -> None:
        if pending_iperf:
            lines.extend(_iperf_lines(pending_iperf))
            pending_iperf.clear()

    for section in report.sections:
        note = describe_section_status(section)
        if section.test_name is TestFamily.NETWORK and note is None:
            pending_iperf.append(section)
            continue
        flush_iperf()
        if note is not None:
            lines.extend(["", note])
            continue
        lines.extend(_TEXT_RENDERERS[section.test_name](section))
    flush_iperf()

    lines.append("")
    suffix = " (interrupted, partial results)" if report.interrupted else ""
    lines.append(f"Benchmark completed in {report.runtime.describe()}{suffix}")
    return "\n".join(lines)
