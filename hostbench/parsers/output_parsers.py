"""Output parsers for the benchmark tools.

Each parser either returns structured values / a complete ``TestSection`` or
raises ``ParseFailure``. Positional formats (fio terse output, the Geekbench
results page) are described by versioned grammar objects so that a tool
upgrade means adding a grammar, not editing offsets in place.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import yaml

from ..errors import ParseFailure
from ..invoker import RawOutput, Verdict
from ..models import MetricRecord, MetricStatus, TestSection
from ..types import TestFamily
from ..utils import collapse_whitespace, parse_float


def _number(token: str, what: str) -> float:
    try:
        return parse_float(token.strip())
    except ValueError:
        raise ParseFailure(f"{what}: expected a number, got {token!r}") from None


# --------------------------------------------------------------------------
# fio
# --------------------------------------------------------------------------


@dataclass(frozen=True)
class FioTerseGrammar:
    """Field layout of ``fio --minimal`` output (1-based field numbers)."""

    version: str
    jobname_field: int
    read_fields: tuple[int, int]
    write_fields: tuple[int, int]

    def fields_for(self, operation: str) -> tuple[int, int]:
        return self.write_fields if "write" in operation else self.read_fields


FIO_TERSE_V3 = FioTerseGrammar(version="3", jobname_field=3, read_fields=(7, 8), write_fields=(48, 49))


def parse_fio_minimal(output: str, operation: str, grammar: FioTerseGrammar = FIO_TERSE_V3) -> tuple[float, float]:
    """Return ``(speed_kb_per_s, iops)`` for ``operation`` from fio terse output."""
    speed_field, iops_field = grammar.fields_for(operation)
    needed = max(speed_field, iops_field, grammar.jobname_field)
    for line in output.splitlines():
        fields = line.strip().split(";")
        if len(fields) < needed or fields[grammar.jobname_field - 1] != operation:
            continue
        if fields[0] != grammar.version:
            raise ParseFailure(f"fio terse version {fields[0]!r} is not supported (expected {grammar.version})")
        speed = _number(fields[speed_field - 1], f"fio {operation} bandwidth")
        iops = _number(fields[iops_field - 1], f"fio {operation} IOPS")
        return speed, iops
    raise ParseFailure(f"No fio {operation} result found in output")


def parse_fio_section(
    partition: str,
    runs: Sequence[tuple[str, str, str | None]],
    grammar: FioTerseGrammar = FIO_TERSE_V3,
) -> TestSection:
    """Build the disk section from ``(block_size, operation, stdout)`` runs.

    ``stdout`` is ``None`` for runs that failed or timed out.
    """
    records: list[MetricRecord] = []
    for block_size, operation, stdout in runs:
        subtest = f"{block_size}/{operation}"
        if stdout is None:
            records.append(MetricRecord.failed(TestFamily.DISK, subtest, "KB/s", "Test failed or timed out"))
            continue
        try:
            speed, iops = parse_fio_minimal(stdout, operation, grammar)
        except ParseFailure as exc:
            records.append(MetricRecord.failed(TestFamily.DISK, subtest, "KB/s", str(exc)))
            continue
        records.append(MetricRecord.ok(TestFamily.DISK, subtest, speed, "KB/s", {"iops": iops}))
    return TestSection(TestFamily.DISK, tuple(records), {"partition": partition})


# --------------------------------------------------------------------------
# iperf3
# --------------------------------------------------------------------------

IPERF_UNITS = {
    "bits/sec": "bps",
    "Kbits/sec": "Kbps",
    "Mbits/sec": "Mbps",
    "Gbits/sec": "Gbps",
    "Tbits/sec": "Tbps",
}


def parse_iperf3_summary(output: str) -> tuple[float, str]:
    """Return ``(speed, unit)`` from the summed receiver line of iperf3 text output."""
    for line in output.splitlines():
        if "SUM" not in line or "receiver" not in line:
            continue
        fields = line.split()
        if len(fields) < 7:
            break
        speed = _number(fields[5], "iperf3 speed")
        return speed, IPERF_UNITS.get(fields[6], fields[6])
    raise ParseFailure("No iperf3 SUM receiver line found")


def classify_iperf3_attempt(output: RawOutput) -> Verdict:
    """Busy/error predicate for one iperf3 attempt."""
    text = output.stdout
    if "unable to connect" in text:
        return Verdict.FATAL
    if "receiver" not in text or "error" in text:
        return Verdict.BUSY
    try:
        speed, _ = parse_iperf3_summary(text)
    except ParseFailure:
        return Verdict.BUSY
    return Verdict.USABLE if speed > 0 else Verdict.BUSY


def parse_ping_latency(output: str) -> str:
    """Round-trip time from ``ping -c1`` output, or ``--``."""
    match = re.search(r"time=(.+)$", output, flags=re.MULTILINE)
    return match.group(1).strip() if match else "--"


def _iperf_direction(subtest: str, output: str | None) -> MetricRecord:
    if output is None:
        return MetricRecord.busy(TestFamily.NETWORK, subtest, message="iperf3 server did not respond")
    if "unable to connect" in output:
        return MetricRecord.failed(TestFamily.NETWORK, subtest, message="Unable to connect to iperf3 server")
    try:
        speed, unit = parse_iperf3_summary(output)
    except ParseFailure as exc:
        return MetricRecord.busy(TestFamily.NETWORK, subtest, message=str(exc))
    if speed <= 0:
        return MetricRecord.busy(TestFamily.NETWORK, subtest, unit, "Server returned zero throughput")
    return MetricRecord.ok(TestFamily.NETWORK, subtest, speed, unit)


def parse_iperf_section(
    mode: str,
    provider: str,
    location: str,
    send_output: str | None,
    recv_output: str | None,
    latency: str = "--",
) -> TestSection:
    """Build one iperf section (one server, one IP mode)."""
    records = (_iperf_direction("send", send_output), _iperf_direction("recv", recv_output))
    metadata = {"mode": mode, "provider": provider, "loc": location, "latency": latency}
    return TestSection(TestFamily.NETWORK, records, metadata)


# --------------------------------------------------------------------------
# Geekbench
# --------------------------------------------------------------------------

RESULT_URL_PATTERN = re.compile(r"https://browser\S+")


@dataclass(frozen=True)
class GeekbenchPageGrammar:
    """Where the scores sit on a Geekbench browser results page.

    Score lines are whitespace-collapsed and split on angle brackets; the
    field numbers are 1-based positions in that split.
    """

    version: int
    score_marker: str
    single_field: int = 3
    multi_field: int = 7


GEEKBENCH_GRAMMARS: dict[int, GeekbenchPageGrammar] = {
    4: GeekbenchPageGrammar(version=4, score_marker="span class='score'"),
    5: GeekbenchPageGrammar(version=5, score_marker="div class='score'"),
    6: GeekbenchPageGrammar(version=6, score_marker="div class='score'"),
}


def parse_geekbench_upload(output: str) -> tuple[str, str]:
    """Return ``(result_url, claim_url)`` printed after an upload."""
    urls = RESULT_URL_PATTERN.findall(output)
    if not urls:
        raise ParseFailure("Geekbench did not report a results URL")
    return urls[0], urls[1] if len(urls) > 1 else ""


def parse_geekbench_scores(page: str, grammar: GeekbenchPageGrammar) -> tuple[int, int]:
    """Return ``(single_core, multi_core)`` scores from a results page."""
    score_lines = [line for line in page.splitlines() if grammar.score_marker in line]
    if not score_lines:
        raise ParseFailure(f"No {grammar.score_marker!r} markers on Geekbench {grammar.version} results page")
    fields = re.split(r"[<>]", collapse_whitespace(" ".join(score_lines)))
    if len(fields) < max(grammar.single_field, grammar.multi_field):
        raise ParseFailure("Geekbench results page has fewer scores than expected")
    single = _number(fields[grammar.single_field - 1].replace(",", ""), "Geekbench single-core score")
    multi = _number(fields[grammar.multi_field - 1].replace(",", ""), "Geekbench multi-core score")
    return int(single), int(multi)


def parse_geekbench_result(version: int, url: str, page: str) -> TestSection:
    """Build the Geekbench section for one version from its results page."""
    grammar = GEEKBENCH_GRAMMARS.get(version)
    if grammar is None:
        raise ParseFailure(f"No results page grammar for Geekbench {version}")
    single, multi = parse_geekbench_scores(page, grammar)
    records = (
        MetricRecord.ok(TestFamily.GEEKBENCH, "single", single, "score"),
        MetricRecord.ok(TestFamily.GEEKBENCH, "multi", multi, "score"),
    )
    return TestSection(TestFamily.GEEKBENCH, records, {"version": version, "url": url})


# --------------------------------------------------------------------------
# PassMark PerformanceTest
# --------------------------------------------------------------------------

PASSMARK_SUMMARY_KEYS = {
    "CPU Mark": "SUMM_CPU",
    "Memory Mark": "SUMM_ME",
}

PASSMARK_CPU_KEYS = {
    "Integer Math": ("CPU_INTEGER_MATH", "MOps/s"),
    "Floating Point Math": ("CPU_FLOATINGPOINT_MATH", "MOps/s"),
    "Prime Numbers": ("CPU_PRIME", "MPrimes/s"),
    "Sorting": ("CPU_SORTING", "KStrings/s"),
    "Encryption": ("CPU_ENCRYPTION", "MB/s"),
    "Compression": ("CPU_COMPRESSION", "KB/s"),
    "Single Thread": ("CPU_SINGLETHREAD", "MOps/s"),
    "Physics": ("CPU_PHYSICS", "Frames/s"),
}

PASSMARK_MEMORY_KEYS = {
    "Database Operations": ("ME_ALLOC_S", "KOps/s"),
    "Read Cached": ("ME_READ_S", "MB/s"),
    "Read Uncached": ("ME_READ_L", "MB/s"),
    "Write": ("ME_WRITE", "MB/s"),
    "Available RAM": ("ME_LARGE", "MB"),
    "Latency": ("ME_LATENCY", "ns"),
    "Threaded": ("ME_THREADED", "MB/s"),
}


def _passmark_results_block(text: str) -> Mapping[str, object]:
    lines = text.splitlines()
    start = next((i for i, line in enumerate(lines) if line.startswith("Results:")), None)
    if start is None:
        raise ParseFailure("PassMark results file has no 'Results:' section")
    end = next((i for i in range(start + 1, len(lines)) if lines[i].startswith("SystemInformation:")), len(lines))
    try:
        document = yaml.safe_load("\n".join(lines[start:end]))
    except yaml.YAMLError as exc:
        raise ParseFailure(f"PassMark results are not valid YAML: {exc}") from None
    results = document.get("Results") if isinstance(document, dict) else None
    if not isinstance(results, dict):
        raise ParseFailure("PassMark 'Results:' section is empty")
    return results


def _passmark_record(subtest: str, results: Mapping[str, object], key: str, unit: str) -> MetricRecord:
    raw = results.get(key)
    try:
        value = int(float(raw))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MetricRecord.failed(TestFamily.PASSMARK, subtest, unit, f"{key} missing from results")
    return MetricRecord.ok(TestFamily.PASSMARK, subtest, value, unit)


def parse_passmark_results(text: str) -> TestSection:
    """Build the PassMark section from ``results_all.yml``."""
    results = _passmark_results_block(text)
    records = [_passmark_record(label, results, key, "score") for label, key in PASSMARK_SUMMARY_KEYS.items()]
    for group, keys in (("CPU", PASSMARK_CPU_KEYS), ("Memory", PASSMARK_MEMORY_KEYS)):
        for label, (key, unit) in keys.items():
            records.append(_passmark_record(f"{group}/{label}", results, key, unit))
    if all(record.status is not MetricStatus.OK for record in records):
        raise ParseFailure("PassMark results contain none of the expected keys")
    return TestSection(TestFamily.PASSMARK, tuple(records))


# --------------------------------------------------------------------------
# UnixBench
# --------------------------------------------------------------------------

UNIXBENCH_SINGLE_MARKER = re.compile(r"running 1 parallel copy of tests")
UNIXBENCH_MULTI_MARKER = re.compile(r"running \d+ parallel copies of tests")
UNIXBENCH_ROW = re.compile(
    r"^(?P<name>\S.*?)\s+(?P<baseline>[\d.]+)\s+(?P<result>[\d.]+)\s+(?P<index>[\d.]+)$"
)
UNIXBENCH_SCORE = re.compile(r"^System Benchmarks Index Score\s+(?P<score>[\d.]+)$")
UNIXBENCH_SCORE_NAME = "Overall Index Score"


def split_unixbench_report(text: str) -> dict[str, list[str]]:
    """Split a UnixBench report into ``single-core`` and ``multi-core`` line groups."""
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        if UNIXBENCH_SINGLE_MARKER.search(line):
            current = sections.setdefault("single-core", [])
            continue
        if UNIXBENCH_MULTI_MARKER.search(line):
            current = sections.setdefault("multi-core", [])
            continue
        if current is not None:
            current.append(line.strip())
    if not sections:
        raise ParseFailure("UnixBench report has no 'parallel copies' markers")
    return sections


def parse_unixbench_report(text: str) -> TestSection:
    """Build the UnixBench section from a ``./Run`` report."""
    records: list[MetricRecord] = []
    for core_mode, lines in split_unixbench_report(text).items():
        found = False
        for line in lines:
            score = UNIXBENCH_SCORE.match(line)
            if score:
                records.append(
                    MetricRecord.ok(
                        TestFamily.UNIXBENCH,
                        f"{core_mode}/{UNIXBENCH_SCORE_NAME}",
                        float(score.group("score")),
                        "index",
                    )
                )
                found = True
                continue
            row = UNIXBENCH_ROW.match(line)
            if not row:
                continue
            records.append(
                MetricRecord.ok(
                    TestFamily.UNIXBENCH,
                    f"{core_mode}/{row.group('name')}",
                    float(row.group("index")),
                    "index",
                    {"baseline": float(row.group("baseline")), "result": float(row.group("result"))},
                )
            )
            found = True
        if not found:
            records.append(
                MetricRecord.failed(
                    TestFamily.UNIXBENCH, f"{core_mode}/{UNIXBENCH_SCORE_NAME}", "index", "No index values"
                )
            )
    return TestSection(TestFamily.UNIXBENCH, tuple(records))


# --------------------------------------------------------------------------
# cpuminer-multi
# --------------------------------------------------------------------------

CPUMINER_CORE = re.compile(r"CPU #(?P<core>\d+): (?P<rate>[\d.]+) kH/s")
CPUMINER_BENCHMARK = re.compile(r"Benchmark: (?P<rate>[\d.]+) kH/s")


def parse_cpuminer_rates(text: str) -> dict[int, float]:
    """Latest hash rate per CPU core, ordered by core index."""
    rates: dict[int, float] = {}
    for match in CPUMINER_CORE.finditer(text):
        rates[int(match.group("core"))] = float(match.group("rate"))
    if not rates:
        raise ParseFailure("No per-core 'CPU #n' hash rates in cpuminer output")
    return dict(sorted(rates.items()))


def parse_cpuminer_output(text: str) -> TestSection:
    """Build the cpuminer section from ``cpuminer --benchmark`` output."""
    rates = parse_cpuminer_rates(text)
    records = [
        MetricRecord.ok(TestFamily.CPUMINER, f"single-core/cpu_{core}", rate, "kH/s") for core, rate in rates.items()
    ]
    average = round(sum(rates.values()) / len(rates), 2)
    records.append(MetricRecord.ok(TestFamily.CPUMINER, "single-core/average", average, "kH/s"))

    benchmark = CPUMINER_BENCHMARK.search(text)
    if benchmark:
        rate = float(benchmark.group("rate"))
        records.append(MetricRecord.ok(TestFamily.CPUMINER, "multi-core/benchmark", rate, "kH/s"))
    else:
        records.append(
            MetricRecord.failed(TestFamily.CPUMINER, "multi-core/benchmark", "kH/s", "No 'Benchmark:' line in output")
        )
    return TestSection(TestFamily.CPUMINER, tuple(records))
