"""Output parsers for benchmark tools."""
from .output_parsers import (
    FIO_TERSE_V3,
    GEEKBENCH_GRAMMARS,
    FioTerseGrammar,
    GeekbenchPageGrammar,
    classify_iperf3_attempt,
    parse_cpuminer_output,
    parse_fio_minimal,
    parse_fio_section,
    parse_geekbench_result,
    parse_geekbench_scores,
    parse_geekbench_upload,
    parse_iperf3_summary,
    parse_iperf_section,
    parse_passmark_results,
    parse_ping_latency,
    parse_unixbench_report,
    split_unixbench_report,
)

__all__ = [
    "FIO_TERSE_V3",
    "GEEKBENCH_GRAMMARS",
    "FioTerseGrammar",
    "GeekbenchPageGrammar",
    "classify_iperf3_attempt",
    "parse_cpuminer_output",
    "parse_fio_minimal",
    "parse_fio_section",
    "parse_geekbench_result",
    "parse_geekbench_scores",
    "parse_geekbench_upload",
    "parse_iperf3_summary",
    "parse_iperf_section",
    "parse_passmark_results",
    "parse_ping_latency",
    "parse_unixbench_report",
    "split_unixbench_report",
]
