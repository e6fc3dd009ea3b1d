"""Tests for the tool output parsers against golden outputs."""

from __future__ import annotations

import pytest

from hostbench.errors import ParseFailure
from hostbench.invoker import RawOutput, Verdict
from hostbench.models import MetricStatus
from hostbench.parsers import (
    FIO_TERSE_V3,
    GEEKBENCH_GRAMMARS,
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
from hostbench.parsers.output_parsers import parse_cpuminer_rates
from hostbench.types import TestFamily


BLOCK_SIZES = ("4k", "8k", "64k", "512k", "1m", "16m")
OPERATIONS = ("read", "write", "randread", "randwrite")


def _raw(stdout: str, returncode: int = 0) -> RawOutput:
    return RawOutput(("iperf3",), stdout, returncode, 1.0)


class TestFio:
    def test_read_uses_read_fields(self, fio_terse):
        line = fio_terse("read", 512000, 128000)
        assert parse_fio_minimal(line, "read") == (512000.0, 128000.0)

    def test_write_family_uses_write_fields(self, fio_terse):
        line = fio_terse("randwrite", 256000, 64000, write=True)
        assert parse_fio_minimal(line, "randwrite") == (256000.0, 64000.0)
        assert FIO_TERSE_V3.fields_for("write") == (48, 49)
        assert FIO_TERSE_V3.fields_for("randread") == (7, 8)

    def test_matches_jobname_among_other_lines(self, fio_terse):
        output = "fio: some warning\n" + fio_terse("read", 1000, 250) + "\n"
        assert parse_fio_minimal(output, "read") == (1000.0, 250.0)

    def test_unsupported_terse_version(self, fio_terse):
        with pytest.raises(ParseFailure, match="terse version"):
            parse_fio_minimal(fio_terse("read", 1000, 250, version="2"), "read")

    def test_missing_job_raises(self, fio_terse):
        with pytest.raises(ParseFailure):
            parse_fio_minimal(fio_terse("write", 1000, 250, write=True), "read")

    def test_parse_failure_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_fio_minimal("", "read")

    def test_section_has_one_record_per_block_size_and_operation(self, fio_terse):
        runs = [
            (bs, op, fio_terse(op, 2000, 500, write="write" in op))
            for bs in BLOCK_SIZES
            for op in OPERATIONS
        ]
        section = parse_fio_section("/dev/sda1", runs)

        assert len(section.records) == 24
        assert [record.subtest_name for record in section.records[:5]] == [
            "4k/read",
            "4k/write",
            "4k/randread",
            "4k/randwrite",
            "8k/read",
        ]
        assert section.metadata["partition"] == "/dev/sda1"
        first = section.records[0]
        assert first.value == 2000.0
        assert first.unit == "KB/s"
        assert first.attributes["iops"] == 500.0

    def test_failed_run_becomes_failed_record(self, fio_terse):
        section = parse_fio_section(
            "/dev/sda1",
            [("4k", "read", fio_terse("read", 1000, 250)), ("4k", "write", None), ("4k", "randread", "garbage")],
        )
        statuses = [record.status for record in section.records]
        assert statuses == [MetricStatus.OK, MetricStatus.FAILED, MetricStatus.FAILED]
        assert section.status is MetricStatus.OK


class TestIperf3:
    def test_summary_reads_sum_receiver_line(self, fixture_text):
        assert parse_iperf3_summary(fixture_text("iperf3_send.txt")) == (940.0, "Mbps")
        assert parse_iperf3_summary(fixture_text("iperf3_recv.txt")) == (895.5, "Mbps")

    def test_summary_without_receiver_line(self):
        with pytest.raises(ParseFailure):
            parse_iperf3_summary("[SUM]   0.00-10.00  sec  1.10 GBytes   943 Mbits/sec    0   sender\n")

    def test_classify_usable(self, fixture_text):
        assert classify_iperf3_attempt(_raw(fixture_text("iperf3_send.txt"))) is Verdict.USABLE

    def test_classify_busy_server(self):
        output = "iperf3: error - the server is busy running a test. try again later\n"
        assert classify_iperf3_attempt(_raw(output, 1)) is Verdict.BUSY

    def test_classify_empty_output_is_busy(self):
        assert classify_iperf3_attempt(_raw("", 1)) is Verdict.BUSY

    def test_classify_zero_speed_is_busy(self):
        output = "[SUM]   0.00-10.00  sec  0.00 Bytes  0.00 bits/sec                  receiver\n"
        assert classify_iperf3_attempt(_raw(output)) is Verdict.BUSY

    def test_classify_unable_to_connect_is_fatal(self):
        output = "iperf3: error - unable to connect to server: Connection refused\n"
        assert classify_iperf3_attempt(_raw(output, 1)) is Verdict.FATAL

    def test_ping_latency(self):
        output = "PING 192.168.1.3 56(84) bytes of data.\n64 bytes from 192.168.1.3: icmp_seq=1 ttl=64 time=0.412 ms\n"
        assert parse_ping_latency(output) == "0.412 ms"
        assert parse_ping_latency("") == "--"

    def test_section_records_and_metadata(self, fixture_text):
        section = parse_iperf_section(
            "IPv4", "home", "Stockholm, SE (1G)", fixture_text("iperf3_send.txt"), None, "0.4 ms"
        )
        send = section.get("send")
        recv = section.get("recv")
        assert send.value == 940.0
        assert send.unit == "Mbps"
        assert recv.status is MetricStatus.BUSY
        assert recv.value is None
        assert section.metadata == {
            "mode": "IPv4",
            "provider": "home",
            "loc": "Stockholm, SE (1G)",
            "latency": "0.4 ms",
        }

    def test_unreachable_server_is_failed(self):
        output = "iperf3: error - unable to connect to server: No route to host\n"
        section = parse_iperf_section("IPv6", "home", "Here", output, output)
        assert section.get("send").status is MetricStatus.FAILED
        assert section.status is MetricStatus.FAILED


class TestGeekbench:
    def test_upload_urls(self, fixture_text):
        url, claim = parse_geekbench_upload(fixture_text("geekbench6_upload.txt"))
        assert url == "https://browser.geekbench.com/v6/cpu/5813270"
        assert claim == "https://browser.geekbench.com/v6/cpu/5813270/claim?key=301872"

    def test_upload_without_url(self):
        with pytest.raises(ParseFailure):
            parse_geekbench_upload("Geekbench 6.3.0 : https://www.geekbench.com/\nUpload failed\n")

    def test_scores_from_results_page(self, fixture_text):
        page = fixture_text("geekbench6_page.html")
        assert parse_geekbench_scores(page, GEEKBENCH_GRAMMARS[6]) == (1742, 6318)

    def test_geekbench4_span_markers(self):
        page = "<span class='score'>1000</span>\n<span class='score'>3000</span>\n"
        assert parse_geekbench_scores(page, GEEKBENCH_GRAMMARS[4]) == (1000, 3000)

    def test_page_without_score_markers(self):
        with pytest.raises(ParseFailure):
            parse_geekbench_scores("<html><body>Not found</body></html>", GEEKBENCH_GRAMMARS[6])

    def test_result_section(self, fixture_text):
        url = "https://browser.geekbench.com/v6/cpu/5813270"
        section = parse_geekbench_result(6, url, fixture_text("geekbench6_page.html"))
        assert section.test_name is TestFamily.GEEKBENCH
        assert section.get("single").value == 1742
        assert section.get("multi").value == 6318
        assert section.metadata == {"version": 6, "url": url}

    def test_unknown_version(self, fixture_text):
        with pytest.raises(ParseFailure):
            parse_geekbench_result(3, "https://browser.geekbench.com/v3/1", fixture_text("geekbench6_page.html"))


class TestPassMark:
    def test_marks_are_truncated(self, fixture_text):
        section = parse_passmark_results(fixture_text("passmark_results_all.yml"))
        assert section.get("CPU Mark").value == 10987
        assert section.get("Memory Mark").value == 2589
        assert len(section.records) == 17

    def test_labelled_subtests_with_units(self, fixture_text):
        section = parse_passmark_results(fixture_text("passmark_results_all.yml"))
        integer_math = section.get("CPU/Integer Math")
        assert integer_math.value == 25876
        assert integer_math.unit == "MOps/s"
        latency = section.get("Memory/Latency")
        assert latency.value == 58
        assert latency.unit == "ns"
        assert section.get("Memory/Database Operations").value == 4987

    def test_missing_key_is_failed_record(self):
        text = "Results:\n  SUMM_CPU: 1234.9\nSystemInformation:\n  OSName: test\n"
        section = parse_passmark_results(text)
        assert section.get("CPU Mark").value == 1234
        assert section.get("Memory Mark").status is MetricStatus.FAILED
        assert section.status is MetricStatus.OK

    def test_no_results_block(self):
        with pytest.raises(ParseFailure, match="Results"):
            parse_passmark_results("Version:\n  Major: 11\n")

    def test_no_known_keys(self):
        with pytest.raises(ParseFailure):
            parse_passmark_results("Results:\n  SOMETHING_ELSE: 1\n")


class TestUnixBench:
    def test_split_into_core_modes(self, fixture_text):
        groups = split_unixbench_report(fixture_text("unixbench_report.txt"))
        assert list(groups) == ["single-core", "multi-core"]

    def test_rows_and_score(self, fixture_text):
        section = parse_unixbench_report(fixture_text("unixbench_report.txt"))
        assert len(section.records) == 16

        dhrystone = section.get("single-core/Dhrystone 2 using register variables")
        assert dhrystone.value == 3428.5
        assert dhrystone.attributes == {"baseline": 116700.0, "result": 40011234.5}

        assert section.get("single-core/Overall Index Score").value == 1500.2
        assert section.get("multi-core/Overall Index Score").value == 5261.9

    def test_names_containing_digits(self, fixture_text):
        section = parse_unixbench_report(fixture_text("unixbench_report.txt"))
        assert section.get("single-core/File Copy 1024 bufsize 2000 maxblocks").value == 2272.7
        assert section.get("multi-core/Shell Scripts (1 concurrent)").value == 5896.2

    def test_report_without_markers(self):
        with pytest.raises(ParseFailure):
            parse_unixbench_report("make: *** [Makefile:89: all] Error 1\n")


class TestCpuminer:
    def test_last_rate_per_core_in_core_order(self, fixture_text):
        rates = parse_cpuminer_rates(fixture_text("cpuminer_benchmark.txt"))
        assert rates == {0: 2.05, 1: 2.03, 2: 2.04, 3: 2.08}
        assert list(rates) == [0, 1, 2, 3]

    def test_section(self, fixture_text):
        section = parse_cpuminer_output(fixture_text("cpuminer_benchmark.txt"))
        assert [record.subtest_name for record in section.records] == [
            "single-core/cpu_0",
            "single-core/cpu_1",
            "single-core/cpu_2",
            "single-core/cpu_3",
            "single-core/average",
            "multi-core/benchmark",
        ]
        assert section.get("single-core/average").value == pytest.approx(2.05)
        assert section.get("multi-core/benchmark").value == 8.02

    def test_missing_benchmark_line(self):
        section = parse_cpuminer_output("CPU #0: 1.50 kH/s\n")
        assert section.get("multi-core/benchmark").status is MetricStatus.FAILED
        assert section.get("single-core/average").value == 1.5

    def test_no_core_rates(self):
        with pytest.raises(ParseFailure):
            parse_cpuminer_output("cpuminer: unknown option\n")
