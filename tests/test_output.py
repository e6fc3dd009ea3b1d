"""Tests for console and JSON report rendering."""

from __future__ import annotations

import json
from unittest import mock

import pytest

from hostbench.models import MetricRecord, TestSection
from hostbench.output import (
    format_iops,
    format_size,
    format_speed,
    post_json_report,
    render_json,
    render_text,
    report_to_dict,
    write_json_report,
)
from hostbench.parsers import parse_cpuminer_output, parse_iperf_section, parse_passmark_results, parse_unixbench_report
from hostbench.types import TestFamily


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (999, "999.00 KB/s"),
        (1000, "1.00 MB/s"),
        (524288, "524.29 MB/s"),
        (1_000_000, "1.00 GB/s"),
        (999.999, "1.00 MB/s"),
        (999_999, "1.00 GB/s"),
        (999.994, "999.99 KB/s"),
        (None, ""),
    ],
)
def test_format_speed(value, expected):
    assert format_speed(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(999, "999"), (999.7, "999"), (1000, "1.0k"), (131072, "131.1k"), (None, "")],
)
def test_format_iops(value, expected):
    assert format_iops(value) == expected


@pytest.mark.parametrize(
    ("kib", "expected"),
    [(512, "512.00 KiB"), (2048, "2.00 MiB"), (8_000_000, "7.63 GiB"), (1024**3, "1.00 TiB")],
)
def test_format_size(kib, expected):
    assert format_size(kib) == expected


def _fio_section() -> TestSection:
    records = (
        MetricRecord.ok(TestFamily.DISK, "4k/read", 1000.0, "KB/s", {"iops": 250.0}),
        MetricRecord.ok(TestFamily.DISK, "4k/write", 2000.5, "KB/s", {"iops": 500.0}),
        MetricRecord.failed(TestFamily.DISK, "64k/read", "KB/s", "Test failed or timed out"),
    )
    return TestSection(TestFamily.DISK, records, {"partition": "/dev/sda1"})


class TestJson:
    def test_header_fields(self, make_report):
        data = report_to_dict(make_report())

        assert data["version"] == "v2024-06-09"
        assert data["os"] == {
            "arch": "x64",
            "distro": "Ubuntu 22.04.4 LTS",
            "kernel": "5.15.0-105-generic",
            "uptime": 1234.56,
        }
        assert data["cpu"]["cores"] == 4
        assert data["cpu"]["tested_governor"] == "performance"
        assert data["mem"] == {"ram": 8_000_000, "ram_units": "KiB"}
        assert data["runtime"] == {"start": 1_718_000_000, "end": 1_718_000_125, "elapsed": 125}
        assert "interrupted" not in data
        assert list(data)[-1] == "runtime"

    def test_skipped_families_are_absent(self, make_report):
        data = report_to_dict(make_report())
        for key in ("fio", "partition", "iperf", "geekbench", "unixbench", "passmark", "cpuminer-multi"):
            assert key not in data

    def test_unavailable_section_emits_no_key(self, make_report):
        report = make_report([TestSection.unavailable(TestFamily.PASSMARK, "unsupported architecture")])
        assert "passmark" not in report_to_dict(report)

    def test_generic_failure(self, make_report):
        report = make_report(
            [
                TestSection.failure(TestFamily.UNIXBENCH, "build failed"),
                TestSection.failure(TestFamily.GEEKBENCH, "upload failed", {"version": 6}),
            ]
        )
        data = report_to_dict(report)
        assert data["unixbench"] == {"status": "failed", "message": "build failed"}
        assert data["geekbench"] == [{"version": 6, "status": "failed", "message": "upload failed"}]

    def test_fio(self, make_report):
        data = report_to_dict(make_report([_fio_section()]))

        assert data["partition"] == "/dev/sda1"
        assert data["fio"]["4k"]["read"] == {"speed": 1000, "iops": 250}
        assert data["fio"]["4k"]["write"] == {"speed": 2000.5, "iops": 500}
        assert data["fio"]["64k"]["read"] == {"status": "failed", "message": "Test failed or timed out"}

    def test_iperf_entries_in_order(self, make_report, fixture_text):
        sections = [
            parse_iperf_section("IPv4", "home", "Stockholm", fixture_text("iperf3_send.txt"), None, "0.4 ms"),
            parse_iperf_section("IPv6", "home", "Stockholm", None, fixture_text("iperf3_recv.txt")),
        ]
        data = report_to_dict(make_report(sections))

        first, second = data["iperf"]
        assert first == {
            "mode": "IPv4",
            "provider": "home",
            "loc": "Stockholm",
            "send": "940 Mbps",
            "recv": "busy",
            "latency": "0.4 ms",
        }
        summary = (second["mode"], second["send"], second["recv"], second["latency"])
        assert summary == ("IPv6", "busy", "895.5 Mbps", "--")

    def test_unixbench_nesting(self, make_report, fixture_text):
        data = report_to_dict(make_report([parse_unixbench_report(fixture_text("unixbench_report.txt"))]))

        single = data["unixbench"]["single-core"]["System Benchmarks Index"]
        assert single["Dhrystone 2 using register variables"] == {
            "baseline": 116700,
            "result": 40011234.5,
            "index": 3428.5,
        }
        assert single["Overall Index Score"] == 1500.2
        assert data["unixbench"]["multi-core"]["System Benchmarks Index"]["Overall Index Score"] == 5261.9

    def test_passmark_and_cpuminer(self, make_report, fixture_text):
        sections = [
            parse_passmark_results(fixture_text("passmark_results_all.yml")),
            parse_cpuminer_output(fixture_text("cpuminer_benchmark.txt")),
        ]
        data = report_to_dict(make_report(sections))

        assert data["passmark"]["CPU Mark"] == 10987
        assert data["passmark"]["CPU"]["Integer Math"] == 25876
        assert data["cpuminer-multi"]["single-core"]["cpu_3"] == 2.08
        assert data["cpuminer-multi"]["multi-core"]["benchmark"] == 8.02

    def test_interrupted_flag(self, make_report):
        assert report_to_dict(make_report(interrupted=True))["interrupted"] is True

    def test_render_is_stable_and_parseable(self, make_report):
        report = make_report([_fio_section()])
        rendered = render_json(report)

        assert render_json(report) == rendered
        assert json.loads(rendered) == report_to_dict(report)

    def test_write_json_report(self, make_report, tmp_path):
        path = tmp_path / "out" / "results.json"
        write_json_report(make_report(), path)

        text = path.read_text()
        assert text.endswith("\n")
        assert json.loads(text)["version"] == "v2024-06-09"


class TestPost:
    def test_failed_urls_are_returned(self):
        response = mock.MagicMock()
        response.__enter__.return_value.status = 200

        def fake_urlopen(req, timeout):
            if "bad" in req.full_url:
                raise OSError("connection refused")
            assert req.get_header("Content-type") == "application/json"
            assert req.data == b"{}"
            return response

        with mock.patch("hostbench.output.request.urlopen", side_effect=fake_urlopen):
            failed = post_json_report("{}", ["http://good.example/", "http://bad.example/"])

        assert failed == ["http://bad.example/"]


class TestText:
    def test_system_block_and_footer(self, make_report):
        text = render_text(make_report())

        assert "Basic System Information:" in text
        assert "CPU cores  : 4 @ 3000 MHz" in text
        assert "RAM        : 7.63 GiB" in text
        assert text.endswith("Benchmark completed in 2 min 5 sec")

    def test_interrupted_footer(self, make_report):
        text = render_text(make_report(interrupted=True))
        assert text.endswith("(interrupted, partial results)")

    def test_fio_table(self, make_report):
        text = render_text(make_report([_fio_section()]))

        assert "fio Disk Speed Tests (Partition /dev/sda1):" in text
        assert "1.00 MB/s" in text
        assert "(250)" in text
        assert "2.00 MB/s" in text

    def test_iperf_grouped_by_mode(self, make_report, fixture_text):
        sections = [
            parse_iperf_section("IPv4", "home", "Stockholm", fixture_text("iperf3_send.txt"), None),
            parse_iperf_section("IPv4", "work", "Oslo", None, None),
        ]
        text = render_text(make_report(sections))

        assert text.count("iperf3 Network Speed Tests (IPv4):") == 1
        assert "940 Mbps" in text

    def test_status_notes(self, make_report):
        sections = [
            TestSection.unavailable(TestFamily.PASSMARK, "unsupported architecture"),
            TestSection.failure(TestFamily.UNIXBENCH, "build failed"),
        ]
        text = render_text(make_report(sections))

        assert "PassMark PerformanceTest: unavailable (unsupported architecture)" in text
        assert "UnixBench: failed (build failed)" in text
