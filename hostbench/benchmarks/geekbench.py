from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from urllib import error, request

from ..errors import ParseFailure, ToolUnavailable
from ..invoker import RawOutput, Verdict
from ..models import TestSection
from ..parsers import parse_geekbench_result, parse_geekbench_upload
from ..types import TestFamily
from .base import (
    DEFAULT_GEEKBENCH_PAGE_TIMEOUT,
    DEFAULT_GEEKBENCH_RESULT_DELAY,
    DEFAULT_GEEKBENCH_TIMEOUT,
    BenchmarkBase,
    RunContext,
)


logger = logging.getLogger(__name__)

GEEKBENCH_RELEASES = {
    6: {
        "command": "geekbench6",
        "url": "https://cdn.geekbench.com/Geekbench-6.3.0-Linux.tar.gz",
        "url_arm": "https://cdn.geekbench.com/Geekbench-6.3.0-LinuxARMPreview.tar.gz",
    },
}
LICENSE_FILE = Path("geekbench.license")
CLAIM_FILE = Path("geekbench_claim.url")
LOW_MEMORY_KIB = 1024 * 1024


def _download_result_page(url: str, timeout: float = DEFAULT_GEEKBENCH_PAGE_TIMEOUT) -> str:
    try:
        with request.urlopen(url, timeout=timeout) as response:
            charset = response.headers.get_content_charset() or "utf-8"
            data = response.read()
            if not isinstance(data, (bytes, bytearray)):
                return ""
            return data.decode(charset, errors="replace")
    except (OSError, error.URLError, error.HTTPError) as exc:
        logger.warning("Cannot fetch Geekbench results page %s: %s", url, exc)
        return ""


def _upload_verdict(output: RawOutput) -> Verdict:
    return Verdict.USABLE if "https://browser" in output.stdout else Verdict.FATAL


class GeekbenchBenchmark(BenchmarkBase):
    family = TestFamily.GEEKBENCH
    description = "Geekbench CPU benchmark"

    def __init__(
        self,
        *,
        fetch_page: Callable[[str], str] = _download_result_page,
        sleep: Callable[[float], None] = time.sleep,
        license_file: Path = LICENSE_FILE,
        claim_file: Path = CLAIM_FILE,
    ):
        self._fetch_page = fetch_page
        self._sleep = sleep
        self.license_file = license_file
        self.claim_file = claim_file

    def validate(self, context: RunContext) -> tuple[bool, str]:
        if context.arch == "x86":
            return False, "Geekbench cannot run on 32-bit architectures"
        unknown = [version for version in context.config.geekbench_versions if version not in GEEKBENCH_RELEASES]
        if unknown:
            return False, f"Unsupported Geekbench version(s): {', '.join(map(str, unknown))}"
        return True, ""

    def _resolve_binary(self, context: RunContext, version: int) -> Path:
        release = GEEKBENCH_RELEASES[version]
        local = context.provisioner.local_binary(release["command"])
        if local is not None:
            return local
        url = release["url_arm"] if context.arch in ("aarch64", "arm") else release["url"]
        if not context.connectivity.get("IPv4", True):
            raise ToolUnavailable("Geekbench releases can only be downloaded over IPv4")
        install_dir = context.provisioner.tool_dir(f"geekbench_{version}")
        archive = context.provisioner.download(url, install_dir / Path(url).name)
        context.provisioner.extract_tarball(archive, install_dir)
        binary = install_dir / release["command"]
        if not binary.exists():
            raise ToolUnavailable(f"{release['command']} not found in {archive.name}")
        return binary

    def _unlock(self, context: RunContext, binary: Path) -> None:
        if not self.license_file.is_file():
            return
        email_and_key = self.license_file.read_text().split()
        outcome = context.invoker.invoke(binary, ["--unlock", *email_and_key], timeout=60, max_attempts=1)
        if not isinstance(outcome, RawOutput):
            logger.warning("Geekbench license unlock failed: %s", outcome.message)

    def _failure_hint(self, context: RunContext, version: int) -> str:
        if context.system.ram_kib and context.system.ram_kib <= LOW_MEMORY_KIB:
            return "Geekbench test failed and low memory was detected. Add at least 1GB of SWAP."
        return f"Geekbench {version} test failed. Run manually to determine cause."

    def _run_version(self, context: RunContext, version: int) -> TestSection:
        binary = self._resolve_binary(context, version)
        self._unlock(context, binary)

        print(f"Running GB{version} benchmark test... *cue elevator music*")
        outcome = context.invoker.invoke(
            binary,
            ["--upload"],
            timeout=DEFAULT_GEEKBENCH_TIMEOUT,
            max_attempts=1,
            is_bad_result=_upload_verdict,
            merge_stderr=False,
        )
        if not isinstance(outcome, RawOutput):
            logger.warning("Geekbench %d: %s", version, outcome.message)
            return TestSection.failure(self.family, self._failure_hint(context, version), {"version": version})

        try:
            url, claim_url = parse_geekbench_upload(outcome.stdout)
        except ParseFailure as exc:
            return TestSection.failure(self.family, str(exc), {"version": version})

        # results take a moment to appear on the browser
        self._sleep(DEFAULT_GEEKBENCH_RESULT_DELAY)
        page = self._fetch_page(url)
        try:
            section = parse_geekbench_result(version, url, page)
        except ParseFailure as exc:
            logger.warning("Geekbench %d: %s", version, exc)
            section = TestSection.failure(self.family, str(exc), {"version": version, "url": url})

        if claim_url:
            try:
                with self.claim_file.open("a", encoding="utf-8") as handle:
                    handle.write(claim_url + "\n")
            except OSError as exc:
                logger.warning("Cannot write %s: %s", self.claim_file, exc)
        return section

    def execute(self, context: RunContext) -> list[TestSection]:
        return [self._run_version(context, version) for version in context.config.geekbench_versions]
