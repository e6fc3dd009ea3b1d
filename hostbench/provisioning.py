"""Locate, download and build the third-party benchmark tools.

Every failure surfaces as ``ToolUnavailable`` so that the run coordinator can
mark the test as unavailable and move on.
"""

from __future__ import annotations

import logging
import shutil
import stat
import subprocess
import tarfile
import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path
from urllib import error, request

from .errors import ToolUnavailable
from .utils import run_command


logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT = 60.0
DEFAULT_CLONE_TIMEOUT = 300.0
DEFAULT_BUILD_TIMEOUT = 1800.0

PREBUILT_BINARY_URL = (
    "https://raw.githubusercontent.com/masonr/yet-another-bench-script/master/bin/{tool}/{tool}_{arch}"
)


def _make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class ToolProvisioner:
    """Obtain benchmark binaries inside the run's working directory."""

    def __init__(
        self,
        workdir: Path,
        *,
        prefer_bin: bool = False,
        which: Callable[[str], str | None] = shutil.which,
        runner: Callable[..., tuple[str, float, int]] = run_command,
        opener: Callable[..., object] = request.urlopen,
    ):
        self.workdir = workdir
        self.prefer_bin = prefer_bin
        self._which = which
        self._runner = runner
        self._opener = opener

    def tool_dir(self, name: str) -> Path:
        path = self.workdir / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def local_binary(self, name: str) -> Path | None:
        """Installed binary on PATH, unless prebuilt binaries are preferred."""
        if self.prefer_bin:
            return None
        found = self._which(name)
        return Path(found) if found else None

    def download(self, url: str, destination: Path, timeout: float = DEFAULT_DOWNLOAD_TIMEOUT) -> Path:
        logger.info("Downloading %s", url)
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            response = self._opener(url, timeout=timeout)
            with response, destination.open("wb") as handle:  # type: ignore[attr-defined]
                shutil.copyfileobj(response, handle)
        except (OSError, error.URLError, error.HTTPError) as exc:
            destination.unlink(missing_ok=True)
            raise ToolUnavailable(f"Download of {url} failed: {exc}") from exc
        if destination.stat().st_size == 0:
            destination.unlink()
            raise ToolUnavailable(f"Download of {url} returned an empty file")
        return destination

    def prebuilt_binary(self, tool: str, arch: str) -> Path:
        """Local ``tool`` if present, otherwise the prebuilt binary for ``arch``."""
        local = self.local_binary(tool)
        if local is not None:
            return local
        target = self.download(PREBUILT_BINARY_URL.format(tool=tool, arch=arch), self.tool_dir(tool) / tool)
        _make_executable(target)
        return target

    def extract_tarball(self, archive: Path, destination: Path, strip_components: int = 1) -> Path:
        """Unpack a gzip tarball, dropping ``strip_components`` leading path parts."""
        destination.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive, mode="r:*") as tar:
                members = []
                for member in tar.getmembers():
                    parts = Path(member.name).parts[strip_components:]
                    if not parts:
                        continue
                    member.name = str(Path(*parts))
                    members.append(member)
                tar.extractall(destination, members=members, filter="data")
        except (OSError, tarfile.TarError) as exc:
            raise ToolUnavailable(f"Cannot extract {archive.name}: {exc}") from exc
        return destination

    def extract_zip(self, archive: Path, destination: Path, executables: Sequence[str] = ()) -> Path:
        destination.mkdir(parents=True, exist_ok=True)
        try:
            with zipfile.ZipFile(archive) as bundle:
                bundle.extractall(destination)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ToolUnavailable(f"Cannot extract {archive.name}: {exc}") from exc
        # zipfile drops permission bits
        for relative in executables:
            path = destination / relative
            if path.exists():
                _make_executable(path)
        return destination

    def _run_step(self, command: Sequence[str], what: str, *, cwd: Path | None, timeout: float) -> str:
        try:
            stdout, _, returncode = self._runner(list(command), timeout=timeout, cwd=cwd)
        except FileNotFoundError as exc:
            raise ToolUnavailable(f"{what} failed: {command[0]} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolUnavailable(f"{what} timed out after {timeout:g}s") from exc
        if returncode != 0:
            tail = stdout.strip().splitlines()[-1:] or [""]
            raise ToolUnavailable(f"{what} failed with exit code {returncode}: {tail[0]}")
        return stdout

    def git_clone(self, repository: str, destination: Path, timeout: float = DEFAULT_CLONE_TIMEOUT) -> Path:
        logger.info("Cloning %s", repository)
        command = ["git", "clone", "--depth", "1", repository, str(destination)]
        self._run_step(command, f"git clone {repository}", cwd=None, timeout=timeout)
        if not destination.is_dir():
            raise ToolUnavailable(f"Failed to clone {repository}")
        return destination

    def build(self, command: Sequence[str], cwd: Path, expected: Path, timeout: float = DEFAULT_BUILD_TIMEOUT) -> Path:
        """Run a build command in ``cwd`` and check that ``expected`` was produced."""
        logger.info("Building %s", cwd.name)
        self._run_step(command, f"Build of {cwd.name}", cwd=cwd, timeout=timeout)
        if not expected.exists():
            raise ToolUnavailable(f"Build of {cwd.name} did not produce {expected.name}")
        return expected
