# tests/conftest.py
"""
Global pytest fixtures for zram-generator tests.

Every test runs against a synthetic root directory so that nothing touches
the real /etc, /proc or /run.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from zram_generator.errors import FilesystemError
from zram_generator.utils import LocalFileSystem

MEMINFO_TEMPLATE = """\
MemTotal:       {memtotal_kb} kB
MemFree:         1048576 kB
MemAvailable:    2097152 kB
SwapTotal:             0 kB
"""


class FakeRunner:
    """ProcessRunner returning a canned exit status."""

    def __init__(self, status: int = 1, error: OSError | None = None) -> None:
        self.status = status
        self.error = error
        self.calls: list[list[str]] = []

    def run(self, command):
        self.calls.append(list(command))
        if self.error is not None:
            raise self.error
        return self.status


class FailingFileSystem(LocalFileSystem):
    """LocalFileSystem that fails when writing one specific path."""

    def __init__(self, fail_on: Path) -> None:
        self.fail_on = fail_on

    def write_text(self, path: Path, content: str) -> None:
        if path == self.fail_on:
            raise FilesystemError(path, PermissionError(13, "Permission denied"))
        super().write_text(path, content)


@pytest.fixture
def root(tmp_path) -> Path:
    """An empty synthetic filesystem root."""
    path = tmp_path / "root"
    path.mkdir()
    return path


@pytest.fixture
def root_prefix(root) -> str:
    """The synthetic root as a prefix string, as the generator sees it."""
    return f"{root}/"


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "generator"


@pytest.fixture
def write_meminfo(root):
    """Write <root>/proc/meminfo with the given MemTotal in kB."""

    def _write(memtotal_kb: int = 4096 * 1024, text: str | None = None) -> Path:
        path = root / "proc" / "meminfo"
        path.parent.mkdir(parents=True, exist_ok=True)
        if text is None:
            text = MEMINFO_TEMPLATE.format(memtotal_kb=memtotal_kb)
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def write_config(root):
    """Write <root>/etc/systemd/zram-generator.conf."""

    def _write(text: str) -> Path:
        path = root / "etc" / "systemd" / "zram-generator.conf"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def no_container() -> FakeRunner:
    """systemd-detect-virt reporting bare metal."""
    return FakeRunner(status=1)
