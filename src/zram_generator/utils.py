#!/usr/bin/env python3
"""
Utilities module for zram-generator.

Small capability seams around the operating system: running external
programs and writing into the filesystem. The generator only talks to the
OS through these, so tests can drive it with fakes.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from zram_generator.errors import DetectionError, FilesystemError

logger = logging.getLogger(__name__)


# =============================================================================
# Process Utilities
# =============================================================================


class ProcessRunner(Protocol):
    """Runs a command and returns its exit status."""

    def run(self, command: Sequence[str]) -> int: ...


class SubprocessRunner:
    """ProcessRunner backed by subprocess, with stdout discarded."""

    def run(self, command: Sequence[str]) -> int:
        result = subprocess.run(
            list(command), stdout=subprocess.DEVNULL, check=False
        )
        return result.returncode


def running_in_container(runner: ProcessRunner) -> bool:
    """Ask systemd-detect-virt whether we run inside a container.

    Raises:
        DetectionError: systemd-detect-virt could not be started.
    """
    try:
        status = runner.run(["systemd-detect-virt", "--container"])
    except OSError as e:
        raise DetectionError(f"systemd-detect-virt call failed: {e}") from e

    logger.debug("systemd-detect-virt --container exited with %d", status)
    return status == 0


# =============================================================================
# Filesystem Utilities
# =============================================================================


class FileSystem(Protocol):
    """Write side of the filesystem used by the unit emitter."""

    def make_parent(self, path: Path) -> None: ...

    def write_text(self, path: Path, content: str) -> None: ...

    def symlink(self, target: str, link: Path) -> None: ...


class LocalFileSystem:
    """FileSystem operating on the real filesystem.

    Every OSError is re-raised as FilesystemError carrying the failing path.
    """

    def make_parent(self, path: Path) -> None:
        parent = path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(parent, e) from e

    def write_text(self, path: Path, content: str) -> None:
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise FilesystemError(path, e) from e

    def symlink(self, target: str, link: Path) -> None:
        self.make_parent(link)
        try:
            os.symlink(target, link)
        except FileExistsError as e:
            # Re-running into the same directory leaves an identical link
            if link.is_symlink() and os.readlink(link) == target:
                logger.debug("%s already points to %s", link, target)
                return
            raise FilesystemError(link, e) from e
        except OSError as e:
            raise FilesystemError(link, e) from e


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "FileSystem",
    "LocalFileSystem",
    "ProcessRunner",
    "SubprocessRunner",
    "running_in_container",
]
