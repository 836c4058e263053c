#!/usr/bin/env python3
"""
Error types for zram-generator.

Every failure that aborts a generator run derives from ZramGeneratorError,
so the entry point can report it and exit non-zero in one place.
"""

from __future__ import annotations

from pathlib import Path


class ZramGeneratorError(Exception):
    """Base class for all fatal generator errors."""


class ArgumentError(ZramGeneratorError):
    """Wrong count or shape of invocation arguments."""


class ConfigParseError(ZramGeneratorError):
    """Malformed configuration syntax or an unparsable key value."""

    def __init__(
        self,
        path: Path,
        reason: str,
        section: str | None = None,
        value: str | None = None,
    ) -> None:
        self.path = path
        self.section = section
        self.value = value
        self.reason = reason

        where = str(path) if section is None else f"{path} [{section}]"
        super().__init__(f"{where}: {reason}")


class MemoryProbeError(ZramGeneratorError):
    """The total memory could not be read from meminfo."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class DetectionError(ZramGeneratorError):
    """systemd-detect-virt could not be invoked."""


class FilesystemError(ZramGeneratorError):
    """A read, write, mkdir or symlink operation failed."""

    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"{path}: {cause.strerror or cause}")


__all__ = [
    "ArgumentError",
    "ConfigParseError",
    "DetectionError",
    "FilesystemError",
    "MemoryProbeError",
    "ZramGeneratorError",
]
