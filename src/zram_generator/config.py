#!/usr/bin/env python3
"""
Configuration module for zram-generator.

Contains constants, the device dataclasses, and the resolution pipeline that
turns zram-generator.conf plus the live memory size into a list of devices
ready to be written out as units.
"""

from __future__ import annotations

import configparser
import logging
import math
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Union

from zram_generator.errors import (
    ArgumentError,
    ConfigParseError,
    FilesystemError,
    MemoryProbeError,
)
from zram_generator.utils import (
    FileSystem,
    ProcessRunner,
    SubprocessRunner,
    running_in_container,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Application Constants
# =============================================================================

APP_NAME = "zram-generator"
APP_VERSION = "0.1.0"

# =============================================================================
# Environment Configuration
# =============================================================================

ROOT_ENV = "ZRAM_GENERATOR_ROOT"
LOG_LEVEL_ENV = "ZRAM_GENERATOR_LOG_LEVEL"
DEFAULT_ROOT = "/"

# =============================================================================
# Path Configuration
# =============================================================================

# All paths are relative to the root prefix
CONFIG_PATH = "etc/systemd/zram-generator.conf"
MEMINFO_PATH = "proc/meminfo"
MODULES_LOAD_PATH = "run/modules-load.d/zram.conf"

# =============================================================================
# Device Defaults
# =============================================================================

DEVICE_PREFIX = "zram"
MEMORY_LIMIT_DEFAULT_MB = 2 * 1024
ZRAM_FRACTION_DEFAULT = 0.25
MEMORY_LIMIT_NONE = "none"

# Largest value an unsigned 64-bit memory-limit or megabyte count may hold
U64_MAX = 2**64 - 1

# configparser needs a name for its DEFAULT section; a newline can never
# appear in a section header, so every real section stays ordinary
_NO_DEFAULT_SECTION = "\n"
UNTITLED_SECTION = "(no title)"

_UNSIGNED_RE = re.compile(r"\+?[0-9]+")


# =============================================================================
# Memory Limits
# =============================================================================


@dataclass(frozen=True)
class Bounded:
    """Memory limit of a fixed number of megabytes."""

    megabytes: int

    def admits(self, memtotal_mb: float) -> bool:
        return memtotal_mb <= self.megabytes

    def __str__(self) -> str:
        return f"{self.megabytes}MB"


@dataclass(frozen=True)
class Unlimited:
    """Memory limit set to "none": any amount of memory is accepted."""

    def admits(self, memtotal_mb: float) -> bool:
        return True

    def __str__(self) -> str:
        return MEMORY_LIMIT_NONE


MemoryLimit = Union[Bounded, Unlimited]


# =============================================================================
# Dataclasses for Configuration
# =============================================================================


@dataclass(frozen=True)
class Device:
    """A zram device section, resolved once disksize is set."""

    name: str
    memory_limit: MemoryLimit = field(
        default_factory=lambda: Bounded(MEMORY_LIMIT_DEFAULT_MB)
    )
    zram_fraction: float = ZRAM_FRACTION_DEFAULT
    disksize: int | None = None

    @property
    def is_resolved(self) -> bool:
        return self.disksize is not None


@dataclass(frozen=True)
class GeneratorMode:
    """Generate units into output_directory."""

    output_directory: Path


@dataclass(frozen=True)
class SetupDeviceMode:
    """Set up the named device at runtime (not implemented)."""

    name: str


Mode = Union[GeneratorMode, SetupDeviceMode]


@dataclass
class Config:
    """Complete generator configuration for one invocation."""

    root: str
    mode: Mode
    devices: list[Device] = field(default_factory=list)

    @classmethod
    def from_environment(
        cls,
        arguments: Sequence[str],
        setup_device: str | None = None,
        environ: Mapping[str, str] | None = None,
        runner: ProcessRunner | None = None,
    ) -> Config | None:
        """Build the configuration for this invocation.

        Returns None when running inside a container, in which case the
        generator must exit successfully without touching anything.

        Raises:
            ArgumentError: Invalid invocation arguments.
            DetectionError: systemd-detect-virt could not be run.
            ConfigParseError: Invalid zram-generator.conf.
            MemoryProbeError: MemTotal could not be read.
            FilesystemError: zram-generator.conf exists but is unreadable.
        """
        root = resolve_root(os.environ if environ is None else environ)
        mode = parse_mode(arguments, setup_device)

        if isinstance(mode, SetupDeviceMode):
            return cls(root=root, mode=mode)

        if running_in_container(runner or SubprocessRunner()):
            logger.info("Running in a container, exiting.")
            return None

        devices = load_devices(root)
        if devices:
            memtotal_mb = read_total_memory_kb(root) / 1024
            devices = resolve_devices(devices, memtotal_mb)

        return cls(root=root, mode=mode, devices=devices)

    def run(self, filesystem: FileSystem | None = None) -> int:
        """Execute the configured mode.

        Returns the number of devices for which units were written.
        """
        # Imported here, generator depends on this module
        from zram_generator.generator import run_generator

        if isinstance(self.mode, SetupDeviceMode):
            raise NotImplementedError(f"setting up for {self.mode.name}")

        return run_generator(
            self.root, self.devices, self.mode.output_directory, filesystem
        )


# =============================================================================
# Invocation
# =============================================================================


def resolve_root(environ: Mapping[str, str]) -> str:
    """Return the filesystem root prefix, always ending with a separator."""
    root = environ.get(ROOT_ENV)
    if root is None:
        return DEFAULT_ROOT

    if not root.endswith(os.sep):
        root += os.sep
    logger.info("Using %r as root directory", root)
    return root


def parse_mode(arguments: Sequence[str], setup_device: str | None = None) -> Mode:
    """Interpret the generator calling convention.

    systemd passes three output directories (normal, early, late); only the
    first one is used. A single directory is accepted for manual runs.
    """
    if setup_device is not None:
        if not setup_device.startswith(DEVICE_PREFIX) or arguments:
            raise ArgumentError("--setup-device requires device argument")
        return SetupDeviceMode(name=setup_device)

    if len(arguments) not in (1, 3):
        raise ArgumentError("This program requires 1 or 3 arguments")
    return GeneratorMode(output_directory=Path(arguments[0]))


# =============================================================================
# Memory Probe
# =============================================================================


def read_total_memory_kb(root: str) -> int:
    """Return MemTotal from <root>proc/meminfo, in kilobytes."""
    path = Path(root) / MEMINFO_PATH

    try:
        # Only the MemTotal line matters, undecodable bytes elsewhere are harmless
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                fields = line.split()
                if len(fields) >= 2 and fields[0] == "MemTotal:":
                    try:
                        return int(fields[1])
                    except ValueError as e:
                        raise MemoryProbeError(path, str(e)) from e
    except OSError as e:
        raise MemoryProbeError(path, e.strerror or str(e)) from e

    raise MemoryProbeError(path, f"Couldn't find MemTotal in {path}")


# =============================================================================
# Config Loader
# =============================================================================


def parse_memory_limit(value: str) -> MemoryLimit:
    """Parse a memory-limit value: "none" or an unsigned megabyte count."""
    if value == MEMORY_LIMIT_NONE:
        return Unlimited()
    if not value:
        raise ValueError("cannot parse integer from empty string")
    if not _UNSIGNED_RE.fullmatch(value):
        raise ValueError("invalid digit found in string")

    megabytes = int(value)
    if megabytes > U64_MAX:
        raise ValueError("number too large to fit in target type")
    return Bounded(megabytes)


def parse_zram_fraction(value: str) -> float:
    if "_" in value:
        raise ValueError("invalid float literal")
    try:
        return float(value)
    except ValueError:
        raise ValueError("invalid float literal") from None


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_NO_DEFAULT_SECTION,
        inline_comment_prefixes=("#", ";"),
        empty_lines_in_values=False,
    )
    parser.optionxform = str  # keys are case-sensitive
    return parser


def _describe_parsing_errors(error: configparser.ParsingError) -> str:
    # Line numbers count the untitled header prepended by load_devices
    return "; ".join(
        f"invalid line {lineno - 1}: {line}" for lineno, line in error.errors
    )


def _parse_section(path: Path, name: str, section: Mapping[str, str]) -> Device:
    device = Device(name=name)

    value = section.get("memory-limit")
    if value is not None:
        try:
            device = replace(device, memory_limit=parse_memory_limit(value))
        except ValueError as e:
            raise ConfigParseError(
                path, f'Failed to parse memory-limit "{value}": {e}', name, value
            ) from e

    value = section.get("zram-fraction")
    if value is not None:
        try:
            device = replace(device, zram_fraction=parse_zram_fraction(value))
        except ValueError as e:
            raise ConfigParseError(
                path, f'Failed to parse zram-fraction "{value}": {e}', name, value
            ) from e

    logger.info(
        "Found configuration for %s: memory-limit=%s zram-fraction=%s",
        device.name,
        device.memory_limit,
        device.zram_fraction,
    )
    return device


def load_devices(root: str) -> list[Device]:
    """Parse zram-generator.conf into unresolved devices, in file order.

    A missing file means no devices. Sections whose name does not start with
    "zram" are skipped.
    """
    path = Path(root) / CONFIG_PATH
    if not path.exists():
        logger.info("No configuration file found.")
        return []

    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise FilesystemError(path, e) from e
    except UnicodeDecodeError as e:
        raise ConfigParseError(path, str(e)) from e

    # Keys before the first header land in an untitled section
    parser = _new_parser()
    try:
        parser.read_string(f"[{UNTITLED_SECTION}]\n{text}", source=str(path))
    except configparser.ParsingError as e:
        raise ConfigParseError(path, _describe_parsing_errors(e)) from e
    except configparser.Error as e:
        raise ConfigParseError(path, e.message) from e

    devices = []
    for name in parser.sections():
        section = parser[name]
        if name == UNTITLED_SECTION and not len(section):
            continue
        if not name.startswith(DEVICE_PREFIX):
            logger.info('Ignoring section "%s"', name)
            continue
        devices.append(_parse_section(path, name, section))

    return devices


# =============================================================================
# Eligibility Filter
# =============================================================================


def compute_disksize(zram_fraction: float, memtotal_mb: float) -> int:
    """Size in bytes: whole megabytes of fraction * memory, then scaled.

    Truncation to megabytes happens before the byte conversion and saturates
    like an unsigned cast.
    """
    megabytes = zram_fraction * memtotal_mb
    if math.isnan(megabytes) or megabytes <= 0:
        whole_mb = 0
    elif megabytes >= U64_MAX:
        whole_mb = U64_MAX
    else:
        whole_mb = int(megabytes)
    return whole_mb * 1024 * 1024


def resolve_device(device: Device, memtotal_mb: float) -> Device | None:
    """Return device with disksize set, or None if memory exceeds its limit."""
    if not device.memory_limit.admits(memtotal_mb):
        logger.info(
            "%s: system has too much memory (%.1fMB), limit is %s, ignoring.",
            device.name,
            memtotal_mb,
            device.memory_limit,
        )
        return None

    return replace(
        device, disksize=compute_disksize(device.zram_fraction, memtotal_mb)
    )


def resolve_devices(devices: Sequence[Device], memtotal_mb: float) -> list[Device]:
    """Resolve devices in order, dropping the excluded ones."""
    resolved = []
    for device in devices:
        included = resolve_device(device, memtotal_mb)
        if included is not None:
            resolved.append(included)
    return resolved
