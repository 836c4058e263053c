#!/usr/bin/env python3
"""
Unit emitter for zram-generator.

Writes, for every resolved device, a swap-create@ service that sizes and
formats the zram device, a swap unit that activates it, and the
swap.target.wants symlink that pulls the swap unit in at boot.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from zram_generator.config import MODULES_LOAD_PATH, Device
from zram_generator.utils import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)

# =============================================================================
# Unit Configuration
# =============================================================================

ZRAM_MODULE = "zram"
SWAP_PRIORITY = 100
SWAP_TARGET_WANTS = "swap.target.wants"

SERVICE_TEMPLATE = """\
[Unit]
Description=Create swap on {root}dev/%i
Wants=systemd-modules-load.service
After=systemd-modules-load.service
After={device_unit}
DefaultDependencies=false

[Service]
Type=oneshot
ExecStartPre=-modprobe {module}
ExecStart=sh -c 'echo {disksize} >{root}sys/block/%i/disksize'
ExecStart=mkswap {root}dev/%i
"""

SWAP_TEMPLATE = """\
[Unit]
Description=Compressed swap on {root}dev/{name}
Requires={service}
After={service}

[Swap]
What={root}dev/{name}
Options=pri={priority}
"""


def service_unit_name(device_name: str) -> str:
    return f"swap-create@{device_name}.service"


def swap_unit_name(device_name: str) -> str:
    return f"dev-{device_name}.swap"


def render_service_unit(root: str, device: Device) -> str:
    """Render the oneshot service that sizes and formats the device."""
    if device.disksize is None:
        raise ValueError(f"{device.name} has no disksize, it was never resolved")

    return SERVICE_TEMPLATE.format(
        root=root,
        device_unit=f"dev-{device.name}.device",
        module=ZRAM_MODULE,
        disksize=device.disksize,
    )


def render_swap_unit(root: str, device: Device) -> str:
    return SWAP_TEMPLATE.format(
        root=root,
        name=device.name,
        service=service_unit_name(device.name),
        priority=SWAP_PRIORITY,
    )


class UnitEmitter:
    """
    Writes generated units into a systemd generator output directory.

    Nothing is rolled back on failure: generation is idempotent and the
    whole boot-time run is retried from scratch.
    """

    def __init__(
        self,
        root: str,
        output_directory: Path,
        filesystem: FileSystem | None = None,
    ) -> None:
        """
        Initialize the emitter.

        Args:
            root: Filesystem root prefix, ending with a separator
            output_directory: Generator output directory for normal units
            filesystem: Filesystem capability, the real one by default
        """
        self._root = root
        self._output_directory = Path(output_directory)
        self._fs = filesystem or LocalFileSystem()

    def emit_device(self, device: Device) -> None:
        """Write the service, swap unit and wants symlink for one device."""
        service_name = service_unit_name(device.name)
        swap_name = swap_unit_name(device.name)

        service_contents = render_service_unit(self._root, device)
        logger.info(
            "Creating %s for %sdev/%s (%dMB)",
            service_name,
            self._root,
            device.name,
            device.disksize // 1024 // 1024,
        )

        service_path = self._output_directory / service_name
        self._fs.make_parent(service_path)
        self._fs.write_text(service_path, service_contents)

        swap_path = self._output_directory / swap_name
        self._fs.write_text(swap_path, render_swap_unit(self._root, device))

        symlink_path = self._output_directory / SWAP_TARGET_WANTS / swap_name
        self._fs.symlink(f"../{swap_name}", symlink_path)

    def write_modules_load(self) -> Path:
        """Ask systemd-modules-load to load the zram module."""
        path = Path(self._root) / MODULES_LOAD_PATH
        self._fs.make_parent(path)
        self._fs.write_text(path, f"{ZRAM_MODULE}\n")
        return path

    def emit(self, devices: Sequence[Device]) -> int:
        """Emit every device in order; returns how many were written."""
        emitted = 0
        for device in devices:
            self.emit_device(device)
            emitted += 1

        if emitted:
            # We created some services, make sure the module gets loaded
            path = self.write_modules_load()
            logger.debug("Wrote %s", path)

        return emitted


def run_generator(
    root: str,
    devices: Sequence[Device],
    output_directory: Path,
    filesystem: FileSystem | None = None,
) -> int:
    """Generate units for resolved devices into output_directory."""
    emitter = UnitEmitter(root, output_directory, filesystem)
    return emitter.emit(devices)
