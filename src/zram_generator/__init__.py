"""
zram-generator - systemd generator for zram swap devices.

Reads /etc/systemd/zram-generator.conf at boot and writes the units that
create, format and activate compressed swap on zram devices.

Usage:
    # Installed as a systemd generator
    zram-generator NORMAL_DIR EARLY_DIR LATE_DIR

    # Against a synthetic root
    ZRAM_GENERATOR_ROOT=/tmp/root python -m zram_generator /tmp/out
"""

from zram_generator.config import (
    APP_NAME,
    APP_VERSION,
    Bounded,
    Config,
    Device,
    GeneratorMode,
    SetupDeviceMode,
    Unlimited,
)
from zram_generator.errors import (
    ArgumentError,
    ConfigParseError,
    DetectionError,
    FilesystemError,
    MemoryProbeError,
    ZramGeneratorError,
)
from zram_generator.generator import UnitEmitter, run_generator

__version__ = APP_VERSION
__license__ = "MIT"

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "ArgumentError",
    "Bounded",
    "Config",
    "ConfigParseError",
    "DetectionError",
    "Device",
    "FilesystemError",
    "GeneratorMode",
    "MemoryProbeError",
    "SetupDeviceMode",
    "UnitEmitter",
    "Unlimited",
    "ZramGeneratorError",
    "__version__",
    "run_generator",
]
