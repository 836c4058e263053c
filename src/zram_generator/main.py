#!/usr/bin/env python3
"""
Entry point for zram-generator.

This module sets up logging and runs the generator with the systemd
generator calling convention.
"""

from __future__ import annotations

import logging
import os
import sys

import click

from zram_generator.config import APP_NAME, APP_VERSION, LOG_LEVEL_ENV, Config
from zram_generator.errors import ArgumentError, ZramGeneratorError

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()

    # Map level name to logging constant
    level = getattr(logging, log_level, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(name)s: %(levelname)s: %(message)s",
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(APP_VERSION, prog_name=APP_NAME)
@click.option(
    "--setup-device",
    metavar="NAME",
    default=None,
    help="Set up the named zram device (not implemented).",
)
@click.argument("directories", nargs=-1)
def main(directories: tuple[str, ...], setup_device: str | None) -> None:
    """Generate swap units for zram devices.

    DIRECTORIES are the normal, early and late generator output directories
    passed by systemd; units are written into the first one.
    """
    setup_logging()
    logger.debug("Starting %s %s", APP_NAME, APP_VERSION)

    try:
        config = Config.from_environment(directories, setup_device)
        if config is None:
            return
        config.run()
    except ArgumentError as e:
        raise click.UsageError(str(e)) from e
    except (ZramGeneratorError, NotImplementedError) as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
