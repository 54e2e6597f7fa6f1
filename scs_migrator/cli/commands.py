#!/usr/bin/env python3
"""
Main execution module for the Spring Cloud Services migration tool.

Assembles the click CLI group from the subcommand modules and adds the
small commands that never talk to the platform.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

import scs_migrator
from scs_migrator.cli.common import cli, handle_exception

# Importing the subcommand modules registers them on the ``cli`` group
from scs_migrator.cli.migrate_cmd import migrate
from scs_migrator.cli.scan_cmd import scan
from scs_migrator.core.config import create_default_config
from scs_migrator.utils.logging import setup_logger

logger = logging.getLogger("scs_migrator")

__all__ = ["cli", "handle_exception", "init_config", "main", "migrate", "scan", "version"]


@cli.command()
def version() -> None:
    """Print build metadata and exit."""
    click.echo(
        f"{scs_migrator.__version__}, commit {scs_migrator.__commit__}, "
        f"built at {scs_migrator.__build_date__}"
    )


@cli.command("init-config")
@click.option(
    "--config",
    default="config.yaml",
    show_default=True,
    help="Where to write the config YAML",
)
def init_config(config: str) -> None:
    """Write a starter config file."""
    setup_logger()
    if not create_default_config(Path(config)):
        sys.exit(1)


def main() -> None:
    """Entry point for the ``scs-migrator`` console script."""
    cli()


if __name__ == "__main__":
    main()
