"""CLI command handler for the scan (audit) workflow."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from scs_migrator.cli.common import (
    cli,
    common_options,
    connect,
    create_run_output_directory,
    handle_exception,
)
from scs_migrator.cli.report import print_scan_result, write_scan_report
from scs_migrator.core.config import load_config
from scs_migrator.core.context import build_context
from scs_migrator.core.scanner import Scanner
from scs_migrator.utils.logging import log_with_context, setup_logger

logger = logging.getLogger("scs_migrator")


@cli.command()
@common_options
@click.option(
    "--no_progress",
    is_flag=True,
    default=False,
    help="Do not draw the progress bar",
)
def scan(
    api: str,
    user: str,
    password: str,
    insecure: bool,
    config: str,
    verbose: bool,
    debug_api: bool,
    no_progress: bool,
) -> None:
    """Report legacy Spring Cloud Services instances and config-server incompatibilities.

    Args:
        api: Platform API endpoint.
        user: Platform API user.
        password: Platform API password.
        insecure: Skip TLS certificate validation.
        config: Path to config YAML.
        verbose: Enable verbose console logging.
        debug_api: Enable detailed API request/response logging.
        no_progress: Hide the progress bar.
    """
    output_dir = create_run_output_directory("scan")
    setup_logger(verbose, debug_api, output_dir)
    log_with_context(logging.INFO, f"Scanning {api} as {user}")

    try:
        settings = load_config(Path(config))
        gateway = connect(api, user, password, insecure, settings.request_timeout)
        context = build_context(gateway, settings)
        spaces = gateway.list_spaces()
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    result = Scanner(gateway, context).scan(spaces, show_progress=not no_progress)

    print_scan_result(result)
    try:
        write_scan_report(result, output_dir)
    except OSError as e:
        log_with_context(logging.WARNING, f"Failed to write scan report: {e}")
