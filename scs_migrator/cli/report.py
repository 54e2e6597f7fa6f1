"""
Console output and YAML reports for scans and migrations
"""

from __future__ import annotations

import datetime
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Sequence

import click
import yaml

from scs_migrator.constants import SAFE_ICON, WARNING_ICON
from scs_migrator.core.classifier import describe_flags
from scs_migrator.core.scanner import ScanResult
from scs_migrator.exceptions import ScanError
from scs_migrator.types import ServiceUsage
from scs_migrator.utils.logging import log_with_context

CIRCUIT_BREAKER_REPLACEMENT_URL = (
    "tanzu.vmware.com/content/practitioners/"
    "replacing-the-spring-cloud-services-circuit-breaker-dashboard"
)

_SEVERITY_COLORS = {"warning": "yellow", "error": "red"}


@dataclass
class MigrationOutcome:
    """What happened to one config-server instance during ``migrate``."""

    org: str
    space: str
    service_instance_name: str
    status: str  # "migrated", "planned", "skipped", "failed" or "cancelled"
    detail: str = ""
    new_instance_guid: str | None = None
    progress: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.org}/{self.space}/{self.service_instance_name}"


def print_errors(errors: Sequence[ScanError]) -> None:
    """Print collected scan errors as a numbered list."""
    if not errors:
        return
    click.echo(f"Encountered {len(errors)} errors:")
    for i, error in enumerate(errors, start=1):
        click.echo(f"{i}. {error}")
    click.echo()


def print_usages(usages: Sequence[ServiceUsage]) -> None:
    for usage in usages:
        click.echo(
            f"- {usage.org}/{usage.space}/{usage.service_instance_name} ({usage.bound_apps} apps)"
        )
        for severity, message in describe_flags(usage.flags):
            click.secho(f" {message}", fg=_SEVERITY_COLORS[severity])
        for app in usage.app_names:
            click.echo(f"  - {app}")


def print_scan_result(result: ScanResult) -> None:
    """Print errors followed by the three per-service sections."""
    click.echo()
    print_errors(result.errors)

    if result.circuit_breakers:
        click.secho(
            f"{WARNING_ICON}  The Circuit Breaker Dashboard is unavailable in SCS 3.x - "
            "the following services cannot be migrated:",
            fg="yellow",
        )
        click.echo("See " + click.style(CIRCUIT_BREAKER_REPLACEMENT_URL, fg="blue"))
        print_usages(result.circuit_breakers)
    else:
        click.echo(f"{SAFE_ICON}  no usages of deprecated Circuit Breaker Dashboard")
    click.echo()

    if result.config_servers:
        click.secho(f"{SAFE_ICON} Config Server instances to be migrated", fg="green")
        print_usages(result.config_servers)
        click.echo()
    else:
        click.echo(f"{SAFE_ICON}  no Config Server instances to migrate")

    if result.service_registries:
        click.secho(f"{SAFE_ICON} Service Registry instances to be migrated", fg="green")
        click.secho(
            f"{WARNING_ICON}  Note: not available in SCS 3.0, you must run SCS 3.1+",
            fg="yellow",
        )
        print_usages(result.service_registries)
    else:
        click.echo(f"{SAFE_ICON}  no Service Registry instances to be migrated")


def print_migration_summary(outcomes: Sequence[MigrationOutcome]) -> None:
    click.echo()
    if not outcomes:
        click.echo(f"{SAFE_ICON}  no Config Server instances matched the selection")
        return

    colors = {"migrated": "green", "planned": "green", "failed": "red"}
    for outcome in outcomes:
        line = f"- {outcome.label}: {outcome.status}"
        if outcome.detail:
            line += f" ({outcome.detail})"
        click.secho(line, fg=colors.get(outcome.status, "yellow"))


def _write_yaml(data: dict[str, Any], output_dir: str, filename: str) -> str:
    report_path = os.path.join(output_dir, filename)
    with open(report_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    log_with_context(logging.INFO, f"Report written to {report_path}")
    return report_path


def write_scan_report(
    result: ScanResult, output_dir: str, output_file: str = "scan_report.yaml"
) -> str:
    """
    Write the scan result as YAML.

    Args:
        result: The completed scan
        output_dir: Run output directory
        output_file: Report file name

    Returns:
        Path of the written report
    """
    report = {
        "scan_summary": {
            "timestamp": datetime.datetime.now().isoformat(),
            "spaces_scanned": result.spaces_scanned,
            "circuit_breaker_dashboards": len(result.circuit_breakers),
            "config_servers": len(result.config_servers),
            "service_registries": len(result.service_registries),
            "config_servers_needing_attention": sum(
                1 for usage in result.config_servers if usage.flags.needs_attention
            ),
            "errors": len(result.errors),
        },
        "circuit_breaker_dashboards": [u.to_dict() for u in result.circuit_breakers],
        "config_servers": [u.to_dict() for u in result.config_servers],
        "service_registries": [u.to_dict() for u in result.service_registries],
        "errors": [str(error) for error in result.errors],
    }
    return _write_yaml(report, output_dir, output_file)


def write_migration_report(
    outcomes: Sequence[MigrationOutcome],
    output_dir: str,
    dry_run: bool = False,
    output_file: str = "migration_report.yaml",
) -> str:
    """Write per-instance migration outcomes, including partial progress, as YAML."""
    counts: dict[str, int] = {}
    for outcome in outcomes:
        counts[outcome.status] = counts.get(outcome.status, 0) + 1

    report = {
        "migration_summary": {
            "timestamp": datetime.datetime.now().isoformat(),
            "dry_run": dry_run,
            **counts,
        },
        "service_instances": [
            {
                "org": o.org,
                "space": o.space,
                "service_instance": o.service_instance_name,
                "status": o.status,
                "detail": o.detail,
                "new_instance_guid": o.new_instance_guid,
                "progress": o.progress,
            }
            for o in outcomes
        ],
    }
    return _write_yaml(report, output_dir, output_file)
