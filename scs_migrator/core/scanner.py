"""
Discovery of legacy Spring Cloud Services instances across a foundation.

Walks every space in order, picks out the 2.x circuit breaker dashboard,
config server and service registry instances from the space summary, and
records one ServiceUsage per instance. Failures for one space or one
instance are collected as ScanError and never stop the scan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Sequence

from tqdm import tqdm

from scs_migrator.constants import (
    CIRCUIT_BREAKER_V2_LABEL,
    CONFIG_SERVER_V2_LABEL,
    LEGACY_LABELS,
    SERVICE_REGISTRY_V2_LABEL,
)
from scs_migrator.core.classifier import classify
from scs_migrator.core.config import should_process_org
from scs_migrator.core.context import ScanContext
from scs_migrator.exceptions import APIError, ScanError
from scs_migrator.types import CompatibilityFlags, ServiceSummary, ServiceUsage, Space
from scs_migrator.utils.logging import log_with_context

if TYPE_CHECKING:
    from scs_migrator.services.gateway import PlatformGateway


def services_by_label(
    label: str, summaries: Iterable[ServiceSummary]
) -> list[ServiceSummary]:
    """Return the services whose marketplace label matches, in their original order."""
    return [summary for summary in summaries if summary.label == label]


@dataclass
class ScanResult:
    """Usages grouped by legacy catalog label, plus the non-fatal errors."""

    usages: dict[str, list[ServiceUsage]] = field(
        default_factory=lambda: {label: [] for label in LEGACY_LABELS}
    )
    errors: list[ScanError] = field(default_factory=list)
    spaces_scanned: int = 0

    @property
    def circuit_breakers(self) -> list[ServiceUsage]:
        return self.usages[CIRCUIT_BREAKER_V2_LABEL]

    @property
    def config_servers(self) -> list[ServiceUsage]:
        return self.usages[CONFIG_SERVER_V2_LABEL]

    @property
    def service_registries(self) -> list[ServiceUsage]:
        return self.usages[SERVICE_REGISTRY_V2_LABEL]


@dataclass(frozen=True)
class MigrationCandidate:
    """A legacy config-server instance selected for migration."""

    org: str
    space: Space
    service: ServiceSummary

    @property
    def label(self) -> str:
        return f"{self.org}/{self.space.name}/{self.service.name}"


class Scanner:
    """Builds ServiceUsage records for legacy instances, one space at a time."""

    def __init__(self, gateway: PlatformGateway, context: ScanContext) -> None:
        self.gateway = gateway
        self.context = context

    def app_names_for_instance(self, service_guid: str) -> list[str]:
        """Names of the apps bound to an instance."""
        # TODO: include org/space of apps bound through a shared instance
        return [
            self.context.app_name(binding.app_guid)
            for binding in self.gateway.list_service_bindings(service_guid)
        ]

    def build_usages(
        self, space: Space, summaries: Sequence[ServiceSummary]
    ) -> tuple[list[ServiceUsage], list[ScanError]]:
        """
        Create a usage record for each service of a space.

        Config-server instances also get their parameters fetched and
        classified. A failed lookup is returned as a ScanError while the
        usage is still recorded, with empty app names or default flags.

        Args:
            space: The space the services belong to
            summaries: Services from the space summary

        Returns:
            The usage records and the errors hit while building them
        """
        usages: list[ServiceUsage] = []
        errors: list[ScanError] = []

        for service in summaries:
            app_names: list[str] = []
            if service.bound_app_count > 0:
                try:
                    app_names = self.app_names_for_instance(service.guid)
                except APIError as e:
                    errors.append(
                        ScanError(f"couldn't list bindings for service {service.guid}", e)
                    )

            flags = CompatibilityFlags()
            if service.label == CONFIG_SERVER_V2_LABEL:
                try:
                    flags = classify(self.gateway.get_config_server_parameters(service))
                except APIError as e:
                    errors.append(
                        ScanError(
                            f"couldn't get config parameters for service {service.guid}", e
                        )
                    )

            usages.append(
                ServiceUsage(
                    org=self.context.org_name(space.organization_guid),
                    space=space.name,
                    service_instance_name=service.name,
                    bound_apps=service.bound_app_count,
                    app_names=tuple(app_names),
                    flags=flags,
                )
            )

        return usages, errors

    def scan_space(self, space: Space, result: ScanResult) -> None:
        try:
            summaries = self.gateway.get_space_summary(space.guid)
        except APIError as e:
            result.errors.append(
                ScanError(f"couldn't get space summary for {space.guid}", e)
            )
            return

        for label in LEGACY_LABELS:
            usages, errors = self.build_usages(space, services_by_label(label, summaries))
            result.usages[label].extend(usages)
            result.errors.extend(errors)

    def spaces_in_scope(self, spaces: Sequence[Space]) -> list[Space]:
        """Drop spaces whose org is excluded by configuration."""
        in_scope = [
            space
            for space in spaces
            if should_process_org(
                self.context.org_name(space.organization_guid), self.context.config
            )
        ]
        skipped = len(spaces) - len(in_scope)
        if skipped:
            log_with_context(
                logging.INFO, f"Skipping {skipped} space(s) in orgs excluded by configuration"
            )
        return in_scope

    def find_migration_candidates(
        self,
        spaces: Sequence[Space],
        orgs: Sequence[str] = (),
        space_names: Sequence[str] = (),
        instance_names: Sequence[str] = (),
    ) -> tuple[list[MigrationCandidate], list[ScanError]]:
        """
        Select legacy config-server instances, narrowed by org, space and name.

        An empty filter matches everything. Space summary failures are
        returned as errors, the remaining spaces are still searched.
        """
        candidates: list[MigrationCandidate] = []
        errors: list[ScanError] = []

        for space in self.spaces_in_scope(spaces):
            org_name = self.context.org_name(space.organization_guid)
            if orgs and org_name not in orgs:
                continue
            if space_names and space.name not in space_names:
                continue
            try:
                summaries = self.gateway.get_space_summary(space.guid)
            except APIError as e:
                errors.append(ScanError(f"couldn't get space summary for {space.guid}", e))
                continue
            for service in services_by_label(CONFIG_SERVER_V2_LABEL, summaries):
                if instance_names and service.name not in instance_names:
                    continue
                candidates.append(MigrationCandidate(org=org_name, space=space, service=service))

        return candidates, errors

    def scan(self, spaces: Sequence[Space], show_progress: bool = True) -> ScanResult:
        """
        Scan spaces sequentially, skipping orgs excluded by configuration.

        Args:
            spaces: Spaces to inspect
            show_progress: Draw a progress bar on stderr

        Returns:
            The aggregated ScanResult
        """
        result = ScanResult()
        for space in tqdm(
            self.spaces_in_scope(spaces),
            desc="Scanning spaces",
            disable=not show_progress,
        ):
            self.scan_space(space, result)
            result.spaces_scanned += 1

        log_with_context(
            logging.DEBUG,
            f"Scanned {result.spaces_scanned} space(s), {len(result.errors)} error(s)",
        )
        return result
