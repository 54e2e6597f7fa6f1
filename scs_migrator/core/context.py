"""Immutable scan context.

ScanContext is a frozen dataclass holding the lookup tables a scan needs
(org names and apps by guid). It is built once at startup and shared
read-only with the scanner, replacing any module-level caches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from scs_migrator.core.config import MigratorConfig
from scs_migrator.exceptions import APIError
from scs_migrator.types import App
from scs_migrator.utils.logging import log_with_context

if TYPE_CHECKING:
    from scs_migrator.services.gateway import PlatformGateway


@dataclass(frozen=True)
class ScanContext:
    """Read-only lookup tables for one run. Created once, shared everywhere."""

    org_names_by_guid: Mapping[str, str] = field(default_factory=dict)
    apps_by_guid: Mapping[str, App] = field(default_factory=dict)
    config: MigratorConfig = field(default_factory=MigratorConfig)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "org_names_by_guid", MappingProxyType(dict(self.org_names_by_guid))
        )
        object.__setattr__(self, "apps_by_guid", MappingProxyType(dict(self.apps_by_guid)))

    def org_name(self, org_guid: str) -> str:
        return self.org_names_by_guid.get(org_guid, "")

    def app_name(self, app_guid: str) -> str:
        """Name of the app, or its guid when it is outside the visible apps."""
        app = self.apps_by_guid.get(app_guid)
        return app.name if app else app_guid


def build_context(
    gateway: PlatformGateway, config: MigratorConfig | None = None
) -> ScanContext:
    """
    Populate the org and app lookup tables from the platform.

    Args:
        gateway: An authenticated platform gateway
        config: Loaded configuration, defaults when omitted

    Returns:
        A ScanContext ready to be shared by the scanner

    Raises:
        APIError: If orgs or apps cannot be listed; the run cannot continue
    """
    try:
        orgs = gateway.list_orgs()
    except APIError as e:
        raise APIError(f"could not list orgs: {e}", e.status_code) from e

    # TODO: fetch apps lazily per bound instance, foundations can hold many apps
    try:
        apps = gateway.list_apps()
    except APIError as e:
        raise APIError(f"could not list apps: {e}", e.status_code) from e

    log_with_context(
        logging.DEBUG, f"Loaded {len(orgs)} orgs and {len(apps)} apps for lookup"
    )
    return ScanContext(
        org_names_by_guid={org.guid: org.name for org in orgs},
        apps_by_guid={app.guid: app for app in apps},
        config=config or MigratorConfig(),
    )
