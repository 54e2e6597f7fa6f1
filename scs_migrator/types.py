"""Shared type definitions for the Spring Cloud Services migration tool.

Provides dataclasses for the Cloud Foundry v2 API records the tool reads
(orgs, spaces, apps, service summaries, instances, bindings) and for the
internal audit records (compatibility flags, per-instance usage).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Decoded JSON configuration of a config-server instance
ConfigPayload = dict[str, Any]


def _metadata_guid(resource: Any) -> str:
    metadata = resource.get("metadata") if isinstance(resource, dict) else None
    return metadata.get("guid", "") if isinstance(metadata, dict) else ""


def _entity(resource: Any) -> dict[str, Any]:
    entity = resource.get("entity") if isinstance(resource, dict) else None
    return entity if isinstance(entity, dict) else {}


# ---------------------------------------------------------------------------
# Cloud Controller records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Org:
    """An organization, the top level of the tenancy hierarchy."""

    guid: str
    name: str

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> Org:
        return cls(guid=_metadata_guid(resource), name=_entity(resource).get("name", ""))


@dataclass(frozen=True)
class Space:
    """A space inside an organization."""

    guid: str
    name: str
    organization_guid: str

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> Space:
        entity = _entity(resource)
        return cls(
            guid=_metadata_guid(resource),
            name=entity.get("name", ""),
            organization_guid=entity.get("organization_guid", ""),
        )


@dataclass(frozen=True)
class App:
    """An application, as needed for naming bound apps in reports."""

    guid: str
    name: str
    space_guid: str = ""
    state: str = ""

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> App:
        entity = _entity(resource)
        return cls(
            guid=_metadata_guid(resource),
            name=entity.get("name", ""),
            space_guid=entity.get("space_guid", ""),
            state=entity.get("state", ""),
        )


@dataclass(frozen=True)
class LastOperation:
    """The most recent asynchronous operation on a service instance."""

    type: str = ""
    state: str = ""
    description: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> LastOperation:
        if not isinstance(data, dict):
            return cls()
        return cls(
            type=data.get("type") or "",
            state=data.get("state") or "",
            description=data.get("description") or "",
            updated_at=data.get("updated_at") or "",
        )


@dataclass(frozen=True)
class ServicePlan:
    """The plan (and its marketplace service label) of a service instance."""

    guid: str = ""
    name: str = ""
    label: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ServicePlan:
        if not isinstance(data, dict):
            return cls()
        service = data.get("service") or {}
        return cls(
            guid=data.get("guid", ""),
            name=data.get("name", ""),
            label=service.get("label", ""),
        )


@dataclass(frozen=True)
class ServiceSummary:
    """A service instance entry from a space summary."""

    guid: str
    name: str
    bound_app_count: int = 0
    dashboard_url: str = ""
    service_plan: ServicePlan = field(default_factory=ServicePlan)

    @property
    def label(self) -> str:
        return self.service_plan.label

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceSummary:
        return cls(
            guid=data.get("guid", ""),
            name=data.get("name", ""),
            bound_app_count=data.get("bound_app_count") or 0,
            dashboard_url=data.get("dashboard_url") or "",
            service_plan=ServicePlan.from_dict(data.get("service_plan")),
        )


@dataclass(frozen=True)
class ServiceInstance:
    """A managed service instance resource."""

    guid: str
    name: str
    space_guid: str = ""
    service_plan_guid: str = ""
    dashboard_url: str = ""
    last_operation: LastOperation = field(default_factory=LastOperation)

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> ServiceInstance:
        entity = _entity(resource)
        return cls(
            guid=_metadata_guid(resource),
            name=entity.get("name", ""),
            space_guid=entity.get("space_guid", ""),
            service_plan_guid=entity.get("service_plan_guid", ""),
            dashboard_url=entity.get("dashboard_url") or "",
            last_operation=LastOperation.from_dict(entity.get("last_operation")),
        )


@dataclass(frozen=True)
class Binding:
    """Association between an app and a service instance.

    Bindings are created and deleted by the migration, never modified.
    """

    guid: str
    app_guid: str
    service_instance_guid: str

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> Binding:
        entity = _entity(resource)
        return cls(
            guid=_metadata_guid(resource),
            app_guid=entity.get("app_guid", ""),
            service_instance_guid=entity.get("service_instance_guid", ""),
        )


# ---------------------------------------------------------------------------
# Audit records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompatibilityFlags:
    """Config-server features in use that matter for a 3.x migration.

    ``uses_old_git_repos`` blocks migration, ``uses_encrypt_key`` needs
    3.1.6 or later, and ``uses_old_composite`` needs rewriting.
    """

    uses_old_git_repos: bool = False
    uses_encrypt_key: bool = False
    uses_old_composite: bool = False

    @property
    def blocked(self) -> bool:
        """True when the configuration cannot be carried over as-is."""
        return self.uses_old_git_repos

    @property
    def needs_attention(self) -> bool:
        return self.uses_old_git_repos or self.uses_encrypt_key or self.uses_old_composite


@dataclass(frozen=True)
class ServiceUsage:
    """One discovered legacy service instance and the apps bound to it."""

    org: str
    space: str
    service_instance_name: str
    bound_apps: int
    app_names: tuple[str, ...] = ()
    flags: CompatibilityFlags = field(default_factory=CompatibilityFlags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "org": self.org,
            "space": self.space,
            "service_instance": self.service_instance_name,
            "bound_apps": self.bound_apps,
            "app_names": list(self.app_names),
            "uses_old_git_repos": self.flags.uses_old_git_repos,
            "uses_encrypt_key": self.flags.uses_encrypt_key,
            "uses_old_composite": self.flags.uses_old_composite,
        }
