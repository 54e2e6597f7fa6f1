"""
Migration progress for a single service instance.

Tracks how far one orchestrator invocation got so a failure report can say
exactly which side effects already happened. Nothing here is persisted; a
new run starts from scratch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from scs_migrator.types import ServiceInstance


class MigrationState(str, Enum):
    """Where a service instance migration currently stands."""

    STARTED = "started"
    RENAMED = "renamed"
    RECREATED = "recreated"
    REBOUND = "rebound"
    RESTAGE_PENDING = "restage_pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class MigrationProgress:
    """Mutable record of the side effects performed for one service instance."""

    service_name: str
    service_guid: str
    state: MigrationState = MigrationState.STARTED
    completed_steps: list[str] = field(default_factory=list)
    new_instance: ServiceInstance | None = None
    rebound_bindings: list[str] = field(default_factory=list)
    pending_bindings: list[str] = field(default_factory=list)
    restaged_apps: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None

    def advance(self, state: MigrationState, step: str) -> None:
        self.state = state
        self.completed_steps.append(step)

    def fail(self, step: str, error: object) -> None:
        self.state = MigrationState.FAILED
        self.failed_step = step
        self.error = str(error)

    @property
    def partially_rebound(self) -> bool:
        """True when some, but not all, bindings moved to the new instance."""
        return bool(self.rebound_bindings) and bool(self.pending_bindings)

    @property
    def finished(self) -> bool:
        return self.state == MigrationState.COMPLETED

    def to_dict(self) -> dict[str, object]:
        return {
            "service_name": self.service_name,
            "service_guid": self.service_guid,
            "state": self.state.value,
            "completed_steps": list(self.completed_steps),
            "new_instance_guid": self.new_instance.guid if self.new_instance else None,
            "rebound_bindings": list(self.rebound_bindings),
            "pending_bindings": list(self.pending_bindings),
            "restaged_apps": list(self.restaged_apps),
            "failed_step": self.failed_step,
            "error": self.error,
        }
