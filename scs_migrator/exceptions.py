"""Custom exception hierarchy for the Spring Cloud Services migration tool."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scs_migrator.core.state import MigrationProgress
    from scs_migrator.types import LastOperation


class MigratorError(Exception):
    """Base exception for all migration-related errors."""


class ConfigError(MigratorError):
    """Raised when configuration is invalid or missing."""


class AuthenticationError(MigratorError):
    """Raised when the platform API client cannot obtain a token."""


class APIError(MigratorError):
    """Raised when a platform API call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScanError(MigratorError):
    """A non-fatal failure while scanning one space or one service instance."""

    def __init__(self, resource: str, cause: Any) -> None:
        super().__init__(f"{resource}: {cause}")
        self.resource = resource
        self.cause = cause


class MigrationStepError(MigratorError):
    """Raised when one step of a service instance migration fails.

    Carries enough context (service name and guid, the failed step, and the
    progress made so far) to locate and repair the partial state by hand.
    """

    def __init__(
        self,
        step: str,
        service_name: str,
        service_guid: str,
        cause: Any,
        progress: MigrationProgress | None = None,
    ) -> None:
        super().__init__(
            f"{step} failed for service instance {service_name} ({service_guid}): {cause}"
        )
        self.step = step
        self.service_name = service_name
        self.service_guid = service_guid
        self.cause = cause
        self.progress = progress


class RenameTimeoutError(MigrationStepError):
    """Raised when a rename never reaches the ``succeeded`` state."""

    def __init__(
        self,
        service_name: str,
        service_guid: str,
        last_operation: LastOperation | None,
        attempts: int,
        progress: MigrationProgress | None = None,
    ) -> None:
        super().__init__(
            "rename",
            service_name,
            service_guid,
            f"rename hasn't completed after {attempts} attempts: "
            f"last operation = {last_operation}",
            progress,
        )
        self.last_operation = last_operation
        self.attempts = attempts


class MigrationCancelledError(MigrationStepError):
    """Raised when a cancellation request is observed between two steps."""
