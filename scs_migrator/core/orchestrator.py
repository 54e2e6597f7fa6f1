"""
Online migration of one config-server instance to a new service instance.

The sequence is rename old → create new → rebind every app → (optionally)
delete old. Each step is a remote side effect with no transaction around it:
the first failure stops the sequence and is raised with the progress made so
far, nothing is rolled back. Bindings are processed strictly one at a time.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

from scs_migrator.constants import (
    OLD_INSTANCE_SUFFIX,
    OPERATION_FAILED,
    OPERATION_SUCCEEDED,
    RENAME_POLL_ATTEMPTS,
    RENAME_POLL_DELAY_SECONDS,
)
from scs_migrator.core.state import MigrationProgress, MigrationState
from scs_migrator.exceptions import (
    APIError,
    MigrationCancelledError,
    MigrationStepError,
    RenameTimeoutError,
)
from scs_migrator.types import (
    Binding,
    ConfigPayload,
    LastOperation,
    ServiceInstance,
    ServiceSummary,
)
from scs_migrator.utils.logging import log_with_context

if TYPE_CHECKING:
    from scs_migrator.services.gateway import PlatformGateway

STEP_RENAME = "rename"
STEP_CREATE = "create"
STEP_BIND = "bind"
STEP_UNBIND = "unbind"
STEP_RESTAGE = "restage"
STEP_DELETE = "delete"


@dataclass(frozen=True)
class MigrationPolicy:
    """Tunables of the migration sequence.

    ``delete_old_instance`` stays off: the renamed instance is kept so an
    operator can compare or fall back by hand.
    """

    rename_poll_attempts: int = RENAME_POLL_ATTEMPTS
    rename_poll_delay: float = RENAME_POLL_DELAY_SECONDS
    old_name_suffix: str = OLD_INSTANCE_SUFFIX
    delete_old_instance: bool = False


class ServiceMigrator:
    """Migrates config-server instances one at a time through a platform gateway."""

    def __init__(
        self,
        gateway: PlatformGateway,
        policy: MigrationPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.gateway = gateway
        self.policy = policy or MigrationPolicy()
        self._sleep = sleep
        self._cancel_event = cancel_event

    def migrate(
        self,
        service: ServiceSummary,
        space_guid: str,
        parameters: ConfigPayload,
        bindings: Sequence[Binding],
        progress: MigrationProgress | None = None,
    ) -> ServiceInstance:
        """
        Replace a service instance with a new one holding rewritten parameters.

        Args:
            service: The existing instance (from the space summary)
            space_guid: Space that will hold the new instance
            parameters: Already transformed configuration for the new instance
            bindings: Current bindings of the existing instance
            progress: Optional record to update; a fresh one is used otherwise

        Returns:
            The newly created service instance

        Raises:
            MigrationStepError: The first step that failed, with ``progress``
                describing what was already done
            RenameTimeoutError: The rename never reported success
            MigrationCancelledError: Cancellation was requested between steps
        """
        if progress is None:
            progress = MigrationProgress(service_name=service.name, service_guid=service.guid)
        progress.pending_bindings = [binding.guid for binding in bindings]

        log_with_context(
            logging.INFO,
            f"Migrating service instance {service.name} ({service.guid}) "
            f"with {len(bindings)} binding(s)",
            service=service.name,
            service_guid=service.guid,
        )

        self._check_cancelled(STEP_RENAME, service, progress)
        old_name = service.name + self.policy.old_name_suffix
        self._run_step(
            STEP_RENAME,
            service,
            progress,
            lambda: self.gateway.rename_service_instance(service.guid, old_name),
        )
        self.wait_for_rename(service, progress)
        progress.advance(MigrationState.RENAMED, STEP_RENAME)

        self._check_cancelled(STEP_CREATE, service, progress)
        new_instance = self._run_step(
            STEP_CREATE,
            service,
            progress,
            lambda: self.gateway.create_service_instance(
                name=service.name,
                service_plan_guid=service.service_plan.guid,
                space_guid=space_guid,
                parameters=parameters,
            ),
        )
        progress.new_instance = new_instance
        progress.advance(MigrationState.RECREATED, STEP_CREATE)
        log_with_context(
            logging.INFO,
            f"Created service instance {service.name} ({new_instance.guid})",
            service=service.name,
            service_guid=new_instance.guid,
        )

        for binding in bindings:
            self._check_cancelled(STEP_BIND, service, progress)
            self._rebind(service, new_instance, binding, progress)
        progress.advance(MigrationState.REBOUND, STEP_BIND)

        # TODO: poll restaged apps until they are running again
        progress.advance(MigrationState.RESTAGE_PENDING, STEP_RESTAGE)

        if self.policy.delete_old_instance:
            self._check_cancelled(STEP_DELETE, service, progress)
            self._run_step(
                STEP_DELETE,
                service,
                progress,
                lambda: self.gateway.delete_service_instance(
                    service.guid, recursive=False, async_=True
                ),
            )
            progress.completed_steps.append(STEP_DELETE)

        progress.advance(MigrationState.COMPLETED, "complete")
        log_with_context(
            logging.INFO,
            f"Service instance {service.name} migrated to {new_instance.guid}",
            service=service.name,
            service_guid=new_instance.guid,
        )
        return new_instance

    def wait_for_rename(
        self, service: ServiceSummary, progress: MigrationProgress | None = None
    ) -> LastOperation:
        """
        Poll the instance until its rename reports success.

        Sleeps ``rename_poll_delay`` before each of at most
        ``rename_poll_attempts`` polls. A poll that fails to fetch the
        instance counts as an attempt that saw no terminal state.

        Returns:
            The successful last operation

        Raises:
            MigrationStepError: The platform reported the rename as failed
            RenameTimeoutError: No success was seen within the attempts
        """
        last_operation: LastOperation | None = None
        for attempt in range(1, self.policy.rename_poll_attempts + 1):
            self._sleep(self.policy.rename_poll_delay)
            try:
                instance = self.gateway.get_service_instance(service.guid)
            except APIError as e:
                log_with_context(
                    logging.WARNING,
                    f"Could not check rename of {service.name} "
                    f"(attempt {attempt}/{self.policy.rename_poll_attempts}): {e}",
                    service=service.name,
                    service_guid=service.guid,
                )
                continue

            last_operation = instance.last_operation
            if last_operation.state == OPERATION_SUCCEEDED:
                return last_operation
            if last_operation.state == OPERATION_FAILED:
                error = MigrationStepError(
                    STEP_RENAME,
                    service.name,
                    service.guid,
                    f"rename service operation failed: {last_operation.description or last_operation}",
                    progress,
                )
                if progress is not None:
                    progress.fail(STEP_RENAME, error.cause)
                raise error

            log_with_context(
                logging.DEBUG,
                f"Rename of {service.name} is {last_operation.state or 'pending'} "
                f"(attempt {attempt}/{self.policy.rename_poll_attempts})",
                service=service.name,
                service_guid=service.guid,
            )

        error = RenameTimeoutError(
            service.name,
            service.guid,
            last_operation,
            self.policy.rename_poll_attempts,
            progress,
        )
        if progress is not None:
            progress.fail(STEP_RENAME, error.cause)
        raise error

    def _rebind(
        self,
        service: ServiceSummary,
        new_instance: ServiceInstance,
        binding: Binding,
        progress: MigrationProgress,
    ) -> None:
        """Move one app from the old instance to the new one and restage it."""
        self._run_step(
            STEP_BIND,
            service,
            progress,
            lambda: self.gateway.create_service_binding(binding.app_guid, new_instance.guid),
            f"couldn't bind app {binding.app_guid} to new service instance {new_instance.name}",
        )
        self._run_step(
            STEP_UNBIND,
            service,
            progress,
            lambda: self.gateway.delete_service_binding(binding.guid),
            f"couldn't delete old service binding {binding.guid}",
        )
        progress.rebound_bindings.append(binding.guid)
        progress.pending_bindings.remove(binding.guid)

        restaged = self._run_step(
            STEP_RESTAGE,
            service,
            progress,
            lambda: self.gateway.restage_app(binding.app_guid),
            f"couldn't restage app {binding.app_guid!r}",
        )
        progress.restaged_apps.append(binding.app_guid)
        log_with_context(
            logging.INFO,
            f"Restaging app {restaged.name or binding.app_guid} ({binding.app_guid}), "
            f"state {restaged.state or 'unknown'}",
            service=service.name,
            app_guid=binding.app_guid,
        )

    def _run_step(self, step, service, progress, action, description=None):
        try:
            return action()
        except APIError as e:
            cause = f"{description}: {e}" if description else e
            progress.fail(step, cause)
            log_with_context(
                logging.ERROR,
                f"Migration of {service.name} stopped at {step}: {cause}",
                service=service.name,
                service_guid=service.guid,
                step=step,
            )
            raise MigrationStepError(
                step, service.name, service.guid, cause, progress
            ) from e

    def _check_cancelled(
        self, step: str, service: ServiceSummary, progress: MigrationProgress
    ) -> None:
        if self._cancel_event is None or not self._cancel_event.is_set():
            return
        progress.state = MigrationState.CANCELLED
        progress.failed_step = step
        progress.error = "cancelled"
        log_with_context(
            logging.WARNING,
            f"Migration of {service.name} cancelled before {step}",
            service=service.name,
            service_guid=service.guid,
            step=step,
        )
        raise MigrationCancelledError(
            step, service.name, service.guid, "cancelled by user", progress
        )
