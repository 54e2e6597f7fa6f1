"""CLI command handler for the config-server migration workflow."""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from types import SimpleNamespace

import click

from scs_migrator.cli.common import (
    cli,
    common_options,
    connect,
    create_run_output_directory,
    handle_exception,
)
from scs_migrator.cli.report import (
    MigrationOutcome,
    print_errors,
    print_migration_summary,
    write_migration_report,
)
from scs_migrator.core.classifier import classify
from scs_migrator.core.config import MigratorConfig, load_config
from scs_migrator.core.context import ScanContext, build_context
from scs_migrator.core.orchestrator import ServiceMigrator
from scs_migrator.core.scanner import MigrationCandidate, Scanner
from scs_migrator.core.state import MigrationProgress, MigrationState
from scs_migrator.core.transformer import transform
from scs_migrator.exceptions import (
    APIError,
    MigrationCancelledError,
    MigrationStepError,
)
from scs_migrator.services.gateway import PlatformGateway
from scs_migrator.utils.logging import log_with_context, setup_logger

logger = logging.getLogger("scs_migrator")


# ---------------------------------------------------------------------------
# migrate subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--org", "orgs", multiple=True, help="Only migrate instances in this org (repeatable)")
@click.option("--space", "spaces", multiple=True, help="Only migrate instances in this space (repeatable)")
@click.option(
    "--instance",
    "instances",
    multiple=True,
    help="Only migrate the config server with this name (repeatable)",
)
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Show the rewritten parameters and bindings without changing anything",
)
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask before each migration")
def migrate(
    api: str,
    user: str,
    password: str,
    insecure: bool,
    config: str,
    verbose: bool,
    debug_api: bool,
    orgs: tuple[str, ...],
    spaces: tuple[str, ...],
    instances: tuple[str, ...],
    dry_run: bool,
    yes: bool,
) -> None:
    """Recreate 2.x config servers with 3.x-compatible parameters and rebind their apps.

    Args:
        api: Platform API endpoint.
        user: Platform API user.
        password: Platform API password.
        insecure: Skip TLS certificate validation.
        config: Path to config YAML.
        verbose: Enable verbose console logging.
        debug_api: Enable detailed API request/response logging.
        orgs: Org names to restrict the migration to.
        spaces: Space names to restrict the migration to.
        instances: Config server names to restrict the migration to.
        dry_run: Plan only, without side effects.
        yes: Skip the per-instance confirmation prompt.
    """
    args = SimpleNamespace(
        api=api,
        user=user,
        insecure=insecure,
        config=config,
        verbose=verbose,
        debug_api=debug_api,
        orgs=orgs,
        spaces=spaces,
        instances=instances,
        dry_run=dry_run,
        yes=yes,
    )

    output_dir = create_run_output_directory("migrate")
    setup_logger(verbose, debug_api, output_dir)
    log_startup_info(args)

    try:
        settings = load_config(Path(config))
        gateway = connect(api, user, password, insecure, settings.request_timeout)
        context = build_context(gateway, settings)
        platform_spaces = gateway.list_spaces()
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    runner = MigrationRunner(args, gateway, context, settings)
    outcomes = runner.run(platform_spaces)

    print_migration_summary(outcomes)
    try:
        write_migration_report(outcomes, output_dir, dry_run=dry_run)
    except OSError as e:
        log_with_context(logging.WARNING, f"Failed to write migration report: {e}")

    if any(outcome.status in ("failed", "cancelled") for outcome in outcomes):
        sys.exit(1)


# ---------------------------------------------------------------------------
# MigrationRunner
# ---------------------------------------------------------------------------


class MigrationRunner:
    """Drives the per-instance migration sequence for every selected config server."""

    def __init__(
        self,
        args: SimpleNamespace,
        gateway: PlatformGateway,
        context: ScanContext,
        config: MigratorConfig,
        migrator: ServiceMigrator | None = None,
    ) -> None:
        self.args = args
        self.gateway = gateway
        self.context = context
        self.config = config
        self.cancel_event = threading.Event()
        self.migrator = migrator or ServiceMigrator(gateway, cancel_event=self.cancel_event)

    def run(self, spaces) -> list[MigrationOutcome]:
        """Migrate every candidate in order, stopping early only on cancellation."""
        candidates, errors = Scanner(self.gateway, self.context).find_migration_candidates(
            spaces,
            orgs=self.args.orgs,
            space_names=self.args.spaces,
            instance_names=self.args.instances,
        )
        print_errors(errors)
        log_with_context(
            logging.INFO, f"Found {len(candidates)} config server instance(s) to migrate"
        )

        outcomes: list[MigrationOutcome] = []
        with cancel_on_interrupt(self.cancel_event):
            for candidate in candidates:
                if self.cancel_event.is_set():
                    outcomes.append(self._outcome(candidate, "cancelled", "not started"))
                    continue
                try:
                    outcomes.append(self.migrate_candidate(candidate))
                except Exception as e:
                    # one instance failing never stops the others
                    handle_exception(e)
                    outcomes.append(
                        self._outcome(candidate, "failed", f"unexpected error: {e}")
                    )
        return outcomes

    def migrate_candidate(self, candidate: MigrationCandidate) -> MigrationOutcome:
        """Fetch, check, rewrite and migrate one config server; never raises for API failures."""
        service = candidate.service
        try:
            raw_params = self.gateway.get_config_server_parameters(service)
        except APIError as e:
            log_with_context(
                logging.ERROR,
                f"Couldn't get config parameters for {candidate.label}: {e}",
                service=service.name,
                service_guid=service.guid,
            )
            return self._outcome(candidate, "failed", f"couldn't get config parameters: {e}")

        flags = classify(raw_params)
        if flags.uses_old_git_repos and not self.config.allow_git_repos_removal:
            log_with_context(
                logging.WARNING,
                f"Skipping {candidate.label}: it uses git.repos, which SCS 3.x does not support. "
                "Set allow_git_repos_removal in the config file to migrate it without them.",
                service=service.name,
            )
            return self._outcome(candidate, "skipped", "uses git.repos")
        if flags.uses_encrypt_key:
            log_with_context(
                logging.WARNING,
                f"{candidate.label} uses encrypt.key, make sure the target is SCS 3.1.6 or later",
                service=service.name,
            )

        params = transform(copy.deepcopy(raw_params))

        try:
            bindings = self.gateway.list_service_bindings(service.guid)
        except APIError as e:
            log_with_context(
                logging.ERROR,
                f"Couldn't list bindings for {candidate.label}: {e}",
                service=service.name,
                service_guid=service.guid,
            )
            return self._outcome(candidate, "failed", f"couldn't list bindings: {e}")

        if self.args.dry_run:
            click.echo(f"\n{candidate.label} ({len(bindings)} binding(s)) would be created with:")
            click.echo(json.dumps(params, indent=2, sort_keys=True))
            return self._outcome(candidate, "planned", f"{len(bindings)} binding(s)")

        if not self.args.yes and not self._confirm(candidate, len(bindings)):
            return self._outcome(candidate, "skipped", "declined")

        progress = MigrationProgress(service_name=service.name, service_guid=service.guid)
        try:
            new_instance = self.migrator.migrate(
                service, candidate.space.guid, params, bindings, progress=progress
            )
        except MigrationCancelledError as e:
            handle_exception(e)
            return self._outcome(candidate, "cancelled", f"before {e.step}", progress)
        except MigrationStepError as e:
            handle_exception(e)
            return self._outcome(candidate, "failed", f"{e.step}: {e.cause}", progress)
        except Exception as e:
            handle_exception(e)
            if progress.state != MigrationState.FAILED:
                progress.fail(progress.failed_step or "unexpected", e)
            return self._outcome(candidate, "failed", f"unexpected error: {e}", progress)

        return self._outcome(
            candidate,
            "migrated",
            f"{len(bindings)} app(s) restaging",
            progress,
            new_instance_guid=new_instance.guid,
        )

    def _confirm(self, candidate: MigrationCandidate, binding_count: int) -> bool:
        try:
            return click.confirm(
                f"Migrate {candidate.label} and restage {binding_count} app(s)?",
                default=False,
            )
        except click.Abort:
            log_with_context(logging.INFO, "\nMigration cancelled by user.")
            self.cancel_event.set()
            return False

    def _outcome(
        self,
        candidate: MigrationCandidate,
        status: str,
        detail: str = "",
        progress: MigrationProgress | None = None,
        new_instance_guid: str | None = None,
    ) -> MigrationOutcome:
        return MigrationOutcome(
            org=candidate.org,
            space=candidate.space.name,
            service_instance_name=candidate.service.name,
            status=status,
            detail=detail,
            new_instance_guid=new_instance_guid,
            progress=progress.to_dict() if progress else {},
        )


@contextlib.contextmanager
def cancel_on_interrupt(cancel_event: threading.Event):
    """Turn the first Ctrl-C into a cancellation request honoured between steps.

    A second Ctrl-C raises KeyboardInterrupt as usual.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        log_with_context(
            logging.WARNING,
            "Cancellation requested, stopping after the current step "
            "(press Ctrl-C again to abort immediately)",
        )
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def log_startup_info(args: SimpleNamespace) -> None:
    """Log startup information.

    Args:
        args: Parsed CLI arguments containing migration parameters.
    """
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / args.config

    log_with_context(logging.INFO, "Starting migration with the following parameters:")
    log_with_context(logging.INFO, f"- API: {args.api}")
    log_with_context(logging.INFO, f"- User: {args.user}")
    log_with_context(logging.INFO, f"- Config: {config_path}")
    log_with_context(logging.INFO, f"- Orgs: {', '.join(args.orgs) or 'all'}")
    log_with_context(logging.INFO, f"- Spaces: {', '.join(args.spaces) or 'all'}")
    log_with_context(logging.INFO, f"- Instances: {', '.join(args.instances) or 'all'}")
    log_with_context(logging.INFO, f"- Dry run: {args.dry_run}")
    log_with_context(logging.INFO, f"- Skip TLS validation: {args.insecure}")
    log_with_context(logging.INFO, f"- Verbose logging: {args.verbose}")
    log_with_context(logging.INFO, f"- Debug API calls: {args.debug_api}")
