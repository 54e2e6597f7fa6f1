"""Shared CLI infrastructure: option decorators, connection setup, error handlers, and the CLI group."""

from __future__ import annotations

import datetime
import logging
import os
from typing import Callable, ClassVar

import click

import scs_migrator
from scs_migrator.constants import (
    HTTP_FORBIDDEN,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    HTTP_UNAUTHORIZED,
)
from scs_migrator.exceptions import (
    APIError,
    AuthenticationError,
    MigrationStepError,
    MigratorError,
)
from scs_migrator.services.gateway import PlatformGateway
from scs_migrator.utils.logging import log_with_context

# Create logger instance
logger = logging.getLogger("scs_migrator")


# ---------------------------------------------------------------------------
# Custom click.Group that defaults to ``scan``.
# When the first CLI token starts with ``-`` (i.e. a flag, not a subcommand)
# the group prepends ``scan`` so that
#   ``scs-migrator --api ... --user ...``
# runs an audit without naming the subcommand.
# ---------------------------------------------------------------------------


class DefaultGroup(click.Group):
    """Click group that defaults to the ``scan`` subcommand."""

    # Flags that belong to the group itself and should NOT trigger the
    # ``scan`` default.
    _GROUP_FLAGS: ClassVar[set[str]] = {"--help", "--version", "-h"}

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        """Prepend ``scan`` when the first token is a flag.

        A bare ``version`` among those flags runs ``version`` instead.

        Args:
            ctx: The current Click context.
            args: Raw CLI argument list.

        Returns:
            The (possibly modified) argument list for further parsing.
        """
        if args and args[0].startswith("-") and args[0] not in self._GROUP_FLAGS:
            if self._has_version_argument(args):
                args = ["version"]
            else:
                args = ["scan", *args]
        return super().parse_args(ctx, args)

    def _has_version_argument(self, args: list[str]) -> bool:
        """True when ``version`` appears as a bare argument after the flags.

        ``scs-migrator --api X --user Y version`` prints the version, while
        ``--user version`` is still a user named "version".
        """
        scan = self.commands.get("scan")
        if scan is None:
            return False
        value_options = {
            opt
            for param in scan.params
            if isinstance(param, click.Option) and not param.is_flag
            for opt in param.opts
        }
        expecting_value = False
        for arg in args:
            if expecting_value:
                expecting_value = False
            elif arg == "version":
                return True
            elif arg in value_options:
                expecting_value = True
        return False


# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds the connection and logging options every
    platform-facing subcommand needs.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--api",
        required=True,
        help="API endpoint, e.g. https://api.sys.example.com",
    )(f)
    f = click.option(
        "--user",
        required=True,
        help="Cloud Foundry API user",
    )(f)
    f = click.option(
        "--password",
        required=True,
        envvar="PASSWORD",
        show_envvar=True,
        help="Cloud Foundry API password",
    )(f)
    f = click.option(
        "--insecure",
        is_flag=True,
        default=False,
        help="Do not validate TLS certificates",
    )(f)
    f = click.option(
        "--config",
        default="config.yaml",
        show_default=True,
        help="Path to config YAML",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--debug_api",
        is_flag=True,
        default=False,
        help="Enable detailed API request/response logging",
    )(f)
    return f


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    cls=DefaultGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=scs_migrator.__version__, prog_name="scs-migrator")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Audit Spring Cloud Services 2.x usage and migrate config servers to 3.x.

    Args:
        ctx: The Click context (injected by ``@click.pass_context``).
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Setup helpers
# ---------------------------------------------------------------------------


def connect(
    api: str, user: str, password: str, insecure: bool, timeout: int
) -> PlatformGateway:
    """Create and authenticate the platform gateway.

    Raises:
        AuthenticationError: If the client can't log in
    """
    gateway = PlatformGateway(
        api, user, password, skip_ssl_validation=insecure, timeout=timeout
    )
    gateway.login()
    return gateway


def create_run_output_directory(kind: str) -> str:
    """Create a timestamped output directory for this run.

    Args:
        kind: Prefix of the directory name, e.g. ``scan`` or ``migrate``

    Returns:
        The path to the newly created output directory.
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join("migration_logs", f"{kind}_{timestamp}")
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_api_error(e: APIError) -> None:
    """Handle platform API errors with specific messages.

    Args:
        e: The API error to handle.
    """
    status = e.status_code or 0
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        log_with_context(logging.ERROR, f"Permission denied error: {e}")
        log_with_context(
            logging.INFO,
            "The user needs space developer (or admin) access to every space being scanned or migrated.",
        )
    elif status == HTTP_RATE_LIMIT:
        log_with_context(logging.ERROR, f"Rate limit exceeded: {e}")
        log_with_context(
            logging.INFO, "The platform API is throttling requests. Wait and run again."
        )
    elif status >= HTTP_SERVER_ERROR_MIN:
        log_with_context(logging.ERROR, f"Server error from the platform API: {e}")
        log_with_context(
            logging.INFO, "This is likely a temporary issue. Please try again later."
        )
    else:
        log_with_context(logging.ERROR, f"API error: {e}")


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, AuthenticationError):
        log_with_context(logging.ERROR, f"Could not create API client: {e}")
        log_with_context(
            logging.INFO, "Check the --api endpoint, the user and the password."
        )
    elif isinstance(e, MigrationStepError):
        log_with_context(logging.ERROR, str(e))
        if e.progress is not None:
            log_with_context(
                logging.INFO,
                f"Completed steps: {', '.join(e.progress.completed_steps) or 'none'}; "
                f"bindings still on the old instance: {', '.join(e.progress.pending_bindings) or 'none'}",
            )
    elif isinstance(e, APIError):
        handle_api_error(e)
    elif isinstance(e, MigratorError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, KeyboardInterrupt):
        log_with_context(logging.WARNING, "Interrupted by user.")
    else:
        log_with_context(logging.ERROR, f"Unexpected failure: {e}", exc_info=True)
