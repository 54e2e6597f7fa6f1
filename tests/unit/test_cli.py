"""Tests for the click-based CLI."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

import scs_migrator
from scs_migrator.cli.commands import cli
from scs_migrator.cli.migrate_cmd import MigrationRunner
from scs_migrator.cli.report import MigrationOutcome
from scs_migrator.constants import SERVICE_REGISTRY_V2_LABEL
from scs_migrator.core.config import MigratorConfig
from scs_migrator.core.context import ScanContext
from scs_migrator.core.orchestrator import ServiceMigrator
from scs_migrator.core.state import MigrationState
from scs_migrator.exceptions import (
    APIError,
    AuthenticationError,
    MigrationCancelledError,
    MigrationStepError,
)
from scs_migrator.types import Binding, ServiceInstance
from tests.unit.conftest import make_space, make_summary

CREDENTIALS = ["--api", "https://api.example.com", "--user", "admin", "--password", "pw"]


class TestCLIGroup:
    """Tests for the CLI group structure."""

    def test_cli_has_all_subcommands(self):
        assert set(cli.commands.keys()) == {"scan", "migrate", "version", "init-config"}

    def test_version_flag(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "scs-migrator" in result.output

    def test_version_command(self):
        result = CliRunner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert result.output.strip() == (
            f"{scs_migrator.__version__}, commit none, built at unknown"
        )

    def test_help_output(self):
        result = CliRunner().invoke(cli, ["-h"])
        assert result.exit_code == 0
        assert "scan" in result.output
        assert "migrate" in result.output


@patch("scs_migrator.cli.scan_cmd.setup_logger")
class TestScanCommand:
    """Tests for the scan subcommand."""

    def test_missing_required_options(self, mock_log):
        result = CliRunner().invoke(cli, ["scan"], env={"PASSWORD": None})
        assert result.exit_code != 0
        assert "Missing option" in result.output or "Error" in result.output

    @patch("scs_migrator.cli.scan_cmd.build_context")
    @patch("scs_migrator.cli.scan_cmd.connect")
    def test_scan_prints_report(self, mock_connect, mock_context, mock_log):
        gateway = MagicMock()
        gateway.list_spaces.return_value = [make_space()]
        gateway.get_space_summary.return_value = [
            make_summary(name="eureka", label=SERVICE_REGISTRY_V2_LABEL)
        ]
        mock_connect.return_value = gateway
        mock_context.return_value = ScanContext(org_names_by_guid={"org-guid": "test-org"})

        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["scan", *CREDENTIALS, "--no_progress"])

        assert result.exit_code == 0, result.output
        assert "Service Registry instances to be migrated" in result.output
        assert "- test-org/dev/eureka (0 apps)" in result.output
        mock_connect.assert_called_once_with(
            "https://api.example.com", "admin", "pw", False, 30
        )

    @patch("scs_migrator.cli.scan_cmd.build_context")
    @patch("scs_migrator.cli.scan_cmd.connect")
    def test_defaults_to_scan(self, mock_connect, mock_context, mock_log):
        gateway = MagicMock()
        gateway.list_spaces.return_value = []
        mock_connect.return_value = gateway
        mock_context.return_value = ScanContext()

        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, [*CREDENTIALS, "--no_progress", "--insecure"])

        assert result.exit_code == 0, result.output
        assert "no Config Server instances to migrate" in result.output
        assert mock_connect.call_args.args[3] is True

    @patch("scs_migrator.cli.scan_cmd.connect")
    def test_version_after_flags(self, mock_connect, mock_log):
        result = CliRunner().invoke(cli, [*CREDENTIALS, "version"])

        assert result.exit_code == 0, result.output
        assert result.output.strip() == (
            f"{scs_migrator.__version__}, commit none, built at unknown"
        )
        mock_connect.assert_not_called()

    @patch("scs_migrator.cli.scan_cmd.build_context")
    @patch("scs_migrator.cli.scan_cmd.connect")
    def test_user_named_version_still_scans(self, mock_connect, mock_context, mock_log):
        gateway = MagicMock()
        gateway.list_spaces.return_value = []
        mock_connect.return_value = gateway
        mock_context.return_value = ScanContext()

        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(
                cli,
                ["--api", "https://api.example.com", "--user", "version", "--password", "pw"],
            )

        assert result.exit_code == 0, result.output
        assert mock_connect.call_args.args[1] == "version"

    @patch("scs_migrator.cli.scan_cmd.connect")
    def test_login_failure_exits(self, mock_connect, mock_log):
        mock_connect.side_effect = AuthenticationError("bad credentials")

        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["scan", *CREDENTIALS])

        assert result.exit_code == 1


class TestInitConfigCommand:
    @patch("scs_migrator.cli.commands.setup_logger")
    def test_writes_config_once(self, mock_log):
        runner = CliRunner()
        with runner.isolated_filesystem():
            first = runner.invoke(cli, ["init-config"])
            second = runner.invoke(cli, ["init-config"])
            with open("config.yaml", encoding="utf-8") as f:
                content = f.read()

        assert first.exit_code == 0
        assert second.exit_code == 1
        assert "exclude_orgs" in content


@patch("scs_migrator.cli.migrate_cmd.setup_logger")
class TestMigrateCommand:
    def test_help_shows_all_options(self, mock_log):
        result = CliRunner().invoke(cli, ["migrate", "--help"])
        assert result.exit_code == 0
        for opt in ["--org", "--space", "--instance", "--dry_run", "--yes", "--config"]:
            assert opt in result.output

    @pytest.mark.parametrize("status,exit_code", [("migrated", 0), ("failed", 1), ("cancelled", 1)])
    @patch("scs_migrator.cli.migrate_cmd.MigrationRunner")
    @patch("scs_migrator.cli.migrate_cmd.build_context")
    @patch("scs_migrator.cli.migrate_cmd.connect")
    def test_exit_code_follows_outcomes(
        self, mock_connect, mock_context, mock_runner_cls, mock_log, status, exit_code
    ):
        mock_connect.return_value = MagicMock()
        mock_context.return_value = ScanContext()
        mock_runner_cls.return_value.run.return_value = [
            MigrationOutcome("o", "s", "config", status)
        ]

        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(
                cli, ["migrate", *CREDENTIALS, "--org", "o", "--yes", "--dry_run"]
            )

        assert result.exit_code == exit_code, result.output
        args = mock_runner_cls.call_args.args[0]
        assert args.orgs == ("o",)
        assert args.yes is True
        assert args.dry_run is True


def _args(**overrides):
    values = {"orgs": (), "spaces": (), "instances": (), "dry_run": False, "yes": True}
    values.update(overrides)
    return SimpleNamespace(**values)


class TestMigrationRunner:
    @pytest.fixture()
    def migrator(self):
        return MagicMock(spec=ServiceMigrator)

    @pytest.fixture()
    def platform(self, gateway):
        gateway.get_space_summary.return_value = [make_summary(name="config")]
        gateway.get_config_server_parameters.return_value = {
            "composite": [{"git": {"uri": "https://example.com/repo"}}]
        }
        gateway.list_service_bindings.return_value = [
            Binding(guid="b1", app_guid="a1", service_instance_guid="si-guid")
        ]
        return gateway

    def _runner(self, gateway, migrator, config=None, **args):
        return MigrationRunner(
            _args(**args),
            gateway,
            ScanContext(org_names_by_guid={"org-guid": "test-org"}),
            config or MigratorConfig(),
            migrator=migrator,
        )

    def test_migrates_with_rewritten_parameters(self, platform, migrator):
        migrator.migrate.return_value = ServiceInstance(guid="new-guid", name="config")

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert [o.status for o in outcomes] == ["migrated"]
        assert outcomes[0].new_instance_guid == "new-guid"
        service, space_guid, params, bindings = migrator.migrate.call_args.args
        assert service.name == "config"
        assert space_guid == "space-guid"
        assert params == {"composite": [{"type": "git", "uri": "https://example.com/repo"}]}
        assert [b.guid for b in bindings] == ["b1"]

    def test_dry_run_does_not_migrate(self, platform, migrator, capsys):
        outcomes = self._runner(platform, migrator, dry_run=True).run([make_space()])

        assert [o.status for o in outcomes] == ["planned"]
        migrator.migrate.assert_not_called()
        assert '"type": "git"' in capsys.readouterr().out

    def test_git_repos_skipped_by_default(self, platform, migrator):
        platform.get_config_server_parameters.return_value = {"git": {"repos": {}}}

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert outcomes[0].status == "skipped"
        assert outcomes[0].detail == "uses git.repos"
        migrator.migrate.assert_not_called()

    def test_git_repos_removed_when_allowed(self, platform, migrator):
        platform.get_config_server_parameters.return_value = {
            "git": {"uri": "u", "repos": {"a": {}}}
        }
        migrator.migrate.return_value = ServiceInstance(guid="new-guid", name="config")

        outcomes = self._runner(
            platform, migrator, config=MigratorConfig(allow_git_repos_removal=True)
        ).run([make_space()])

        assert outcomes[0].status == "migrated"
        assert migrator.migrate.call_args.args[2] == {"git": {"uri": "u"}}

    def test_parameter_fetch_failure(self, platform, migrator):
        platform.get_config_server_parameters.side_effect = APIError("broker down", 502)

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert outcomes[0].status == "failed"
        migrator.migrate.assert_not_called()

    def test_step_failure_is_reported(self, platform, migrator):
        migrator.migrate.side_effect = MigrationStepError("bind", "config", "si-guid", "boom")

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert outcomes[0].status == "failed"
        assert outcomes[0].detail == "bind: boom"

    def test_cancellation_stops_remaining(self, platform, migrator):
        platform.get_space_summary.return_value = [
            make_summary(name="config-a", guid="a"),
            make_summary(name="config-b", guid="b"),
        ]
        runner = self._runner(platform, migrator)

        def cancel(*args, **kwargs):
            runner.cancel_event.set()
            raise MigrationCancelledError("create", "config-a", "a", "cancelled by user")

        migrator.migrate.side_effect = cancel

        outcomes = runner.run([make_space()])

        assert [o.status for o in outcomes] == ["cancelled", "cancelled"]
        assert outcomes[1].detail == "not started"
        assert migrator.migrate.call_count == 1

    def test_unexpected_migration_error_keeps_progress(self, platform, migrator):
        platform.get_space_summary.return_value = [
            make_summary(name="config-a", guid="a"),
            make_summary(name="config-b", guid="b"),
        ]

        def migrate(service, space_guid, params, bindings, progress=None):
            if service.name == "config-a":
                progress.advance(MigrationState.RENAMED, "rename")
                raise AttributeError("'NoneType' object has no attribute 'get'")
            return ServiceInstance(guid="new-b", name=service.name)

        migrator.migrate.side_effect = migrate

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert [o.status for o in outcomes] == ["failed", "migrated"]
        assert "unexpected error" in outcomes[0].detail
        assert outcomes[0].progress["completed_steps"] == ["rename"]
        assert outcomes[0].progress["state"] == "failed"
        assert outcomes[0].progress["error"] == "'NoneType' object has no attribute 'get'"

    def test_unexpected_error_before_migration_does_not_stop_run(self, platform, migrator):
        platform.get_space_summary.return_value = [
            make_summary(name="config-a", guid="a"),
            make_summary(name="config-b", guid="b"),
        ]
        platform.get_config_server_parameters.side_effect = [
            ValueError("bad payload"),
            {},
        ]
        migrator.migrate.return_value = ServiceInstance(guid="new-b", name="config-b")

        outcomes = self._runner(platform, migrator).run([make_space()])

        assert [o.status for o in outcomes] == ["failed", "migrated"]
        assert outcomes[0].detail == "unexpected error: bad payload"

    @patch("scs_migrator.cli.migrate_cmd.click.confirm", return_value=False)
    def test_declined_confirmation(self, mock_confirm, platform, migrator):
        outcomes = self._runner(platform, migrator, yes=False).run([make_space()])

        assert outcomes[0].status == "skipped"
        assert outcomes[0].detail == "declined"
        migrator.migrate.assert_not_called()
