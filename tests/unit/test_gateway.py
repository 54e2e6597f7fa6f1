"""Unit tests for the platform gateway."""

from unittest.mock import MagicMock

import pytest
import requests

from scs_migrator.exceptions import APIError, AuthenticationError
from scs_migrator.services.gateway import PlatformGateway, command_line_url
from scs_migrator.types import ServicePlan, ServiceSummary

API = "https://api.sys.example.com"


def _response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = b"{}" if body is not None else b""
    response.json.return_value = body
    response.text = str(body)
    return response


@pytest.fixture()
def session():
    session = requests.Session()
    session.request = MagicMock()
    session.post = MagicMock()
    return session


@pytest.fixture()
def client(session):
    return PlatformGateway(API, "admin", "secret", session=session)


def _login(client, session):
    session.request.return_value = _response(
        200, {"token_endpoint": "https://uaa.sys.example.com"}
    )
    session.post.return_value = _response(
        200,
        {"access_token": "abc", "token_type": "bearer", "refresh_token": "refresh"},
    )
    client.login()
    session.request.reset_mock()
    session.post.reset_mock()


class TestCommandLineUrl:
    def test_dashboard_url_rewrite(self):
        url = "https://spring-cloud-broker.apps.pivotal.io/dashboard/p-config-server/GUID"
        assert (
            command_line_url(url)
            == "https://spring-cloud-broker.apps.pivotal.io/cli/instances/GUID/parameters"
        )

    def test_only_first_occurrence_is_replaced(self):
        url = "https://dashboard.example.com/dashboard/p-config-server/GUID"
        assert (
            command_line_url(url)
            == "https://cli.example.com/dashboard/instances/GUID/parameters"
        )


class TestLogin:
    def test_password_grant(self, client, session):
        _login_response = _response(200, {"token_endpoint": "https://uaa.sys.example.com"})
        session.request.return_value = _login_response
        session.post.return_value = _response(
            200, {"access_token": "abc", "token_type": "bearer"}
        )

        client.login()

        args, kwargs = session.post.call_args
        assert args[0] == "https://uaa.sys.example.com/oauth/token"
        assert kwargs["auth"] == ("cf", "")
        assert kwargs["data"] == {
            "grant_type": "password",
            "username": "admin",
            "password": "secret",
        }
        assert session.headers["Authorization"] == "bearer abc"

    def test_rejected_credentials(self, client, session):
        session.request.return_value = _response(
            200, {"token_endpoint": "https://uaa.sys.example.com"}
        )
        session.post.return_value = _response(401, {"error": "unauthorized"})

        with pytest.raises(AuthenticationError, match="rejected"):
            client.login()

    def test_unreachable_api(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("no route")

        with pytest.raises(AuthenticationError, match="could not reach API"):
            client.login()

    def test_missing_token_endpoint(self, client, session):
        session.request.return_value = _response(200, {})

        with pytest.raises(AuthenticationError, match="token endpoint"):
            client.login()

    def test_insecure_disables_verification(self, session):
        PlatformGateway(API, "admin", "secret", skip_ssl_validation=True, session=session)
        assert session.verify is False


class TestRequests:
    def test_pagination_follows_next_url(self, client, session):
        _login(client, session)
        session.request.side_effect = [
            _response(
                200,
                {
                    "next_url": "/v2/organizations?page=2",
                    "resources": [{"metadata": {"guid": "o1"}, "entity": {"name": "one"}}],
                },
            ),
            _response(
                200,
                {
                    "next_url": None,
                    "resources": [{"metadata": {"guid": "o2"}, "entity": {"name": "two"}}],
                },
            ),
        ]

        orgs = client.list_orgs()

        assert [(o.guid, o.name) for o in orgs] == [("o1", "one"), ("o2", "two")]
        urls = [c.args[1] for c in session.request.call_args_list]
        assert urls == [
            f"{API}/v2/organizations",
            f"{API}/v2/organizations?page=2",
        ]

    def test_non_ok_status_raises(self, client, session):
        _login(client, session)
        session.request.return_value = _response(
            404, {"error_code": "CF-NotFound", "description": "not found"}
        )

        with pytest.raises(APIError) as excinfo:
            client.get_service_instance("missing")

        assert excinfo.value.status_code == 404
        assert "CF-NotFound: not found" in str(excinfo.value)

    def test_transport_error_raises(self, client, session):
        _login(client, session)
        session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(APIError, match="slow"):
            client.restage_app("app-guid")

    def test_expired_token_is_refreshed_once(self, client, session):
        _login(client, session)
        session.request.side_effect = [
            _response(401, {"error": "invalid_token"}),
            _response(200, {"metadata": {"guid": "app-guid"}, "entity": {"name": "orders"}}),
        ]
        session.post.return_value = _response(
            200, {"access_token": "new", "token_type": "bearer"}
        )

        app = client.restage_app("app-guid")

        assert app.name == "orders"
        assert session.request.call_count == 2
        assert session.post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
        assert session.headers["Authorization"] == "bearer new"

    def test_space_summary(self, client, session):
        _login(client, session)
        session.request.return_value = _response(
            200,
            {
                "services": [
                    {
                        "guid": "si",
                        "name": "config",
                        "bound_app_count": 2,
                        "dashboard_url": "https://broker/dashboard/p-config-server/si",
                        "service_plan": {
                            "guid": "plan",
                            "name": "standard",
                            "service": {"label": "p-config-server"},
                        },
                    }
                ]
            },
        )

        summaries = client.get_space_summary("space-guid")

        assert len(summaries) == 1
        assert summaries[0].label == "p-config-server"
        assert summaries[0].bound_app_count == 2
        assert session.request.call_args.args[1] == f"{API}/v2/spaces/space-guid/summary"

    def test_rename_sends_new_name(self, client, session):
        _login(client, session)
        session.request.return_value = _response(
            201, {"metadata": {"guid": "si"}, "entity": {"name": "config-old"}}
        )

        instance = client.rename_service_instance("si", "config-old")

        args, kwargs = session.request.call_args
        assert args[0] == "PUT"
        assert kwargs["json"] == {"name": "config-old"}
        assert kwargs["params"] == {"accepts_incomplete": "true"}
        assert instance.name == "config-old"

    def test_delete_service_instance_params(self, client, session):
        _login(client, session)
        session.request.return_value = _response(202, None)

        client.delete_service_instance("si")

        assert session.request.call_args.kwargs["params"] == {
            "recursive": "false",
            "async": "true",
            "accepts_incomplete": "true",
        }


class TestConfigServerParameters:
    def _summary(self, dashboard_url="https://broker/dashboard/p-config-server/si"):
        return ServiceSummary(
            guid="si",
            name="config",
            dashboard_url=dashboard_url,
            service_plan=ServicePlan(label="p-config-server"),
        )

    def test_fetches_from_cli_url(self, client, session):
        _login(client, session)
        session.request.return_value = _response(200, {"count": 1})

        assert client.get_config_server_parameters(self._summary()) == {"count": 1}
        assert (
            session.request.call_args.args[1]
            == "https://broker/cli/instances/si/parameters"
        )

    def test_non_object_payload(self, client, session):
        _login(client, session)
        session.request.return_value = _response(200, ["not", "an", "object"])

        with pytest.raises(APIError, match="unexpected parameters payload"):
            client.get_config_server_parameters(self._summary())

    def test_missing_dashboard_url(self, client):
        with pytest.raises(APIError, match="no dashboard URL"):
            client.get_config_server_parameters(self._summary(dashboard_url=""))


class TestUnexpectedBodies:
    def test_empty_instance_body_raises_api_error(self, client, session):
        _login(client, session)
        session.request.return_value = _response(200, None)

        with pytest.raises(APIError, match="an empty body instead of a JSON object"):
            client.get_service_instance("si")

    def test_create_without_object_body(self, client, session):
        _login(client, session)
        session.request.return_value = _response(201, ["unexpected"])

        with pytest.raises(APIError, match="list instead of a JSON object"):
            client.create_service_instance("config", "plan", "space")

    def test_space_summary_not_an_object(self, client, session):
        _login(client, session)
        session.request.return_value = _response(200, "maintenance")

        with pytest.raises(APIError):
            client.get_space_summary("space-guid")

    def test_page_skips_malformed_resources(self, client, session):
        _login(client, session)
        session.request.return_value = _response(
            200,
            {"resources": [None, "x", {"metadata": {"guid": "o1"}, "entity": {"name": "one"}}]},
        )

        assert [o.guid for o in client.list_orgs()] == ["o1"]

    def test_rename_tolerates_empty_body(self, client, session):
        _login(client, session)
        session.request.return_value = _response(202, None)

        instance = client.rename_service_instance("si", "config-old")

        assert instance.guid == ""
