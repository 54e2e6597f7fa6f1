"""
Cloud Foundry platform gateway.

Thin client for the Cloud Controller v2 API and the Spring Cloud Services
broker, authenticated with a UAA password grant. Every call is a single
request (or a sequence of page requests); the gateway never retries a
mutating call on its own.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin

import requests

from scs_migrator.constants import (
    CONFIG_SERVER_V2_LABEL,
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_UNAUTHORIZED,
    UAA_CLIENT_ID,
    UAA_CLIENT_SECRET,
)
from scs_migrator.exceptions import APIError, AuthenticationError
from scs_migrator.types import (
    App,
    Binding,
    ConfigPayload,
    Org,
    ServiceInstance,
    ServiceSummary,
    Space,
)
from scs_migrator.utils.logging import log_api_request, log_api_response, log_with_context


def command_line_url(dashboard_url: str) -> str:
    """Convert a config server dashboard URL into one accessible with a UAA token.

    ``https://host/dashboard/p-config-server/GUID`` becomes
    ``https://host/cli/instances/GUID/parameters``.
    """
    url = dashboard_url.replace("dashboard", "cli", 1)
    url = url.replace(CONFIG_SERVER_V2_LABEL, "instances", 1)
    return url + "/parameters"


class PlatformGateway:
    """Authenticated access to the platform API for one user."""

    def __init__(
        self,
        api: str,
        username: str,
        password: str,
        skip_ssl_validation: bool = False,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.api = api.rstrip("/")
        self.username = username
        self._password = password
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.verify = not skip_ssl_validation
        self.session.headers["Accept"] = "application/json"
        self._token_endpoint: str | None = None
        self._refresh_token: str | None = None

        if skip_ssl_validation:
            log_with_context(
                logging.WARNING,
                "TLS certificate validation is disabled for platform API calls",
            )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self) -> None:
        """Discover the UAA endpoint and obtain an access token.

        Raises:
            AuthenticationError: If the API can't be reached or rejects the credentials
        """
        try:
            info = self._request_object("GET", "/v2/info", authenticated=False)
        except APIError as e:
            raise AuthenticationError(f"could not reach API {self.api}: {e}") from e

        self._token_endpoint = info.get("token_endpoint") or info.get(
            "authorization_endpoint"
        )
        if not self._token_endpoint:
            raise AuthenticationError(f"API {self.api} did not advertise a token endpoint")

        self._fetch_token(
            {
                "grant_type": "password",
                "username": self.username,
                "password": self._password,
            }
        )
        log_with_context(logging.DEBUG, f"Authenticated to {self.api} as {self.username}")

    def _fetch_token(self, form: dict[str, str]) -> None:
        token_url = f"{self._token_endpoint.rstrip('/')}/oauth/token"
        log_api_request("POST", token_url, form)
        try:
            response = self.session.post(
                token_url,
                data=form,
                auth=(UAA_CLIENT_ID, UAA_CLIENT_SECRET),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"token request to {token_url} failed: {e}") from e

        log_api_response(response.status_code, token_url)
        if not response.ok:
            raise AuthenticationError(
                f"token request to {token_url} was rejected: {response.status_code} {response.text}"
            )

        try:
            token = response.json()
        except ValueError as e:
            raise AuthenticationError(f"token response from {token_url} is not JSON") from e

        access_token = token.get("access_token")
        if not access_token:
            raise AuthenticationError(f"token response from {token_url} has no access token")
        self._refresh_token = token.get("refresh_token")
        self.session.headers["Authorization"] = (
            f"{token.get('token_type', 'bearer')} {access_token}"
        )

    def _refresh(self) -> bool:
        if not (self._token_endpoint and self._refresh_token):
            return False
        try:
            self._fetch_token(
                {"grant_type": "refresh_token", "refresh_token": self._refresh_token}
            )
        except AuthenticationError as e:
            log_with_context(logging.WARNING, f"Token refresh failed: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return urljoin(self.api + "/", path.lstrip("/"))

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        url = self._url(path)
        log_api_request(method, url, json_body)

        response = self._send(method, url, params, json_body)
        if response.status_code == HTTP_UNAUTHORIZED and authenticated and self._refresh():
            # an expired token means the request was never applied
            response = self._send(method, url, params, json_body)

        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text

        log_api_response(response.status_code, url, body)

        if not response.ok:
            raise APIError(
                f"{method} {url} failed with {response.status_code}: {_error_detail(body)}",
                status_code=response.status_code,
            )
        return body

    def _request_object(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Like ``_request``, for endpoints that must answer with a JSON object.

        Raises:
            APIError: If the call fails or the body is empty or not an object
        """
        body = self._request(method, path, **kwargs)
        if not isinstance(body, dict):
            raise APIError(
                f"{method} {self._url(path)} returned "
                f"{type(body).__name__ if body else 'an empty body'} instead of a JSON object"
            )
        return body

    def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
    ) -> requests.Response:
        try:
            return self.session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise APIError(f"{method} {url} failed: {e}") from e

    def _list_resources(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Follow ``next_url`` links and collect every resource of a v2 list endpoint."""
        resources: list[dict[str, Any]] = []
        next_path: str | None = path
        while next_path:
            page = self._request_object("GET", next_path, params=params)
            resources.extend(
                r for r in page.get("resources") or [] if isinstance(r, dict)
            )
            next_path = page.get("next_url")
            # next_url already carries the query string
            params = None
        return resources

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list_orgs(self) -> list[Org]:
        return [Org.from_resource(r) for r in self._list_resources("/v2/organizations")]

    def list_apps(self) -> list[App]:
        return [App.from_resource(r) for r in self._list_resources("/v2/apps")]

    def list_spaces(self) -> list[Space]:
        return [Space.from_resource(r) for r in self._list_resources("/v2/spaces")]

    def get_space_summary(self, space_guid: str) -> list[ServiceSummary]:
        """Service instances of a space, with their plans and bound app counts."""
        summary = self._request_object("GET", f"/v2/spaces/{space_guid}/summary")
        return [
            ServiceSummary.from_dict(s)
            for s in summary.get("services") or []
            if isinstance(s, dict)
        ]

    def list_service_bindings(self, service_instance_guid: str) -> list[Binding]:
        resources = self._list_resources(
            "/v2/service_bindings",
            params={"q": f"service_instance_guid:{service_instance_guid}"},
        )
        return [Binding.from_resource(r) for r in resources]

    def get_config_server_parameters(self, summary: ServiceSummary) -> ConfigPayload:
        """Fetch the raw configuration of a 2.x config server through the broker.

        Raises:
            APIError: If the broker call fails or doesn't return a JSON object
        """
        if not summary.dashboard_url:
            raise APIError(f"service instance {summary.guid} has no dashboard URL")
        params = self._request("GET", command_line_url(summary.dashboard_url))
        if not isinstance(params, dict):
            raise APIError(
                f"unexpected parameters payload for service instance {summary.guid}"
            )
        return params

    # ------------------------------------------------------------------
    # Service instances
    # ------------------------------------------------------------------

    def get_service_instance(self, guid: str) -> ServiceInstance:
        return ServiceInstance.from_resource(
            self._request_object("GET", f"/v2/service_instances/{guid}")
        )

    def rename_service_instance(self, guid: str, name: str) -> ServiceInstance:
        """Start an (asynchronous) rename; poll ``last_operation`` for completion."""
        resource = self._request(
            "PUT",
            f"/v2/service_instances/{guid}",
            params={"accepts_incomplete": "true"},
            json_body={"name": name},
        )
        return ServiceInstance.from_resource(resource or {})

    def create_service_instance(
        self,
        name: str,
        service_plan_guid: str,
        space_guid: str,
        parameters: ConfigPayload | None = None,
    ) -> ServiceInstance:
        body: dict[str, Any] = {
            "name": name,
            "service_plan_guid": service_plan_guid,
            "space_guid": space_guid,
        }
        if parameters is not None:
            body["parameters"] = parameters
        resource = self._request_object(
            "POST",
            "/v2/service_instances",
            params={"accepts_incomplete": "true"},
            json_body=body,
        )
        return ServiceInstance.from_resource(resource)

    def delete_service_instance(
        self, guid: str, recursive: bool = False, async_: bool = True
    ) -> None:
        self._request(
            "DELETE",
            f"/v2/service_instances/{guid}",
            params={
                "recursive": str(recursive).lower(),
                "async": str(async_).lower(),
                "accepts_incomplete": "true",
            },
        )

    # ------------------------------------------------------------------
    # Bindings and apps
    # ------------------------------------------------------------------

    def create_service_binding(self, app_guid: str, service_instance_guid: str) -> Binding:
        resource = self._request_object(
            "POST",
            "/v2/service_bindings",
            json_body={
                "app_guid": app_guid,
                "service_instance_guid": service_instance_guid,
            },
        )
        return Binding.from_resource(resource)

    def delete_service_binding(self, guid: str) -> None:
        self._request("DELETE", f"/v2/service_bindings/{guid}")

    def restage_app(self, app_guid: str) -> App:
        """Trigger a restage; returns as soon as the platform accepts it."""
        return App.from_resource(self._request("POST", f"/v2/apps/{app_guid}/restage") or {})


def _error_detail(body: Any) -> str:
    if isinstance(body, dict):
        description = body.get("description") or body.get("error_description")
        code = body.get("error_code") or body.get("error")
        if description or code:
            return f"{code}: {description}" if code else str(description)
    return str(body) if body else "no response body"
