"""Integration test configuration.

These tests talk to a real Cloud Foundry foundation and are skipped by
default. Set CF_API, CF_USER and CF_PASSWORD to enable them; set
CF_SKIP_SSL_VALIDATION to any value for foundations with self-signed
certificates.
"""

import os

import pytest

skip_no_foundation = pytest.mark.skipif(
    not all(os.environ.get(name) for name in ("CF_API", "CF_USER", "CF_PASSWORD")),
    reason="Integration tests require CF_API, CF_USER and CF_PASSWORD env vars",
)


@pytest.fixture()
def platform_gateway():
    from scs_migrator.services.gateway import PlatformGateway

    gateway = PlatformGateway(
        os.environ["CF_API"],
        os.environ["CF_USER"],
        os.environ["CF_PASSWORD"],
        skip_ssl_validation=bool(os.environ.get("CF_SKIP_SSL_VALIDATION")),
    )
    gateway.login()
    return gateway
