"""Shared builders and mocks for the unit tests."""

from unittest.mock import MagicMock

import pytest

from scs_migrator.constants import CONFIG_SERVER_V2_LABEL
from scs_migrator.services.gateway import PlatformGateway
from scs_migrator.types import ServicePlan, ServiceSummary, Space


def make_summary(
    name="config-server",
    guid="si-guid",
    label=CONFIG_SERVER_V2_LABEL,
    bound_app_count=0,
    plan_guid="plan-guid",
):
    """Build a ServiceSummary as found in a space summary."""
    return ServiceSummary(
        guid=guid,
        name=name,
        bound_app_count=bound_app_count,
        dashboard_url=f"https://broker.example.com/dashboard/{label}/{guid}",
        service_plan=ServicePlan(guid=plan_guid, name="standard", label=label),
    )


def make_space(name="dev", guid="space-guid", org_guid="org-guid"):
    return Space(guid=guid, name=name, organization_guid=org_guid)


@pytest.fixture()
def gateway():
    """A MagicMock constrained to the PlatformGateway interface."""
    return MagicMock(spec=PlatformGateway)
