"""Service integrations for the Cloud Foundry platform API."""

__all__ = [
    "gateway",
]
