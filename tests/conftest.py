"""Shared test fixtures for the scs_migrator test suite."""

import pytest


@pytest.fixture()
def sample_params():
    """Config-server parameters using every legacy feature."""
    return {
        "count": 3,
        "git": {
            "uri": "https://github.com/example/config",
            "label": "main",
            "repos": {"team-a": {"uri": "https://github.com/example/team-a"}},
        },
        "encrypt": {"key": "s3cr3t"},
        "composite": [
            {"git": {"uri": "https://github.com/example/one", "label": "main"}},
            {"vault": {"host": "vault.example.com", "port": 8200}},
            {"type": "git", "uri": "https://github.com/example/two"},
        ],
    }
