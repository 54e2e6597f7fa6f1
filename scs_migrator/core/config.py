"""
Configuration module for the Spring Cloud Services migration tool.

This module provides functions for loading configuration settings from YAML
files, creating a default configuration, and deciding which orgs are in
scope for a scan or a migration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from scs_migrator.constants import DEFAULT_REQUEST_TIMEOUT
from scs_migrator.exceptions import ConfigError
from scs_migrator.utils.logging import log_with_context


@dataclass
class MigratorConfig:
    """Typed configuration for the migration tool.

    All fields have defaults so the tool runs without a config file.
    """

    # Org filtering
    include_orgs: list[str] = field(default_factory=list)
    exclude_orgs: list[str] = field(default_factory=list)

    # Migrating an instance that uses git.repos drops those repositories
    allow_git_repos_removal: bool = False

    # HTTP
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigratorConfig:
        """Create a MigratorConfig from a raw config dictionary."""
        config = cls(
            include_orgs=data.get("include_orgs") or [],
            exclude_orgs=data.get("exclude_orgs") or [],
            allow_git_repos_removal=data.get("allow_git_repos_removal", False),
            request_timeout=data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ConfigError when a value has the wrong type or range."""
        for name in ("include_orgs", "exclude_orgs"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(
                isinstance(item, str) for item in value
            ):
                raise ConfigError(f"{name} must be a list of org names, got {value!r}")
        if not isinstance(self.allow_git_repos_removal, bool):
            raise ConfigError(
                f"allow_git_repos_removal must be true or false, got {self.allow_git_repos_removal!r}"
            )
        if (
            isinstance(self.request_timeout, bool)
            or not isinstance(self.request_timeout, int)
            or self.request_timeout <= 0
        ):
            raise ConfigError(
                f"request_timeout must be a positive number of seconds, got {self.request_timeout!r}"
            )


def load_config(config_path: Path) -> MigratorConfig:
    """
    Load configuration from YAML file and apply default values.

    If the file doesn't exist or can't be parsed, a warning is logged and
    default settings are used. Values of the wrong type are rejected.

    Args:
        config_path: Path to the config YAML file

    Returns:
        MigratorConfig with all necessary defaults applied

    Raises:
        ConfigError: If the file holds something other than a mapping, or a
            setting has an invalid value
    """
    raw: Any = {}

    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
                # Handle None result from empty file
                if loaded_config is not None:
                    raw = loaded_config
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        except (yaml.YAMLError, OSError) as e:
            log_with_context(
                logging.WARNING, f"Failed to load config file {config_path}: {e}"
            )
    else:
        log_with_context(
            logging.DEBUG,
            f"Config file {config_path} not found, using default settings",
        )

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a YAML mapping")

    return MigratorConfig.from_dict(raw)


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    Will not overwrite an existing file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        "include_orgs": [],
        "exclude_orgs": ["system"],
        "allow_git_repos_removal": False,
        "request_timeout": DEFAULT_REQUEST_TIMEOUT,
    }

    try:
        with open(output_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(default_config, f, default_flow_style=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False


def should_process_org(org_name: str, config: MigratorConfig) -> bool:
    """
    Determine if an org is in scope based on configuration filters.

    1. If include_orgs is non-empty, only those orgs are processed
    2. Otherwise every org is processed except those in exclude_orgs

    Args:
        org_name: The organization name
        config: The MigratorConfig instance

    Returns:
        True if the org should be processed, False if it should be skipped
    """
    if config.include_orgs:
        return org_name in set(config.include_orgs)
    return org_name not in set(config.exclude_orgs)
