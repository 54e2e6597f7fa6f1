"""
Compatibility checks for config-server parameters.

Inspects the free-form JSON configuration of a Spring Cloud Services 2.x
config server and reports which features need attention before the instance
can be recreated on 3.x. Malformed shapes never raise; they simply do not
count as the feature being used.
"""

from __future__ import annotations

from typing import Any

from scs_migrator.constants import ERROR_ICON, WARNING_ICON
from scs_migrator.types import CompatibilityFlags
from scs_migrator.utils.payload import as_object, get_array, get_object

# Composite entries nest their backend settings under one of these keys in 2.x
LEGACY_COMPOSITE_BACKENDS = ("git", "vault")


def uses_old_git_repos(payload: Any) -> bool:
    """3.x does not support multiple repositories via ``{"git": {"repos": ...}}``."""
    git = get_object(payload, "git")
    return git is not None and "repos" in git


def uses_encrypt_key(payload: Any) -> bool:
    """``encrypt.key`` is missing from 3.0.x and only returns in 3.1.6."""
    encrypt = get_object(payload, "encrypt")
    return encrypt is not None and "key" in encrypt


def is_legacy_composite_entry(entry: Any) -> bool:
    """2.x entries nest ``{"git": {...}}``; 3.x entries use ``{"type": "git", ...}``."""
    return any(
        get_object(entry, backend) is not None for backend in LEGACY_COMPOSITE_BACKENDS
    )


def uses_old_composite(payload: Any) -> bool:
    composites = get_array(payload, "composite")
    if composites is None:
        return False
    # every entry is checked, a legacy one anywhere in the list counts
    return any([is_legacy_composite_entry(entry) for entry in composites])


def classify(payload: Any) -> CompatibilityFlags:
    """
    Decide which legacy config-server features a payload relies on.

    Args:
        payload: Decoded config-server parameters

    Returns:
        CompatibilityFlags with each check evaluated independently
    """
    if as_object(payload) is None:
        return CompatibilityFlags()

    return CompatibilityFlags(
        uses_old_git_repos=uses_old_git_repos(payload),
        uses_encrypt_key=uses_encrypt_key(payload),
        uses_old_composite=uses_old_composite(payload),
    )


def describe_flags(flags: CompatibilityFlags) -> list[tuple[str, str]]:
    """
    Turn flags into (severity, message) pairs for console and report output.

    Severity is ``"warning"`` for features that can be carried over and
    ``"error"`` for the ones that cannot.
    """
    messages = []
    if flags.uses_encrypt_key:
        messages.append(
            (
                "warning",
                f'{WARNING_ICON}  This service uses "encrypt.key", which is only '
                "available in SCS 3.1.6 and later.",
            )
        )
    if flags.uses_old_composite:
        messages.append(
            (
                "warning",
                f"{WARNING_ICON}  This service uses composite backend which require "
                "a new configuration format in SCS 3.x.",
            )
        )
    if flags.uses_old_git_repos:
        messages.append(
            (
                "error",
                f'{ERROR_ICON} This service uses "git.repos", which is not supported in SCS 3.x',
            )
        )
    return messages
