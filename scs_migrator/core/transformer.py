"""
Rewrite config-server parameters into the 3.x schema.

Only the patterns reported by :mod:`scs_migrator.core.classifier` as
incompatible are touched; every other key is carried over unchanged.
"""

from __future__ import annotations

from typing import Any

from scs_migrator.core.classifier import LEGACY_COMPOSITE_BACKENDS
from scs_migrator.utils.payload import as_object, get_array, get_object


def drop_git_repos(payload: Any) -> None:
    """Remove ``git.repos``, keeping the rest of the ``git`` block."""
    git = get_object(payload, "git")
    if git is not None:
        # TODO: offer a composite-based replacement for multi-repo setups
        git.pop("repos", None)


def flatten_composite_entry(entry: dict[str, Any]) -> None:
    """Convert ``{"git": {...}}`` into ``{"type": "git", ...}`` (and likewise for vault)."""
    # a flattened block can itself carry another legacy block, so repeat
    # until none is left
    flattened = True
    while flattened:
        flattened = False
        for backend in LEGACY_COMPOSITE_BACKENDS:
            if get_object(entry, backend) is None:
                continue
            nested = entry.pop(backend)
            entry.update(nested)
            entry["type"] = backend
            flattened = True


def flatten_composites(payload: Any) -> None:
    composites = get_array(payload, "composite")
    if composites is None:
        return
    for entry in composites:
        obj = as_object(entry)
        if obj is not None:
            flatten_composite_entry(obj)


def transform(payload: Any) -> Any:
    """
    Rewrite a config-server payload in place for 3.x compatibility.

    Running it again on its own output changes nothing.

    Args:
        payload: Decoded config-server parameters (mutated in place)

    Returns:
        The same payload object, for call chaining
    """
    if as_object(payload) is None:
        return payload

    drop_git_repos(payload)
    flatten_composites(payload)
    return payload
