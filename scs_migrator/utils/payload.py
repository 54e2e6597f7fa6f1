"""
Safe accessors for decoded JSON configuration payloads.

Config-server parameters are free-form JSON. Every accessor here narrows a
value to the expected JSON type and returns None for a missing key or a
value of the wrong type, so callers never raise on malformed input.
"""

from typing import Any, Dict, List, Optional


def as_object(value: Any) -> Optional[Dict[str, Any]]:
    """Return value if it is a JSON object, otherwise None."""
    return value if isinstance(value, dict) else None


def as_array(value: Any) -> Optional[List[Any]]:
    """Return value if it is a JSON array, otherwise None."""
    return value if isinstance(value, list) else None


def get_object(container: Any, key: str) -> Optional[Dict[str, Any]]:
    """Return container[key] if container is an object and the value is one too."""
    obj = as_object(container)
    if obj is None:
        return None
    return as_object(obj.get(key))


def get_array(container: Any, key: str) -> Optional[List[Any]]:
    """Return container[key] if container is an object and the value is an array."""
    obj = as_object(container)
    if obj is None:
        return None
    return as_array(obj.get(key))


def has_key(container: Any, key: str) -> bool:
    """True if container is an object with the key present (any value, even null)."""
    obj = as_object(container)
    return obj is not None and key in obj
