"""Shared utilities for logging and JSON payload access."""

__all__ = [
    "logging",
    "payload",
]
