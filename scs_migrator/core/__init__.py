"""Core audit and migration logic: classification, rewriting, and orchestration."""

__all__ = [
    "classifier",
    "config",
    "context",
    "orchestrator",
    "scanner",
    "state",
    "transformer",
]
