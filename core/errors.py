"""Central error taxonomy for module configuration.

Domain failures travel as codes inside ``OperationResult``; persistence and
config faults reuse the same vocabulary so logs and metrics stay uniform.
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # resolver operations
    "unknown-module",
    "core-module-protected",
    "missing-dependencies",
    "dependents-exist",
    "unknown-preset",
    "invalid-format",
    # persistence (advisory only)
    "persistence-read-failed",
    "persistence-write-failed",
    # config
    "config-out-of-range",
    "config-invalid",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: Exception, phase: str) -> str:
    """Taxonomy code for an exception raised during ``phase``.

    Phases: ``store.read``, ``store.write`` (state store) and ``config``
    (schema validation in the config loader).
    """
    if phase == "store.read":
        return "persistence-read-failed"
    if phase == "store.write":
        return "persistence-write-failed"
    return "config-invalid"


__all__ = ["validate_error_type", "map_exception"]
