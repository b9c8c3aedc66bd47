"""Minimal in-memory metrics collector.

Purpose:
    - Counters and simple latency samples for module configuration activity.
    - Zero external deps; can be swapped by a Prometheus exporter later.

Core API (intentionally tiny):
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Thread-safety: coarse RLock; overhead negligible for low event volume.

Module related metric names (documented for discoverability):
    - module_enabled_total{module}
    - module_disabled_total{module}
    - module_preset_applied_total{preset}
    - module_config_imported_total
    - module_operation_rejected_total{error_type}
    - module_state_load_failed_total{error_type}
    - module_state_persist_failed_total{error_type}
    - env_override_total{path}
    - api_request_total{route,method}
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Dict, Tuple, Any

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _render(name: str, labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _HIST.setdefault(key, []).append(value)


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters = {
            _render(name, labels): v
            for (name, labels), v in _COUNTERS.items()
        }
        hist = {}
        for (name, labels), vals in _HIST.items():
            if not vals:
                continue
            ordered = sorted(vals)
            hist[_render(name, labels)] = {
                "count": len(vals),
                "min": ordered[0],
                "max": ordered[-1],
                "p50": ordered[len(ordered) // 2],
                "last": vals[-1],
            }
        return {"ts": time(), "counters": counters, "histograms": hist}


def counter_value(name: str, labels: dict[str, Any] | None = None) -> float:
    """Read one counter (0.0 when never incremented)."""
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "snapshot",
    "counter_value",
    "reset_for_tests",
]


# ------------------- Helper wrappers -------------------

def inc_operation_rejected(error_type: str) -> None:
    """Count a resolver operation that returned a domain failure."""
    if error_type:
        inc("module_operation_rejected_total", {"error_type": error_type})


def inc_persistence_fault(direction: str, error_type: str) -> None:
    """Count a store fault.

    direction: ``load`` or ``persist``.
    """
    inc(
        f"module_state_{direction}_failed_total",
        {"error_type": error_type},
    )


__all__ += ["inc_operation_rejected", "inc_persistence_fault"]
