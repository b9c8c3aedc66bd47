"""Module configuration event dataclasses + any-subscriber bridge.

Per-event subscriptions go through `core.eventbus`. This module exposes
`subscribe(handler)` where handler(name, payload) receives every event, and
a built-in collector that turns events into metrics.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, List, Protocol

from core import metrics as _metrics
from core.eventbus import emit as _emit_bus

EventHandler = Callable[[str, Dict[str, Any]], None]


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ModuleEnabled(BaseEvent):
    module_id: str
    auto_enabled: list[str]  # dependencies enabled by the same cascade


@dataclass(slots=True)
class ModuleDisabled(BaseEvent):
    module_id: str
    auto_disabled: list[str]  # dependents disabled by the same cascade


@dataclass(slots=True)
class ModulePresetApplied(BaseEvent):
    preset: str
    enabled_count: int


@dataclass(slots=True)
class ModuleConfigImported(BaseEvent):
    """Import committed.

    accepted: ids taken from the payload (catalog members only)
    ignored: ids dropped because the catalog does not know them
    repaired: ids added to restore core retention / dependency closure
    """
    accepted: list[str]
    ignored: list[str]
    repaired: list[str]


@dataclass(slots=True)
class ModuleStateLoadFailed(BaseEvent):
    key: str
    error_type: str
    message: str | None = None


@dataclass(slots=True)
class ModuleStatePersistFailed(BaseEvent):
    key: str
    error_type: str
    message: str | None = None


_ANY_SUBS: List[EventHandler] = []


def _metrics_collector(
    name: str, payload: Dict[str, Any]
) -> None:  # noqa: D401
    if name == "ModuleEnabled":
        for mid in [payload.get("module_id")] + payload.get(
            "auto_enabled", []
        ):
            _metrics.inc("module_enabled_total", {"module": mid})
    elif name == "ModuleDisabled":
        for mid in [payload.get("module_id")] + payload.get(
            "auto_disabled", []
        ):
            _metrics.inc("module_disabled_total", {"module": mid})
    elif name == "ModulePresetApplied":
        _metrics.inc(
            "module_preset_applied_total",
            {"preset": payload.get("preset", "unknown")},
        )
    elif name == "ModuleConfigImported":
        _metrics.inc("module_config_imported_total")
        ignored = len(payload.get("ignored") or [])
        if ignored:
            _metrics.inc("module_config_import_ignored_total", value=ignored)
    elif name == "ModuleStateLoadFailed":
        _metrics.inc_persistence_fault(
            "load", payload.get("error_type", "unknown")
        )
    elif name == "ModuleStatePersistFailed":
        _metrics.inc_persistence_fault(
            "persist", payload.get("error_type", "unknown")
        )


_ANY_SUBS.append(_metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    name = ev.__class__.__name__
    payload = ev.to_event()
    _emit_bus(name, payload)
    for h in list(_ANY_SUBS):  # copy for isolation
        try:
            h(name, dict(payload))
        except Exception:  # noqa: BLE001
            _metrics.inc("handler_exceptions_total", {"event": name})


def on(handler: EventHandler) -> None:
    _ANY_SUBS.append(handler)


def subscribe(handler: EventHandler):  # backward compatible helper
    on(handler)

    def _unsub() -> None:  # noqa: D401
        try:
            _ANY_SUBS.remove(handler)
        except ValueError:
            pass
    return _unsub


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _ANY_SUBS.clear()
    _ANY_SUBS.append(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "subscribe",
    "BaseEvent",
    "ModuleEnabled",
    "ModuleDisabled",
    "ModulePresetApplied",
    "ModuleConfigImported",
    "ModuleStateLoadFailed",
    "ModuleStatePersistFailed",
    "reset_listeners_for_tests",
]
