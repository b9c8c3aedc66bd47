"""EventBus (sync in-process).

Features:
  - subscribe(event_name, handler) -> unsubscribe callable
  - emit(event_name, payload) adds ts if missing
  - handlers run synchronously in subscription order
  - handler isolation (exceptions logged + counted, not propagated)
  - metrics counters:
        events_emitted_total{event}, handler_exceptions_total{event},
        dispatch_latency_accum_ms{event}, dispatch_count{event}

The module resolver receives its own instance so tests can observe
notifications without touching the process-wide bus.
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Any, Callable, Dict, List

from core import metrics
from core.log import get_logger

Handler = Callable[[Dict[str, Any]], None]

logger = get_logger("eventbus")


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = {}
        self._lock = RLock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._subs.setdefault(event, []).append(handler)

        def _unsub() -> None:  # noqa: D401
            with self._lock:
                handlers = self._subs.get(event, [])
                # identity match: the same callable may be subscribed twice
                for i, h in enumerate(handlers):
                    if h is handler:
                        del handlers[i]
                        break

        return _unsub

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        t0 = time()
        if "ts" not in payload:
            payload["ts"] = t0
        with self._lock:
            subs = list(self._subs.get(event, ()))
        metrics.inc("events_emitted_total", {"event": event})
        for h in subs:
            try:
                h(dict(payload))  # shallow copy per handler
            except Exception:  # noqa: BLE001
                metrics.inc("handler_exceptions_total", {"event": event})
                logger.exception("handler failed for event %s", event)
        latency_ms = int((time() - t0) * 1000)
        metrics.inc(
            "dispatch_latency_accum_ms", {"event": event}, latency_ms
        )
        metrics.inc("dispatch_count", {"event": event})

    def subscriber_count(self, event: str) -> int:
        with self._lock:
            return len(self._subs.get(event, ()))

    def reset_for_tests(self) -> None:  # pragma: no cover
        with self._lock:
            self._subs.clear()


_BUS = EventBus()


def subscribe(event: str, handler: Handler) -> Callable[[], None]:
    return _BUS.subscribe(event, handler)


def emit(event: str, payload: Dict[str, Any]) -> None:
    _BUS.emit(event, payload)


__all__ = ["emit", "subscribe", "EventBus", "Handler"]
