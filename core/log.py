"""Logging setup shared by core, API and scripts.

All project loggers live under the ``buildtrack`` namespace so a single
handler on the parent controls them. ``configure_logging`` applies the
``logging`` config section (level + text/json format); until it is called
the handler emits plain text at INFO.
"""
from __future__ import annotations

import json
import logging
from typing import Any

ROOT_LOGGER = "buildtrack"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record (ts, level, logger, msg + extras)."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "ts": round(record.created, 3),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra = getattr(record, "fields", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _text_formatter() -> logging.Formatter:
    return logging.Formatter("[%(name)s] %(levelname)s %(message)s")


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        h = logging.StreamHandler()
        h.setFormatter(_text_formatter())
        root.addHandler(h)
        root.setLevel(logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    _root()
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    root = _root()
    root.setLevel(_LEVELS.get(level, logging.INFO))
    formatter = JsonFormatter() if fmt == "json" else _text_formatter()
    for h in root.handlers:
        h.setFormatter(formatter)


__all__ = ["get_logger", "configure_logging", "JsonFormatter", "ROOT_LOGGER"]
