"""Import/export document format.

Export: ``{"modules": [...], "timestamp": "<ISO-8601>"}``.
Import accepts that document, any mapping carrying ``modules``, a bare JSON
array of ids, or the same shapes already decoded.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict


class InvalidFormatError(ValueError):
    pass


class ExportedConfig(BaseModel):
    modules: List[str]
    timestamp: datetime

    model_config = ConfigDict(frozen=True)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(indent=indent)


def export_filename(now: datetime) -> str:
    return f"module-config-{now.date().isoformat()}.json"


def parse_import_payload(payload: Any) -> List[str]:
    """Return the id list carried by ``payload`` or raise InvalidFormatError."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidFormatError(f"payload is not UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidFormatError(f"payload is not JSON: {e.msg}") from e
    if isinstance(payload, dict):
        if "modules" not in payload:
            raise InvalidFormatError("document has no 'modules' field")
        payload = payload["modules"]
    return check_id_list(payload)


def check_id_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        raise InvalidFormatError(
            f"expected a list of module ids, got {type(value).__name__}"
        )
    bad = [v for v in value if not isinstance(v, str)]
    if bad:
        raise InvalidFormatError(f"non-string module ids: {bad[:3]}")
    return list(value)


__all__ = [
    "ExportedConfig",
    "InvalidFormatError",
    "export_filename",
    "parse_import_payload",
    "check_id_list",
]
