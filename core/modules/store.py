"""Key-value stores for the enabled module set.

The resolver only needs ``get``/``set`` of string values under one key.
Two backends: in-process dict (tests, ephemeral deployments) and a single
JSON file mapping keys to values.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import RLock
from typing import Dict, Protocol


class KeyValueStore(Protocol):  # pragma: no cover
    def get(self, key: str) -> str | None:  # noqa: D401
        ...

    def set(self, key: str, value: str) -> None:  # noqa: D401
        ...


class MemoryStore:
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """All keys in one JSON object file.

    Missing file reads as empty. A corrupt file raises ValueError on read so
    the caller can fall back. Writes go to a temp file in the same directory
    and are moved into place with os.replace.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path.name}: expected JSON object")
        return data

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except ValueError:
                data = {}  # corrupt file gets rewritten
            data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self._path.parent, prefix=self._path.name, suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp, self._path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise


def build_store(modules_cfg) -> KeyValueStore:
    """Create the backend named by ``modules.storage_backend``."""
    if modules_cfg.storage_backend == "memory":
        return MemoryStore()
    return JsonFileStore(modules_cfg.storage_path)


def encode_ids(ids) -> str:
    return json.dumps(list(ids), ensure_ascii=False)


def decode_ids(raw: str) -> list[str]:
    data = json.loads(raw)
    if not isinstance(data, list) or not all(
        isinstance(i, str) for i in data
    ):
        raise ValueError("persisted module state must be a list of ids")
    return data


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "build_store",
    "encode_ids",
    "decode_ids",
]
