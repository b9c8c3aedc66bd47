"""Module resolver config schema (storage + import policy)."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModulesConfig(BaseModel):
    storage_backend: str = Field("file", pattern="^(memory|file)$")
    storage_path: str | None = "data/module_state.json"
    storage_key: str = "bt_module_config"
    # Re-close dependencies after import (False trusts the payload as-is)
    import_closes_dependencies: bool = True

    model_config = ConfigDict(extra="forbid")
