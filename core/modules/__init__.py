"""Feature module package.

 - catalog: static ModuleDescriptor/Preset definitions + validation
 - resolver: ModuleResolver (enabled set, cascades, presets, import/export)
 - store: key-value persistence backends
 - transfer: export document + lenient import parsing
"""
from __future__ import annotations

from .catalog import (  # noqa: F401
    ALL_MODULES,
    MODULE_PRESETS,
    CatalogError,
    ModuleCategory,
    ModuleDescriptor,
    ModuleId,
    Preset,
)
from .resolver import (  # noqa: F401
    ModuleResolver,
    clear_module_resolver_cache,
    get_module_resolver,
)
from .results import BlockReason, OperationResult  # noqa: F401
from .store import JsonFileStore, MemoryStore  # noqa: F401

__all__ = [
    "ALL_MODULES",
    "MODULE_PRESETS",
    "CatalogError",
    "ModuleCategory",
    "ModuleDescriptor",
    "ModuleId",
    "Preset",
    "ModuleResolver",
    "get_module_resolver",
    "clear_module_resolver_cache",
    "BlockReason",
    "OperationResult",
    "JsonFileStore",
    "MemoryStore",
]
