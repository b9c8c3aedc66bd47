"""Resolver result types.

Domain failures are values, not exceptions: every mutating operation returns
an ``OperationResult`` and the caller decides how to surface it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.errors import validate_error_type

from .catalog import ModuleDescriptor, ModuleCategory


class BlockReason(str, Enum):
    UNKNOWN_MODULE = "unknown-module"
    CORE = "core-module-protected"
    DEPENDENTS = "dependents-exist"
    MISSING_DEPENDENCIES = "missing-dependencies"


@dataclass(frozen=True)
class ModuleView:
    """Descriptor merged with its current enabled flag."""

    id: str
    name: str
    description: str
    category: ModuleCategory
    is_core: bool
    dependencies: tuple[str, ...]
    icon: str | None
    enabled: bool

    @staticmethod
    def of(desc: ModuleDescriptor, enabled: bool) -> "ModuleView":
        return ModuleView(
            id=desc.id,
            name=desc.name,
            description=desc.description,
            category=desc.category,
            is_core=desc.is_core,
            dependencies=desc.dependencies,
            icon=desc.icon,
            enabled=enabled,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "is_core": self.is_core,
            "dependencies": list(self.dependencies),
            "icon": self.icon,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class DisableCheck:
    allowed: bool
    blockers: List[ModuleDescriptor] = field(default_factory=list)
    reason: Optional[BlockReason] = None


@dataclass(frozen=True)
class EnableCheck:
    allowed: bool
    missing: List[ModuleDescriptor] = field(default_factory=list)
    reason: Optional[BlockReason] = None


@dataclass(frozen=True)
class ModuleStats:
    total: int
    enabled: int
    disabled: int
    core: int
    optional: int
    optional_enabled: int
    optional_disabled: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "enabled": self.enabled,
            "disabled": self.disabled,
            "core": self.core,
            "optional": self.optional,
            "optional_enabled": self.optional_enabled,
            "optional_disabled": self.optional_disabled,
        }


@dataclass(slots=True)
class OperationResult:
    """Outcome of a resolver operation.

    status: ok | error
    error_type: taxonomy code on failure (see core.errors)
    modules: blockers for missing-dependencies / dependents-exist
    changed: ids whose state flipped (catalog order)
    ignored: import ids dropped as unknown
    repaired: ids added to restore core retention / dependency closure
    """

    status: str
    message: str
    error_type: str | None = None
    modules: List[ModuleDescriptor] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    repaired: List[str] = field(default_factory=list)
    noop: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def module_ids(self) -> List[str]:
        return [m.id for m in self.modules]

    @staticmethod
    def success(
        message: str,
        changed: List[str] | None = None,
        *,
        ignored: List[str] | None = None,
        repaired: List[str] | None = None,
    ) -> "OperationResult":
        return OperationResult(
            status="ok",
            message=message,
            changed=list(changed or []),
            ignored=list(ignored or []),
            repaired=list(repaired or []),
        )

    @staticmethod
    def unchanged(message: str) -> "OperationResult":
        return OperationResult(status="ok", message=message, noop=True)

    @staticmethod
    def failure(
        err_type: str,
        message: str,
        modules: List[ModuleDescriptor] | None = None,
    ) -> "OperationResult":
        return OperationResult(
            status="error",
            message=message,
            error_type=validate_error_type(err_type),
            modules=list(modules or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status,
            "message": self.message,
            "error_type": self.error_type,
            "modules": [m.id for m in self.modules],
            "changed": list(self.changed),
            "ignored": list(self.ignored),
            "repaired": list(self.repaired),
            "noop": self.noop,
        }


__all__ = [
    "BlockReason",
    "ModuleView",
    "DisableCheck",
    "EnableCheck",
    "ModuleStats",
    "OperationResult",
]
