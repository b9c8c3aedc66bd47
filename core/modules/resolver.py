"""ModuleResolver: enabled-set owner for the feature module catalog.

Responsibilities:
 - Keep the enabled set closed under core retention (core ids always on)
   and dependency closure (every enabled module has its deps enabled).
 - Enable/disable with optional cascades (worklist traversal, no recursion).
 - Presets, reset, import/export, stats.
 - Persist after every committed change (best effort) and notify
   subscribers exactly once per operation.

Domain failures are returned as ``OperationResult``; nothing here raises for
bad user input. Persistence faults are logged + emitted as events and never
block the in-memory change or the notification.
"""
from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Iterable, List, Sequence
from zoneinfo import ZoneInfo

from core import metrics
from core.errors import map_exception
from core.eventbus import EventBus
from core.events import (
    ModuleConfigImported,
    ModuleDisabled,
    ModuleEnabled,
    ModulePresetApplied,
    ModuleStateLoadFailed,
    ModuleStatePersistFailed,
    emit,
)
from core.log import get_logger

from .catalog import (
    ALL_MODULES,
    MODULE_PRESETS,
    ModuleCategory,
    ModuleDescriptor,
    Preset,
    validate_catalog,
)
from .results import (
    BlockReason,
    DisableCheck,
    EnableCheck,
    ModuleStats,
    ModuleView,
    OperationResult,
)
from .store import (
    KeyValueStore,
    MemoryStore,
    build_store,
    decode_ids,
    encode_ids,
)
from .transfer import (
    ExportedConfig,
    InvalidFormatError,
    check_id_list,
    parse_import_payload,
)

DEFAULT_STORAGE_KEY = "bt_module_config"
CHANGED_EVENT = "modules.changed"

Subscriber = Callable[[frozenset], None]

logger = get_logger("modules.resolver")


class ModuleResolver:
    def __init__(
        self,
        store: KeyValueStore | None = None,
        bus: EventBus | None = None,
        catalog: Sequence[ModuleDescriptor] = ALL_MODULES,
        presets: Sequence[Preset] = MODULE_PRESETS,
        storage_key: str = DEFAULT_STORAGE_KEY,
        import_closes_dependencies: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        validate_catalog(catalog, presets)
        self._catalog = tuple(catalog)
        self._by_id = {m.id: m for m in self._catalog}
        self._order = {m.id: i for i, m in enumerate(self._catalog)}
        self._core_ids = frozenset(m.id for m in self._catalog if m.is_core)
        self._presets = tuple(presets)
        self._presets_by_key = {p.key.lower(): p for p in self._presets}
        self._store = store if store is not None else MemoryStore()
        self._bus = bus if bus is not None else EventBus()
        self._key = storage_key
        self._close_on_import = import_closes_dependencies
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = RLock()
        self._enabled: frozenset[str] = self._load()

    # --- Startup -------------------------------------------------------------
    def _default_ids(self) -> frozenset[str]:
        return frozenset(self._by_id)

    def _load(self) -> frozenset[str]:
        try:
            raw = self._store.get(self._key)
        except Exception as e:  # noqa: BLE001
            return self._load_failed(e)
        if not raw:
            return self._default_ids()
        try:
            ids = decode_ids(raw)
        except ValueError as e:
            return self._load_failed(e)
        known = {i for i in ids if i in self._by_id}
        dropped = sorted(set(ids) - known)
        if dropped:
            logger.warning("ignoring unknown persisted modules: %s", dropped)
        return frozenset(self._close(known | self._core_ids))

    def _load_failed(self, e: Exception) -> frozenset[str]:
        error_type = map_exception(e, "store.read")
        logger.warning(
            "failed to load module state (%s), enabling all modules: %s",
            error_type,
            e,
        )
        emit(
            ModuleStateLoadFailed(
                key=self._key, error_type=error_type, message=str(e)
            )
        )
        return self._default_ids()

    # --- Graph helpers -------------------------------------------------------
    def _ordered(self, ids: Iterable[str]) -> List[str]:
        return sorted(ids, key=self._order.__getitem__)

    def _close(self, seeds: Iterable[str]) -> set[str]:
        """Add every transitive dependency of ``seeds``."""
        closed = set(seeds)
        queue = deque(closed)
        while queue:
            mid = queue.popleft()
            for dep in self._by_id[mid].dependencies:
                if dep not in closed:
                    closed.add(dep)
                    queue.append(dep)
        return closed

    def _enabled_dependents(self, module_id: str) -> List[ModuleDescriptor]:
        return [
            m
            for m in self._catalog
            if module_id in m.dependencies and m.id in self._enabled
        ]

    def _dependent_cascade(self, module_id: str) -> set[str]:
        """Enabled modules that transitively depend on ``module_id``."""
        found: set[str] = set()
        queue = deque([module_id])
        while queue:
            current = queue.popleft()
            for m in self._enabled_dependents(current):
                if m.id not in found:
                    found.add(m.id)
                    queue.append(m.id)
        return found

    # --- Queries -------------------------------------------------------------
    def list_all(self) -> List[ModuleView]:
        with self._lock:
            return [
                ModuleView.of(m, m.id in self._enabled) for m in self._catalog
            ]

    def list_by_category(
        self, category: ModuleCategory | str
    ) -> List[ModuleView]:
        try:
            cat = ModuleCategory(category)
        except ValueError:
            return []
        return [v for v in self.list_all() if v.category is cat]

    def list_enabled(self) -> frozenset[str]:
        with self._lock:
            return self._enabled

    def is_enabled(self, module_id: str) -> bool:
        with self._lock:
            return module_id in self._by_id and module_id in self._enabled

    def get(self, module_id: str) -> ModuleDescriptor | None:
        return self._by_id.get(module_id)

    def presets(self) -> List[Preset]:
        return list(self._presets)

    def dependents_of(self, module_id: str) -> List[ModuleDescriptor]:
        with self._lock:
            return self._enabled_dependents(module_id)

    def can_disable(self, module_id: str) -> DisableCheck:
        with self._lock:
            desc = self._by_id.get(module_id)
            if desc is None:
                return DisableCheck(False, [], BlockReason.UNKNOWN_MODULE)
            if desc.is_core:
                return DisableCheck(False, [], BlockReason.CORE)
            dependents = self._enabled_dependents(module_id)
            if dependents:
                return DisableCheck(False, dependents, BlockReason.DEPENDENTS)
            return DisableCheck(True)

    def can_enable(self, module_id: str) -> EnableCheck:
        with self._lock:
            desc = self._by_id.get(module_id)
            if desc is None:
                return EnableCheck(False, [], BlockReason.UNKNOWN_MODULE)
            missing = [
                self._by_id[d]
                for d in desc.dependencies
                if d not in self._enabled
            ]
            if missing:
                return EnableCheck(
                    False, missing, BlockReason.MISSING_DEPENDENCIES
                )
            return EnableCheck(True)

    def stats(self) -> ModuleStats:
        with self._lock:
            total = len(self._catalog)
            enabled = len(self._enabled)
            core = len(self._core_ids)
            optional_enabled = len(self._enabled - self._core_ids)
            return ModuleStats(
                total=total,
                enabled=enabled,
                disabled=total - enabled,
                core=core,
                optional=total - core,
                optional_enabled=optional_enabled,
                optional_disabled=total - core - optional_enabled,
            )

    # --- Mutations -----------------------------------------------------------
    def _reject(
        self,
        err_type: str,
        message: str,
        modules: List[ModuleDescriptor] | None = None,
    ) -> OperationResult:
        metrics.inc_operation_rejected(err_type)
        logger.info("module operation rejected (%s): %s", err_type, message)
        return OperationResult.failure(err_type, message, modules)

    def _unknown(self, module_id: Any) -> OperationResult:
        return self._reject("unknown-module", f"unknown module '{module_id}'")

    def _commit(self, new_ids: Iterable[str], event: Any) -> None:
        """Swap the enabled set, persist, then notify (caller holds lock)."""
        self._enabled = frozenset(new_ids)
        try:
            self._store.set(self._key, encode_ids(self._ordered(self._enabled)))
        except Exception as e:  # noqa: BLE001
            error_type = map_exception(e, "store.write")
            logger.error(
                "failed to persist module state (%s): %s", error_type, e
            )
            emit(
                ModuleStatePersistFailed(
                    key=self._key, error_type=error_type, message=str(e)
                )
            )
        self._bus.emit(CHANGED_EVENT, {"enabled": self._enabled})
        emit(event)

    def enable(
        self, module_id: str, auto_enable_dependencies: bool = False
    ) -> OperationResult:
        with self._lock:
            if module_id not in self._by_id:
                return self._unknown(module_id)
            if module_id in self._enabled:
                return OperationResult.unchanged(
                    f"module '{module_id}' already enabled"
                )
            check = self.can_enable(module_id)
            if not check.allowed and not auto_enable_dependencies:
                names = ", ".join(m.name for m in check.missing)
                return self._reject(
                    "missing-dependencies",
                    f"cannot enable '{module_id}': missing {names}",
                    check.missing,
                )
            added = self._close([module_id]) - self._enabled
            changed = self._ordered(added)
            cascade = [i for i in changed if i != module_id]
            self._commit(
                self._enabled | added,
                ModuleEnabled(module_id=module_id, auto_enabled=cascade),
            )
            if cascade:
                message = (
                    f"module '{module_id}' enabled with dependencies: "
                    + ", ".join(cascade)
                )
            else:
                message = f"module '{module_id}' enabled"
            return OperationResult.success(message, changed)

    def disable(
        self, module_id: str, auto_disable_dependents: bool = False
    ) -> OperationResult:
        with self._lock:
            desc = self._by_id.get(module_id)
            if desc is None:
                return self._unknown(module_id)
            if desc.is_core:
                return self._reject(
                    "core-module-protected",
                    f"core module '{module_id}' cannot be disabled",
                )
            if module_id not in self._enabled:
                return OperationResult.unchanged(
                    f"module '{module_id}' already disabled"
                )
            dependents = self._enabled_dependents(module_id)
            if dependents and not auto_disable_dependents:
                names = ", ".join(m.name for m in dependents)
                return self._reject(
                    "dependents-exist",
                    f"cannot disable '{module_id}': required by {names}",
                    dependents,
                )
            cascade = self._dependent_cascade(module_id)
            removed = cascade | {module_id}
            changed = self._ordered(removed)
            self._commit(
                self._enabled - removed,
                ModuleDisabled(
                    module_id=module_id,
                    auto_disabled=self._ordered(cascade),
                ),
            )
            if cascade:
                message = (
                    f"module '{module_id}' disabled with dependents: "
                    + ", ".join(self._ordered(cascade))
                )
            else:
                message = f"module '{module_id}' disabled"
            return OperationResult.success(message, changed)

    def toggle(
        self, module_id: str, auto_resolve: bool = False
    ) -> OperationResult:
        with self._lock:
            if module_id not in self._by_id:
                return self._unknown(module_id)
            if module_id in self._enabled:
                return self.disable(module_id, auto_resolve)
            return self.enable(module_id, auto_resolve)

    def _replace(
        self, target: Iterable[str], event_for: Callable[..., Any]
    ) -> tuple[List[str], List[str]]:
        """Replace enabled set with ``target`` ∪ core, closed over deps.

        Returns (changed ids, repaired ids) in catalog order.
        """
        requested = set(target)
        final = self._close(requested | self._core_ids)
        repaired = self._ordered(final - requested)
        changed = self._ordered(final ^ self._enabled)
        self._commit(final, event_for(final, repaired))
        return changed, repaired

    def apply_preset(self, preset_key: str) -> OperationResult:
        with self._lock:
            preset = self._presets_by_key.get(str(preset_key).lower())
            if preset is None:
                return self._reject(
                    "unknown-preset", f"unknown preset '{preset_key}'"
                )
            changed, repaired = self._replace(
                preset.modules,
                lambda final, _r: ModulePresetApplied(
                    preset=preset.key, enabled_count=len(final)
                ),
            )
            return OperationResult.success(
                f"preset '{preset.key}' applied", changed, repaired=repaired
            )

    def reset_to_default(self) -> OperationResult:
        with self._lock:
            changed, _ = self._replace(
                self._default_ids(),
                lambda final, _r: ModulePresetApplied(
                    preset="default", enabled_count=len(final)
                ),
            )
            return OperationResult.success(
                "module configuration reset to default", changed
            )

    # --- Import / export -----------------------------------------------------
    def export_config(self) -> ExportedConfig:
        with self._lock:
            return ExportedConfig(
                modules=self._ordered(self._enabled), timestamp=self._clock()
            )

    def import_config(self, module_ids: Any) -> OperationResult:
        try:
            ids = check_id_list(module_ids)
        except InvalidFormatError as e:
            return self._reject("invalid-format", f"import failed: {e}")
        with self._lock:
            accepted = [i for i in dict.fromkeys(ids) if i in self._by_id]
            ignored = [i for i in dict.fromkeys(ids) if i not in self._by_id]
            if ignored:
                logger.info("import ignoring unknown modules: %s", ignored)
            requested = set(accepted) | self._core_ids
            if self._close_on_import:
                final = self._close(requested)
            else:
                final = requested
            repaired = self._ordered(final - set(accepted))
            changed = self._ordered(final ^ self._enabled)
            self._commit(
                final,
                ModuleConfigImported(
                    accepted=accepted, ignored=ignored, repaired=repaired
                ),
            )
            return OperationResult.success(
                "module configuration imported",
                changed,
                ignored=ignored,
                repaired=repaired,
            )

    def import_document(self, payload: Any) -> OperationResult:
        """Import a JSON document, a mapping with ``modules`` or a list."""
        try:
            ids = parse_import_payload(payload)
        except InvalidFormatError as e:
            return self._reject("invalid-format", f"import failed: {e}")
        return self.import_config(ids)

    # --- Notification --------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(enabled_snapshot)``; returns unsubscribe."""

        def _handler(payload: dict) -> None:
            callback(payload["enabled"])

        return self._bus.subscribe(CHANGED_EVENT, _handler)


def zone_clock(tz_name: str) -> Callable[[], datetime]:
    """Clock returning aware datetimes in the company timezone."""
    zone = ZoneInfo(tz_name)
    return lambda: datetime.now(zone)


def resolver_from_config(cfg: Any) -> ModuleResolver:
    """Build a resolver from an ``AggregatedConfig``."""
    return ModuleResolver(
        store=build_store(cfg.modules),
        storage_key=cfg.modules.storage_key,
        import_closes_dependencies=cfg.modules.import_closes_dependencies,
        clock=zone_clock(cfg.system.timezone),
    )


@lru_cache(maxsize=1)
def get_module_resolver() -> ModuleResolver:
    from core.config import get_config

    return resolver_from_config(get_config())


def clear_module_resolver_cache() -> None:
    get_module_resolver.cache_clear()


__all__ = [
    "ModuleResolver",
    "get_module_resolver",
    "clear_module_resolver_cache",
    "resolver_from_config",
    "zone_clock",
    "CHANGED_EVENT",
    "DEFAULT_STORAGE_KEY",
]
