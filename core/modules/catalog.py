"""Static module catalog and presets.

The catalog is fixed at import time; nothing registers modules at runtime.
Display fields (name, description, icon) are payload for the UI and are never
inspected by the resolver.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple


class ModuleId(str, Enum):
    # core (cannot be disabled)
    AUTH = "auth"
    DASHBOARD = "dashboard"
    SETTINGS = "settings"
    # optional
    PROJECTS = "projects"
    CUSTOMERS = "customers"
    TEAM = "team"
    VENDORS = "vendors"
    DISPATCH = "dispatch"
    ANALYTICS = "analytics"
    AI_ASSISTANT = "ai_assistant"
    CLOUD_SYNC = "cloud_sync"
    LEADS = "leads"


class ModuleCategory(str, Enum):
    CORE = "core"
    MANAGEMENT = "management"
    ANALYTICS = "analytics"
    AUTOMATION = "automation"


class CatalogError(Exception):
    """Catalog violates uniqueness, closure or acyclicity."""


@dataclass(frozen=True)
class ModuleDescriptor:
    id: str
    name: str
    description: str
    category: ModuleCategory
    is_core: bool = False
    dependencies: Tuple[str, ...] = ()
    icon: str | None = None


@dataclass(frozen=True)
class Preset:
    key: str
    name: str
    description: str
    modules: Tuple[str, ...]


def _m(
    mid: ModuleId,
    name: str,
    description: str,
    category: ModuleCategory,
    *,
    core: bool = False,
    deps: Iterable[ModuleId] = (),
    icon: str | None = None,
) -> ModuleDescriptor:
    return ModuleDescriptor(
        id=mid.value,
        name=name,
        description=description,
        category=category,
        is_core=core,
        dependencies=tuple(d.value for d in deps),
        icon=icon,
    )


ALL_MODULES: Tuple[ModuleDescriptor, ...] = (
    _m(ModuleId.AUTH, "登入系統", "使用者認證與授權管理",
       ModuleCategory.CORE, core=True, icon="user-circle"),
    _m(ModuleId.DASHBOARD, "儀表板", "總覽與關鍵指標顯示",
       ModuleCategory.CORE, core=True, icon="layout-dashboard"),
    _m(ModuleId.SETTINGS, "系統設定", "系統配置與模組管理",
       ModuleCategory.CORE, core=True, icon="settings"),
    _m(ModuleId.PROJECTS, "專案管理", "工程專案追蹤、進度管理、施工日誌",
       ModuleCategory.MANAGEMENT, icon="folder-kanban"),
    _m(ModuleId.CUSTOMERS, "客戶管理", "CRM 客戶關係管理系統",
       ModuleCategory.MANAGEMENT, icon="user-circle"),
    _m(ModuleId.TEAM, "團隊管理", "員工資料、人力資源管理",
       ModuleCategory.MANAGEMENT, icon="users"),
    _m(ModuleId.VENDORS, "廠商管理", "合作廠商與工班資料管理",
       ModuleCategory.MANAGEMENT, icon="building-2"),
    _m(ModuleId.DISPATCH, "派遣調度", "人力派遣與工作分配",
       ModuleCategory.MANAGEMENT,
       deps=(ModuleId.PROJECTS, ModuleId.TEAM), icon="calendar-clock"),
    _m(ModuleId.ANALYTICS, "數據分析", "報表與數據視覺化分析",
       ModuleCategory.ANALYTICS, deps=(ModuleId.PROJECTS,),
       icon="bar-chart-3"),
    _m(ModuleId.AI_ASSISTANT, "AI 智慧助手", "名片掃描、智慧會勘系統",
       ModuleCategory.AUTOMATION, icon="sparkles"),
    _m(ModuleId.CLOUD_SYNC, "雲端同步", "Google Drive 資料備份與同步",
       ModuleCategory.AUTOMATION, icon="cloud"),
    _m(ModuleId.LEADS, "會勘線索", "AI 會勘系統產生的潛在客戶",
       ModuleCategory.AUTOMATION, deps=(ModuleId.AI_ASSISTANT,),
       icon="clipboard-list"),
)

_CORE_IDS = (ModuleId.AUTH, ModuleId.DASHBOARD, ModuleId.SETTINGS)


def _preset_ids(*extra: ModuleId) -> Tuple[str, ...]:
    return tuple(m.value for m in _CORE_IDS + extra)


FULL_PRESET = "full"

MODULE_PRESETS: Tuple[Preset, ...] = (
    Preset(
        key=FULL_PRESET,
        name="完整版",
        description="包含所有功能模組，適合大型工程公司",
        modules=tuple(m.id for m in ALL_MODULES),
    ),
    Preset(
        key="standard",
        name="標準版",
        description="核心管理功能，適合中小型工程公司",
        modules=_preset_ids(
            ModuleId.PROJECTS,
            ModuleId.CUSTOMERS,
            ModuleId.TEAM,
            ModuleId.CLOUD_SYNC,
        ),
    ),
    Preset(
        key="lite",
        name="輕量版",
        description="僅專案管理核心功能",
        modules=_preset_ids(ModuleId.PROJECTS),
    ),
    Preset(
        key="professional",
        name="專業版",
        description="專案管理加上數據分析功能",
        modules=_preset_ids(
            ModuleId.PROJECTS,
            ModuleId.CUSTOMERS,
            ModuleId.TEAM,
            ModuleId.ANALYTICS,
            ModuleId.CLOUD_SYNC,
        ),
    ),
)


def find_cycles(graph: Dict[str, Sequence[str]]) -> List[List[str]]:
    visited: set[str] = set()
    stack: set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]) -> None:
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in graph.get(node, ()):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in graph:
        if n not in visited:
            dfs(n, [n])
    return cycles


def validate_catalog(
    modules: Sequence[ModuleDescriptor],
    presets: Sequence[Preset] = (),
) -> None:
    """Raise CatalogError unless ids are unique, edges closed and acyclic.

    Core modules may only depend on core modules; preset members must be
    catalog ids.
    """
    ids = [m.id for m in modules]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise CatalogError(f"Duplicate module ids: {dupes}")
    known = set(ids)
    for m in modules:
        dangling = [d for d in m.dependencies if d not in known]
        if dangling:
            raise CatalogError(
                f"Module '{m.id}' depends on unknown modules: {dangling}"
            )
        if m.id in m.dependencies:
            raise CatalogError(f"Module '{m.id}' depends on itself")
    core_ids = {m.id for m in modules if m.is_core}
    for m in modules:
        if m.is_core and not set(m.dependencies) <= core_ids:
            raise CatalogError(
                f"Core module '{m.id}' may only depend on core modules"
            )
    cycles = find_cycles({m.id: m.dependencies for m in modules})
    if cycles:
        raise CatalogError(f"Dependency cycles: {cycles}")
    keys = [p.key.lower() for p in presets]
    if len(keys) != len(set(keys)):
        raise CatalogError(f"Duplicate preset keys: {keys}")
    for p in presets:
        unknown = [i for i in p.modules if i not in known]
        if unknown:
            raise CatalogError(
                f"Preset '{p.key}' references unknown modules: {unknown}"
            )


__all__ = [
    "ModuleId",
    "ModuleCategory",
    "ModuleDescriptor",
    "Preset",
    "CatalogError",
    "ALL_MODULES",
    "MODULE_PRESETS",
    "FULL_PRESET",
    "find_cycles",
    "validate_catalog",
]
