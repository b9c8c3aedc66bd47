import pytest

from core.modules.catalog import ModuleCategory, ModuleDescriptor, Preset
from core.modules.resolver import ModuleResolver
from core.modules.results import BlockReason
from core.modules.store import MemoryStore, encode_ids


def _desc(mid, deps=(), core=False, category=ModuleCategory.MANAGEMENT):
    return ModuleDescriptor(
        id=mid,
        name=mid.upper(),
        description=f"module {mid}",
        category=ModuleCategory.CORE if core else category,
        is_core=core,
        dependencies=tuple(deps),
    )


ABC = (_desc("A", core=True), _desc("B"), _desc("C", deps=("B",)))

CHAIN = (
    _desc("core", core=True),
    _desc("w"),
    _desc("x", deps=("w",)),
    _desc("y", deps=("x",)),
    _desc("z", deps=("y",)),
)

CHAIN_PRESETS = (
    Preset(key="bare", name="Bare", description="", modules=()),
    Preset(key="top", name="Top", description="", modules=("z",)),
)


def _resolver(catalog=ABC, presets=(), enabled=None, **kw):
    store = kw.pop("store", None) or MemoryStore()
    if enabled is not None:
        store.set("bt_module_config", encode_ids(enabled))
    return ModuleResolver(store=store, catalog=catalog, presets=presets, **kw)


def _notifications(resolver):
    seen = []
    resolver.subscribe(lambda enabled: seen.append(set(enabled)))
    return seen


def test_disable_with_dependents_scenario():
    r = _resolver(enabled=["A", "B", "C"])
    seen = _notifications(r)

    res = r.disable("B", False)
    assert not res.ok
    assert res.error_type == "dependents-exist"
    assert res.module_ids == ["C"]
    assert r.list_enabled() == {"A", "B", "C"}
    assert seen == []

    res = r.disable("B", True)
    assert res.ok
    assert res.changed == ["B", "C"]
    assert r.list_enabled() == {"A"}
    assert seen == [{"A"}]


def test_enable_chain_cascade_notifies_once():
    r = _resolver(catalog=CHAIN, enabled=["core"])
    seen = _notifications(r)

    blocked = r.enable("z", False)
    assert blocked.error_type == "missing-dependencies"
    assert blocked.module_ids == ["y"]

    res = r.enable("z", True)
    assert res.ok
    assert res.changed == ["w", "x", "y", "z"]
    assert r.list_enabled() == {"core", "w", "x", "y", "z"}
    assert len(seen) == 1


def test_disable_chain_cascade_transitive():
    r = _resolver(catalog=CHAIN)
    res = r.disable("w", True)
    assert res.ok
    assert set(res.changed) == {"w", "x", "y", "z"}
    assert r.list_enabled() == {"core"}


def test_enable_idempotent_noop():
    r = _resolver()
    seen = _notifications(r)
    res = r.enable("B")
    assert res.ok and res.noop
    assert "already enabled" in res.message
    assert seen == []


def test_disable_idempotent_noop():
    r = _resolver(enabled=["A"])
    seen = _notifications(r)
    res = r.disable("B")
    assert res.ok and res.noop
    assert seen == []


def test_core_module_protected_even_with_force():
    r = _resolver()
    res = r.disable("A", True)
    assert not res.ok
    assert res.error_type == "core-module-protected"
    assert r.is_enabled("A")


@pytest.mark.parametrize("op", ["enable", "disable", "toggle"])
def test_unknown_module_rejected(op):
    r = _resolver(enabled=["A", "B"])
    before = r.list_enabled()
    res = getattr(r, op)("nonexistent-id")
    assert res.error_type == "unknown-module"
    assert r.list_enabled() == before


def test_is_enabled_unknown_is_false():
    r = _resolver()
    assert r.is_enabled("nonexistent-id") is False
    assert r.get("nonexistent-id") is None


def test_can_disable_reasons():
    r = _resolver()
    core = r.can_disable("A")
    assert core.allowed is False
    assert core.blockers == []
    assert core.reason is BlockReason.CORE

    dep = r.can_disable("B")
    assert dep.allowed is False
    assert [m.id for m in dep.blockers] == ["C"]
    assert dep.reason is BlockReason.DEPENDENTS

    free = r.can_disable("C")
    assert free.allowed and free.reason is None

    unknown = r.can_disable("nope")
    assert unknown.reason is BlockReason.UNKNOWN_MODULE


def test_can_enable_missing_in_declared_order():
    catalog = (
        _desc("core", core=True),
        _desc("p"),
        _desc("q"),
        _desc("r", deps=("q", "p")),
    )
    r = _resolver(catalog=catalog, enabled=["core"])
    check = r.can_enable("r")
    assert not check.allowed
    assert [m.id for m in check.missing] == ["q", "p"]
    assert check.reason is BlockReason.MISSING_DEPENDENCIES


def test_dependents_of_only_enabled():
    r = _resolver(enabled=["A", "B"])
    assert r.dependents_of("B") == []
    r.enable("C")
    assert [m.id for m in r.dependents_of("B")] == ["C"]


def test_toggle_dispatches_with_auto_flag():
    r = _resolver()
    res = r.toggle("B", False)
    assert res.error_type == "dependents-exist"
    res = r.toggle("B", True)
    assert res.ok
    assert r.list_enabled() == {"A"}
    res = r.toggle("C", True)
    assert res.ok
    assert r.list_enabled() == {"A", "B", "C"}


def test_apply_preset_adds_core_and_closes():
    r = _resolver(catalog=CHAIN, presets=CHAIN_PRESETS)
    seen = _notifications(r)
    res = r.apply_preset("bare")
    assert res.ok
    assert r.list_enabled() == {"core"}
    assert res.repaired == ["core"]
    res = r.apply_preset("TOP")
    assert r.list_enabled() == {"core", "w", "x", "y", "z"}
    assert len(seen) == 2


def test_unknown_preset_leaves_state():
    r = _resolver(catalog=CHAIN, presets=CHAIN_PRESETS, enabled=["core", "w"])
    seen = _notifications(r)
    res = r.apply_preset("enterprise")
    assert res.error_type == "unknown-preset"
    assert r.list_enabled() == {"core", "w"}
    assert seen == []


def test_reset_to_default_enables_everything():
    r = _resolver(enabled=["A"])
    res = r.reset_to_default()
    assert res.ok
    assert r.list_enabled() == {"A", "B", "C"}
    assert res.changed == ["B", "C"]


def test_export_order_follows_catalog():
    r = _resolver(catalog=CHAIN, enabled=["y", "core", "w", "x"])
    exported = r.export_config()
    assert exported.modules == ["core", "w", "x", "y"]
    assert exported.timestamp.tzinfo is not None


def test_export_import_round_trip():
    r = _resolver(catalog=CHAIN, enabled=["core", "w", "x"])
    before = r.list_enabled()
    ids = r.export_config().modules
    r.reset_to_default()
    res = r.import_config(ids)
    assert res.ok
    assert r.list_enabled() == before


def test_import_filters_unknown_and_keeps_core():
    r = _resolver()
    seen = _notifications(r)
    res = r.import_config(["B", "ghost", "B"])
    assert res.ok
    assert res.ignored == ["ghost"]
    assert res.repaired == ["A"]
    assert r.list_enabled() == {"A", "B"}
    assert len(seen) == 1


def test_import_closes_dependencies_by_default():
    r = _resolver(enabled=["A"])
    res = r.import_config(["C"])
    assert res.ok
    assert r.list_enabled() == {"A", "B", "C"}
    assert res.repaired == ["A", "B"]


def test_import_trusting_mode_keeps_payload():
    r = _resolver(enabled=["A"], import_closes_dependencies=False)
    r.import_config(["C"])
    assert r.list_enabled() == {"A", "C"}


@pytest.mark.parametrize("payload", ["B", None, 42, ["B", 7], {"modules": 1}])
def test_import_invalid_format(payload):
    r = _resolver(enabled=["A", "B"])
    seen = _notifications(r)
    res = r.import_config(payload)
    assert res.error_type == "invalid-format"
    assert r.list_enabled() == {"A", "B"}
    assert seen == []


def test_import_document_accepts_both_shapes():
    r = _resolver(enabled=["A"])
    assert r.import_document('{"modules": ["B"], "timestamp": "x"}').ok
    assert r.list_enabled() == {"A", "B"}
    assert r.import_document(b'["A"]').ok
    assert r.list_enabled() == {"A"}
    assert r.import_document({"modules": ["C"]}).ok
    assert r.list_enabled() == {"A", "B", "C"}
    bad = r.import_document("{not json")
    assert bad.error_type == "invalid-format"
    assert r.list_enabled() == {"A", "B", "C"}


def test_stats_counts():
    r = _resolver(catalog=CHAIN, enabled=["core", "w"])
    s = r.stats()
    assert s.total == 5
    assert s.enabled == 2
    assert s.disabled == 3
    assert s.core == 1
    assert s.optional == 4
    assert s.optional_enabled == 1
    assert s.optional_disabled == 3


def test_list_all_catalog_order_and_flags():
    r = _resolver(enabled=["A", "B"])
    views = r.list_all()
    assert [v.id for v in views] == ["A", "B", "C"]
    assert [v.enabled for v in views] == [True, True, False]
    assert views[0].is_core


def test_list_by_category():
    catalog = ABC + (_desc("D", category=ModuleCategory.AUTOMATION),)
    r = _resolver(catalog=catalog)
    assert [v.id for v in r.list_by_category("automation")] == ["D"]
    assert [v.id for v in r.list_by_category(ModuleCategory.CORE)] == ["A"]
    assert r.list_by_category("nope") == []


def test_subscribe_order_and_unsubscribe_independent():
    r = _resolver()
    calls = []
    unsub_first = r.subscribe(lambda e: calls.append("first"))
    r.subscribe(lambda e: calls.append("second"))
    r.disable("C")
    assert calls == ["first", "second"]
    unsub_first()
    r.enable("C")
    assert calls == ["first", "second", "second"]


def test_failing_subscriber_does_not_block_others():
    r = _resolver()
    calls = []

    def bad(_):
        raise RuntimeError("boom")

    r.subscribe(bad)
    r.subscribe(lambda e: calls.append(set(e)))
    res = r.disable("C")
    assert res.ok
    assert calls == [{"A", "B"}]


def test_subscriber_sees_persisted_state():
    store = MemoryStore()
    r = _resolver(store=store)
    persisted = []
    r.subscribe(lambda e: persisted.append(store.get("bt_module_config")))
    r.disable("C")
    assert persisted == ['["A", "B"]']


def test_core_and_closure_hold_over_operation_sequence():
    r = _resolver(catalog=CHAIN, presets=CHAIN_PRESETS)
    ops = [
        lambda: r.disable("x", True),
        lambda: r.enable("z", True),
        lambda: r.disable("core", True),
        lambda: r.apply_preset("bare"),
        lambda: r.toggle("y", True),
        lambda: r.import_config(["z"]),
        lambda: r.disable("w", True),
        lambda: r.reset_to_default(),
        lambda: r.toggle("x", True),
    ]
    for op in ops:
        op()
        enabled = r.list_enabled()
        assert "core" in enabled
        for mid in enabled:
            assert set(r.get(mid).dependencies) <= enabled
