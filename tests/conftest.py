"""Pytest configuration ensuring project root is importable.

Adds repository root and src/ to sys.path explicitly to avoid
interpreter/path quirks, and points config at an in-memory store so tests
never write module state into the working tree.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

_TEST_CONFIG = (
    "schema_version: 1\n"
    "modules:\n"
    "  storage_backend: memory\n"
    "logging:\n"
    "  level: warn\n"
)


@pytest.fixture(scope="session", autouse=True)
def _test_config_dir(tmp_path_factory):  # noqa: D401
    cfg_dir = tmp_path_factory.mktemp("configs")
    (cfg_dir / "base.yaml").write_text(_TEST_CONFIG, encoding="utf-8")
    prev = os.environ.get("BT_CONFIG_DIR")
    os.environ["BT_CONFIG_DIR"] = str(cfg_dir)
    yield cfg_dir
    if prev is None:
        os.environ.pop("BT_CONFIG_DIR", None)
    else:
        os.environ["BT_CONFIG_DIR"] = prev


@pytest.fixture(autouse=True)
def _isolate_global_state(_test_config_dir):  # noqa: D401
    """Ensure config/resolver/listener side effects do not leak.

    - Clear aggregated config and resolver caches between tests
    - Restore BT_CONFIG_DIR to the session test directory
    - Reset any-event listeners and metrics
    """
    from core import metrics
    from core.config import clear_config_cache
    from core.events import reset_listeners_for_tests
    from core.modules import clear_module_resolver_cache

    clear_config_cache()
    clear_module_resolver_cache()
    metrics.reset_for_tests()
    try:
        yield
    finally:
        clear_config_cache()
        clear_module_resolver_cache()
        reset_listeners_for_tests()
        os.environ["BT_CONFIG_DIR"] = str(_test_config_dir)


@pytest.fixture
def bus():
    from core.eventbus import EventBus

    return EventBus()


@pytest.fixture
def store():
    from core.modules.store import MemoryStore

    return MemoryStore()
