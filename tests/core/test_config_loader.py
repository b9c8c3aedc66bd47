import os
import tempfile
from pathlib import Path

import pytest


def _with_temp_config(yaml_text: str):
    prev = os.environ.get("BT_CONFIG_DIR")
    with tempfile.TemporaryDirectory() as d:
        tmp = Path(d)
        (tmp / "base.yaml").write_text(yaml_text, encoding="utf-8")
        os.environ["BT_CONFIG_DIR"] = str(tmp)
        import core.config.loader as loader
        loader.clear_config_cache()
        yield loader
        loader.clear_config_cache()
    if prev is None:
        os.environ.pop("BT_CONFIG_DIR", None)
    else:
        os.environ["BT_CONFIG_DIR"] = prev


def test_valid_load():
    yaml_content_valid = (
        "schema_version: 1\n"
        "modules:\n"
        "  storage_backend: memory\n"
        "  storage_key: tenant_a_modules\n"
        "  import_closes_dependencies: false\n"
        "logging: {level: DEBUG, format: JSON}\n"
        "api: {port: 9001}\n"
        "system: {}\n"
    )
    for loader in _with_temp_config(yaml_content_valid):
        cfg = loader.get_config()
        assert cfg.modules.storage_backend == "memory"
        assert cfg.modules.storage_key == "tenant_a_modules"
        assert cfg.modules.import_closes_dependencies is False
        assert cfg.logging.level == "debug"
        assert cfg.logging.format == "json"
        assert cfg.api.port == 9001
        assert cfg.system.timezone == "Asia/Taipei"


def test_defaults_when_sections_missing():
    for loader in _with_temp_config("schema_version: 1\n"):
        cfg = loader.get_config()
        assert cfg.modules.storage_backend == "file"
        assert cfg.modules.storage_key == "bt_module_config"
        assert cfg.modules.import_closes_dependencies is True
        assert cfg.api.port == 8000


def test_invalid_key_rejected():
    yaml_content_invalid = (
        "schema_version: 1\n"
        "modules:\n"
        "  storage_backend: memory\n"
        "  unknown_field: 123\n"
    )
    for loader in _with_temp_config(yaml_content_invalid):
        with pytest.raises(loader.ConfigError):
            loader.get_config()


def test_unknown_section_rejected():
    for loader in _with_temp_config("schema_version: 1\nreporting: {}\n"):
        with pytest.raises(loader.ConfigError):
            loader.get_config()


def test_unknown_backend_rejected():
    yaml_text = "schema_version: 1\nmodules: {storage_backend: redis}\n"
    for loader in _with_temp_config(yaml_text):
        with pytest.raises(loader.ConfigError):
            loader.get_config()


def test_invalid_yaml_rejected():
    for loader in _with_temp_config("modules: [unclosed\n"):
        with pytest.raises(loader.ConfigError):
            loader.get_config()


def test_overrides_local_wins_over_base():
    for loader in _with_temp_config(
        "schema_version: 1\nmodules: {storage_backend: memory}\n"
    ):
        cfg_dir = Path(os.environ["BT_CONFIG_DIR"])
        (cfg_dir / "overrides.local.yaml").write_text(
            "modules: {storage_key: local_key}\n", encoding="utf-8"
        )
        loader.clear_config_cache()
        cfg = loader.get_config()
        assert cfg.modules.storage_key == "local_key"
        assert cfg.modules.storage_backend == "memory"


def test_unknown_timezone_rejected():
    yaml_text = "schema_version: 1\nsystem: {timezone: Mars/Olympus}\n"
    for loader in _with_temp_config(yaml_text):
        with pytest.raises(loader.ConfigError):
            loader.get_config()


def test_removed_settings_rejected():
    yaml_text = "schema_version: 1\nsystem: {locale: zh-TW}\n"
    for loader in _with_temp_config(yaml_text):
        with pytest.raises(loader.ConfigError):
            loader.get_config()
