"""Configuration loading & validation.

- Per-section schemas live in `core.config.schemas.*`.
- `schema_version` (legacy missing → assume 1, warn).
- AggregatedConfig holds the validated sections.

Precedence (last wins): base.yaml → overrides.local.yaml → ENV (BT__*).

Unknown section keys rejected.
"""
from __future__ import annotations

import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from core import metrics
from core.errors import map_exception, validate_error_type
from pydantic import BaseModel, ConfigDict

from .schemas.core import ApiConfig, SystemConfig
from .schemas.modules import ModulesConfig
from .schemas.observability import LoggingConfig


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    modules: ModulesConfig = ModulesConfig()
    logging: LoggingConfig = LoggingConfig()
    api: ApiConfig = ApiConfig()
    system: SystemConfig = SystemConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "BT__"
CURRENT_SCHEMA_VERSION = 1

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "modules": ModulesConfig,
    "logging": LoggingConfig,
    "api": ApiConfig,
    "system": SystemConfig,
}


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name}: top level must be a mapping")
    return data


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        leaf = path_parts[-1]
        if value.lower() in {"true", "false"}:
            cast_val: Any = value.lower() == "true"
        else:
            try:
                cast_val = int(value)
            except ValueError:
                try:
                    cast_val = float(value)
                except ValueError:
                    cast_val = value
        target[leaf] = cast_val
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        print(
            f"[config-env-override] path={dotted_path} value=*** source=env"
        )  # noqa: T201


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("BT_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply in-place migrations for legacy configs (no schema_version)."""
    if "schema_version" not in data:
        print(
            "[config-migration] schema_version missing → assuming 1"
        )  # noqa: T201
        data["schema_version"] = CURRENT_SCHEMA_VERSION
    return data


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate each known section via its schema class."""
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                code = validate_error_type(map_exception(e, "config"))
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": code},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Apply cross-field normalizations and bounds validation.

    Normalizations:
      - logging.level / logging.format lower-cased.
    Validations (error → raise):
      - api.port in 1..65535
      - modules.storage_backend=file requires modules.storage_path
    """
    errors: list[tuple[str, str, str]] = []  # (path, code, msg)
    log_section = raw.get("logging")
    if isinstance(log_section, dict):
        for key in ("level", "format"):
            if isinstance(log_section.get(key), str):
                log_section[key] = log_section[key].lower()

    api_section = raw.get("api")
    if isinstance(api_section, dict):
        port = api_section.get("port")
        if isinstance(port, int) and not (0 < port <= 65535):
            errors.append(
                ("api.port", "config-out-of-range", "port must be 1..65535")
            )

    mod_section = raw.get("modules")
    if isinstance(mod_section, dict):
        backend = mod_section.get("storage_backend", "file")
        if backend == "file" and "storage_path" in mod_section and not (
            mod_section.get("storage_path")
        ):
            errors.append(
                (
                    "modules.storage_path",
                    "config-invalid",
                    "file backend requires storage_path",
                )
            )

    if errors:
        for path, code, _ in errors:
            validate_error_type(code)
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": code},
            )
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        migrated = _migrate_legacy(merged)
        _normalize_and_validate(migrated)
        validated_sub = _validate_sub_schemas(migrated)
        try:
            return AggregatedConfig.model_validate(
                {**migrated, **validated_sub}
            )
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()
