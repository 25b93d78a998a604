"""Load bug report settings from config/settings.yaml."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENVIRONMENT_VAR = "BUGREPORT_ENVIRONMENT"

_DEFAULTS: dict[str, Any] = {
    "environment": "production",
    "policy": {
        "min_severity": "error",
        "report_handled": True,
        "environments": [],  # empty = any
        "sampling": 1.0,
        "rate_limit": {
            "max_events": 10,
            "window": 60.0,
        },
        "dedupe": {
            "window": 60.0,
        },
        "skip_unreportable": True,
    },
    "outbox": {
        "backend": "file",  # file | sqlite
        "directory": "data/bugreport/outbox",
        "db_path": "data/bugreport/outbox.db",
    },
    "sanitizers": {
        "max_depth": 8,
        "max_string": 1000,
        "max_list": 200,
        "max_map_entries": 200,
        "max_bytes": 65536,  # 64 KiB
        "extra_sensitive_keys": [],
        "deny_paths": [],
    },
    "context": {
        "provider_timeout": 5.0,
        "max_breadcrumbs": 100,
    },
    "reporters": {
        "console": {
            "enabled": True,
            "full_json": False,
        },
        "file": {
            "directory": "",  # empty = disabled
        },
        "webhook": {
            "url": "",  # empty = disabled
            "timeout": 10.0,
            "headers": {},
        },
    },
    "logging": {
        "file": "data/logs/bugreport.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'policy.rate_limit.window')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def reload_settings() -> None:
    """Clear the settings cache. Call after config files change."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns merged defaults + file values.

    BUGREPORT_ENVIRONMENT, when set, overrides `environment`.
    """
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)

    env = os.environ.get(ENVIRONMENT_VAR, "").strip()
    if env:
        result["environment"] = env

    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
