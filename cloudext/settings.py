"""Settings: config/settings.yaml merged over built-in defaults.

The `extensions` section is validated into ExtensionSettings; `logging` is read by
cloudext.logging_config.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

CONFIG_DIR_ENV = "CLOUDEXT_CONFIG_DIR"


class ExtensionSettings(BaseModel):
    # ids kept live per (role, type, slot); 2 allows create-before-delete upgrades
    rotation_window: int = Field(default=2, ge=1)
    # role component of ids for the default (all roles) bucket
    default_role_prefix: str = "Default"
    thumbprint_algorithm: str = "sha1"
    certificate_subject: str = "DC=Windows Azure Service Management for Extensions"


_DEFAULTS: dict[str, Any] = {
    "extensions": ExtensionSettings().model_dump(),
    "logging": {
        "file": "logs/cloudext.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
        "loggers": {},
    },
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base. None in overlay keeps base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _copy(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _copy(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_copy(x) for x in obj]
    return obj


def get_default_settings() -> dict[str, Any]:
    return _copy(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'extensions.rotation_window')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def extension_settings(settings: dict[str, Any]) -> ExtensionSettings:
    """Validated `extensions` section. Raises pydantic.ValidationError on bad values."""
    return ExtensionSettings.model_validate(get_setting(settings, "extensions", {}) or {})


def reload_settings() -> None:
    """Clear the settings cache. Call after config files change."""
    global _cached
    _cached = None


def _config_dir() -> Path:
    env_dir = os.environ.get(CONFIG_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parent.parent / "config"


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings.yaml from config_dir ($CLOUDEXT_CONFIG_DIR, else ./config). Cached.

    A missing or unreadable file yields the defaults; a file that is not a YAML
    mapping is ignored.
    """
    global _cached
    if _cached is not None:
        return _cached

    path = (config_dir or _config_dir()) / "settings.yaml"
    result = get_default_settings()
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError):
            data = None
        if isinstance(data, dict):
            _deep_merge(result, data)

    _cached = result
    return result
