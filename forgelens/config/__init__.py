"""Configuration management for ForgeLens."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from forgelens.errors import InvalidConfigError

from .settings import GitConfig, LoggingConfig, PreflightConfig, Settings

# Cached instance for the CLI process
_settings: Optional[Settings] = None

# Default config directory
CONFIG_DIR = Path.home() / ".forgelens"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

SECTIONS = ("git", "preflight", "logging")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} syntax in strings."""
    if isinstance(value, str):
        # Match ${VAR_NAME} pattern
        pattern = r"\$\{([^}]+)\}"
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value if value else None
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfigError(str(path), "<file>", f"not valid YAML: {e}") from e
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise InvalidConfigError(str(path), type(content).__name__, "top level must be a mapping")
    return content


def _transform_config_to_settings(config: dict) -> dict:
    """Keep only the sections the Settings model knows about."""
    return {section: config[section] for section in SECTIONS if config.get(section) is not None}


def create_default_config(config_path: Optional[Path] = None) -> Path:
    """Write the default config file if it doesn't exist.

    Returns:
        Path of the config file.
    """
    target = config_path or CONFIG_FILE
    if not target.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(DEFAULTS_FILE.read_text(encoding="utf-8"), encoding="utf-8")
    return target


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Optional path to a custom config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        InvalidConfigError: If a config file is malformed or a value is invalid.
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    layered = _deep_merge(_load_yaml_file(DEFAULTS_FILE), _load_yaml_file(config_path or CONFIG_FILE))
    sections = _transform_config_to_settings(_expand_env_vars(layered))

    try:
        # FORGELENS_* variables are applied on top by pydantic-settings
        _settings = Settings(**sections)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise InvalidConfigError(field, first.get("input"), first["msg"]) from e

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "GitConfig",
    "PreflightConfig",
    "LoggingConfig",
    "get_settings",
    "load_settings",
    "reset_settings",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "DEFAULTS_FILE",
]
