"""
Settings management for the account migration.

Settings come from a YAML file merged over built-in defaults. A handful of
environment variables can override the values that operators most often need
to change between a staging run and a production run.
"""

import copy
import functools
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from account_migration.utils.path_utils import get_config_path

__all__ = [
    "DEFAULTS",
    "get_settings",
    "load_settings",
    "reload_settings",
    "validate_settings",
    "get_max_files",
    "get_file_open_limit",
    "get_api_concurrency",
    "get_checkpoint_dir",
    "get_checkpoint_every",
]

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "migration": {
        "max_files": None,
        "file_open_limit": 100,
        "api_concurrency": 10,
        "checkpoint_dir": "data/checkpoints",
        "checkpoint_every": 50,
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": "migration.log",
    },
}

# Environment overrides: env var -> (section, key, converter)
ENV_OVERRIDES = {
    "MIGRATION_CHECKPOINT_DIR": ("migration", "checkpoint_dir", str),
    "MIGRATION_MAX_FILES": ("migration", "max_files", int),
    "MIGRATION_FILE_OPEN_LIMIT": ("migration", "file_open_limit", int),
}


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@functools.lru_cache(maxsize=4)
def load_settings(path: str) -> Dict[str, Any]:
    """Load settings from YAML file with defaults.

    This function is cached to prevent repeated file I/O and parsing.
    Use reload_settings() to force a fresh load.

    Args:
        path: Path to settings YAML file

    Returns:
        Dictionary with settings (user config merged over defaults)

    """
    settings = copy.deepcopy(DEFAULTS)
    try:
        with open(path) as f:
            user_config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}. Using defaults.")
        return settings

    if not isinstance(user_config, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    logger.debug(f"Settings loaded from {path}")
    return _deep_merge(settings, user_config)


def reload_settings(path: str) -> Dict[str, Any]:
    """Force reload settings from file (clears cache)."""
    load_settings.cache_clear()
    return load_settings(path)


def _apply_env_overrides(settings: Dict[str, Any]) -> Dict[str, Any]:
    for env_var, (section, key, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw is None or raw == "":
            continue
        try:
            settings[section][key] = convert(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e
    return settings


def get_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """Get the effective settings.

    Precedence order: env > config file > defaults

    Args:
        path: Settings file to use. Defaults to $MIGRATION_CONFIG, then
            config/settings.yaml.

    Returns:
        A fresh settings dict (safe for the caller to mutate).

    """
    if path is None:
        path = os.environ.get("MIGRATION_CONFIG") or str(get_config_path())
    settings = copy.deepcopy(load_settings(path))
    return _apply_env_overrides(settings)


def get_max_files(settings: Optional[Dict[str, Any]] = None) -> Optional[int]:
    """Cap on the number of record files per directory, or None for no cap."""
    settings = settings or get_settings()
    max_files = settings["migration"].get("max_files")
    return max_files or None


def get_file_open_limit(settings: Optional[Dict[str, Any]] = None) -> int:
    settings = settings or get_settings()
    return int(settings["migration"]["file_open_limit"])


def get_api_concurrency(settings: Optional[Dict[str, Any]] = None) -> int:
    settings = settings or get_settings()
    return int(settings["migration"]["api_concurrency"])


def get_checkpoint_dir(settings: Optional[Dict[str, Any]] = None) -> Path:
    settings = settings or get_settings()
    return Path(settings["migration"]["checkpoint_dir"]).resolve()


def get_checkpoint_every(settings: Optional[Dict[str, Any]] = None) -> int:
    settings = settings or get_settings()
    return int(settings["migration"]["checkpoint_every"])


def validate_settings(settings: Optional[Dict[str, Any]] = None) -> List[str]:
    """Returns list of validation warnings.

    Args:
        settings: Settings dict to validate. If None, uses get_settings().

    Returns:
        List of validation warning messages.

    """
    warnings = []
    if settings is None:
        settings = get_settings()
    migration = settings.get("migration", {})

    for key in ("file_open_limit", "api_concurrency", "checkpoint_every"):
        value = migration.get(key)
        if not isinstance(value, int) or value < 1:
            warnings.append(f"migration.{key} must be a positive int, got {value}")

    max_files = migration.get("max_files")
    if max_files is not None and (not isinstance(max_files, int) or max_files < 0):
        warnings.append(f"migration.max_files must be null or int >= 0, got {max_files}")

    if not migration.get("checkpoint_dir"):
        warnings.append("migration.checkpoint_dir must be set")

    level = settings.get("logging", {}).get("level", "INFO")
    if not isinstance(getattr(logging, str(level).upper(), None), int):
        warnings.append(f"logging.level is not a known level, got {level}")

    return warnings
