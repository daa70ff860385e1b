"""Utility modules for the account migration.
"""

from .checkpoint import CheckpointConfig, CheckpointError, JsonCheckpoint, LogCheckpoint
from .concurrency_pool import ConcurrencyPool
from .logging_utils import setup_logging
from .path_utils import ensure_directory_exists, get_config_path, get_project_root
from .settings import get_settings, load_settings, validate_settings

__all__ = [
    # Checkpoints
    "CheckpointConfig",
    "CheckpointError",
    "JsonCheckpoint",
    "LogCheckpoint",
    # Concurrency
    "ConcurrencyPool",
    # Logging utilities
    "setup_logging",
    # Path utilities
    "get_project_root",
    "ensure_directory_exists",
    "get_config_path",
    # Settings
    "get_settings",
    "load_settings",
    "validate_settings",
]
