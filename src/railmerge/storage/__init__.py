"""Storage module for railmerge.

This module provides the repository interface and file implementation for
game configuration tables.

Usage:
    from railmerge.storage import ensure_default_config, get_config_repository

    configs = get_config_repository()
    config_id = ensure_default_config(configs)

Configuration via environment variables:
    RAILMERGE_CONFIGS_PATH: Path to configs directory (default: "configs")
"""

from .config import (
    DEFAULT_CONFIG_ID,
    ensure_default_config,
    get_config_repository,
    get_configs_path,
)
from .file_repo import FileConfigRepository, slugify
from .repository import ConfigRepository

__all__ = [
    # Abstract interface
    "ConfigRepository",
    # File implementation
    "FileConfigRepository",
    "slugify",
    # Configuration
    "DEFAULT_CONFIG_ID",
    "get_configs_path",
    "get_config_repository",
    "ensure_default_config",
]
