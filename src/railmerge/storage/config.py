"""Storage configuration for railmerge.

Provides the configs directory setting and a factory for the config
repository. Settings can be overridden through environment variables.
"""

import os

from railmerge.models.config import default_config

from .file_repo import FileConfigRepository
from .repository import ConfigRepository

DEFAULT_CONFIGS_PATH = "configs"
DEFAULT_CONFIG_ID = "default"


def get_configs_path() -> str:
    """Get configured configs path from environment."""
    return os.environ.get("RAILMERGE_CONFIGS_PATH", DEFAULT_CONFIGS_PATH)


def get_config_repository(configs_path: str | None = None) -> ConfigRepository:
    """Factory function to create the config repository.

    Args:
        configs_path: Directory to use. If None, uses environment config.

    Returns:
        ConfigRepository instance
    """
    return FileConfigRepository(configs_path or get_configs_path())


def ensure_default_config(repo: ConfigRepository) -> str:
    """Store the built-in tables under the default ID unless already present.

    Returns:
        ID of the default config
    """
    if repo.get_config(DEFAULT_CONFIG_ID) is None:
        return repo.save_config(default_config().model_dump(mode="json"))
    return DEFAULT_CONFIG_ID
