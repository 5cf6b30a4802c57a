"""Abstract repository interface for railmerge configuration storage.

Game tables are stored as plain dicts (the JSON form of ``GameConfig``) so
backends never need to know the config schema; the engine validates them
when a game is created.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ConfigRepository(ABC):
    """Abstract base class for game configuration storage."""

    @abstractmethod
    def list_configs(self) -> list[dict]:
        """Return metadata for all stored configs.

        Returns:
            List of dicts containing: {id, name}
        """
        pass

    @abstractmethod
    def get_config(self, config_id: str) -> Optional[dict]:
        """Load a complete config by ID.

        Args:
            config_id: Unique identifier for the config

        Returns:
            Config dict, or None if not found
        """
        pass

    @abstractmethod
    def save_config(self, config: dict) -> str:
        """Save a config, return its ID.

        The config must have a 'name' field; the ID is the slugified name.

        Raises:
            ValueError: If the config lacks a 'name' field
        """
        pass

    @abstractmethod
    def delete_config(self, config_id: str) -> bool:
        """Delete a config.

        Returns:
            True if deleted, False if not found
        """
        pass
