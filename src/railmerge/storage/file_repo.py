"""File-based repository implementation using JSON files.

Each game configuration is stored as one JSON file in the configs directory,
named after the slugified config name (e.g. ``configs/default.json``).
"""

import json
import re
from pathlib import Path
from typing import Optional

from .repository import ConfigRepository


def slugify(text: str) -> str:
    """Convert text to a file-friendly slug.

    Examples:
        >>> slugify("Default Tables")
        'default-tables'
        >>> slugify("1835: Short_Game")
        '1835-short-game'
    """
    text = text.lower()
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


class FileConfigRepository(ConfigRepository):
    """JSON file-based config repository."""

    def __init__(self, configs_path: str | Path = "configs"):
        """Initialize repository.

        Args:
            configs_path: Path to configs directory
        """
        self.configs_path = Path(configs_path)
        self.configs_path.mkdir(parents=True, exist_ok=True)

    def _get_config_path(self, config_id: str) -> Path:
        """Get path to config file."""
        return self.configs_path / f"{config_id}.json"

    def list_configs(self) -> list[dict]:
        """Return metadata for all stored configs."""
        configs = []
        for path in self.configs_path.glob("*.json"):
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            configs.append({"id": path.stem, "name": data.get("name", path.stem)})
        return sorted(configs, key=lambda x: x["name"])

    def get_config(self, config_id: str) -> Optional[dict]:
        """Load a complete config by ID."""
        path = self._get_config_path(config_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        data["id"] = config_id
        return data

    def save_config(self, config: dict) -> str:
        """Save a config, return its ID."""
        name = config.get("name")
        if not name:
            raise ValueError("Config must have a 'name' field")

        config_id = slugify(name)
        with open(self._get_config_path(config_id), "w", encoding="utf-8") as f:
            json.dump({**config, "id": config_id}, f, indent=2)
        return config_id

    def delete_config(self, config_id: str) -> bool:
        """Delete a config."""
        path = self._get_config_path(config_id)
        if path.exists():
            path.unlink()
            return True
        return False
