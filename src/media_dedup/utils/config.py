"""Configuration management for media-dedup."""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from media_dedup.utils.logger import setup_logger

logger = setup_logger(__name__)


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of `base` with `overrides` applied, nested tables merged key by key."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """User settings stored as JSON, read with dotted keys."""

    DEFAULT_CONFIG_DIR = Path.home() / ".media-dedup"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

    DEFAULT_SETTINGS = {
        "similarity_threshold": 8,
        "per_page": 50,
        "max_per_page": 200,
        "catalog_filename": ".media-dedup.db",
        "trash": {
            "use_recycle_bin": True,
            "library_trash_dir": ".media-dedup-trash",
        },
    }

    def __init__(self, config_file: Optional[Path] = None):
        """
        Load settings, writing a default file on first use.

        Args:
            config_file: Path to config file (default: ~/.media-dedup/config.json)
        """
        self.config_file = config_file or self.DEFAULT_CONFIG_FILE
        self.settings: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Read the file over the defaults; keys it lacks keep their default."""
        if not self.config_file.exists():
            logger.info(f"Writing default configuration to {self.config_file}")
            self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
            self.save()
            return

        try:
            stored = json.loads(self.config_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring invalid config file {self.config_file}: {e}")
            stored = {}
        if not isinstance(stored, dict):
            logger.warning(f"Ignoring config file {self.config_file}: not a JSON object")
            stored = {}

        self.settings = _merge(self.DEFAULT_SETTINGS, stored)
        logger.debug(f"Loaded configuration from {self.config_file}")

    def save(self) -> None:
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(self.settings, indent=2), encoding="utf-8")
        logger.debug(f"Saved configuration to {self.config_file}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a setting by dotted key, e.g. 'trash.use_recycle_bin'.

        Returns `default` when any part of the key is missing.
        """
        value: Any = self.settings
        for part in key.split("."):
            if not isinstance(value, dict) or value.get(part) is None:
                return default
            value = value[part]
        return value

    def set(self, key: str, value: Any) -> None:
        """Store a setting by dotted key and write the file."""
        *parents, leaf = key.split(".")
        table = self.settings
        for part in parents:
            if not isinstance(table.get(part), dict):
                table[part] = {}
            table = table[part]
        table[leaf] = value
        self.save()

    @property
    def similarity_threshold(self) -> int:
        """Default perceptual distance threshold for similar groups."""
        return int(self.get("similarity_threshold", 8))

    @property
    def per_page(self) -> int:
        """Default number of groups per page."""
        return int(self.get("per_page", 50))

    @property
    def max_per_page(self) -> int:
        """Upper bound on groups per page."""
        return int(self.get("max_per_page", 200))

    def get_catalog_path(self, library: Path) -> Path:
        """Get the catalog database path inside a library."""
        return library / self.get("catalog_filename", ".media-dedup.db")

    def get_library_trash_dir(self, library: Path) -> Path:
        """Get the in-library trash directory used for non-recycle-bin trashing."""
        return library / self.get("trash.library_trash_dir", ".media-dedup-trash")
