"""
PrismPDF - Configuration Manager

This module provides centralized JSON-based configuration management.
It handles loading, saving, and upgrading user settings.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Final

from prismpdf.config import (
    CONFIG_FILE_PATH,
    EXTRACTED_FILENAME,
    MERGED_FILENAME,
    OPTIMIZED_PREFIX,
    ORGANIZED_FILENAME,
    SPLIT_ARCHIVE_FILENAME,
    WORKSPACE_DIR,
    WORKSPACE_DIR_ENV,
)
from prismpdf.constants import REORDER_PREVIEW_SCALE, SPLIT_PREVIEW_SCALE
from prismpdf.utils.logger import logger

# Default configuration values
DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "version": 1,
    "workspace": {
        # Empty means the XDG data directory
        "directory": "",
    },
    "preview": {
        "split_scale": SPLIT_PREVIEW_SCALE,
        "reorder_scale": REORDER_PREVIEW_SCALE,
    },
    "output": {
        "merged_name": MERGED_FILENAME,
        "extracted_name": EXTRACTED_FILENAME,
        "organized_name": ORGANIZED_FILENAME,
        "split_archive_name": SPLIT_ARCHIVE_FILENAME,
        "optimized_prefix": OPTIMIZED_PREFIX,
    },
    "compress": {
        "object_streams": True,
    },
}


class ConfigManager:
    """Manages application configuration in JSON format.

    Values are addressed with dot-separated paths such as
    ``"preview.split_scale"``. Missing keys are filled in from
    ``DEFAULT_CONFIG`` whenever the stored version is older.
    """

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to the configuration file.
                        Defaults to CONFIG_FILE_PATH.
        """
        self.config_path = config_path or CONFIG_FILE_PATH
        self._config: dict[str, Any] = {}

        os.makedirs(os.path.dirname(self.config_path), exist_ok=True)
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file or create default."""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, encoding="utf-8") as f:
                    self._config = json.load(f)
                logger.info("Configuration loaded from JSON")
                self._upgrade_config()
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading config: {e}")
                self._config = self._get_default_config()
        else:
            self._config = self._get_default_config()
            self.save()

    def _get_default_config(self) -> dict[str, Any]:
        return copy.deepcopy(DEFAULT_CONFIG)

    def _upgrade_config(self) -> None:
        """Upgrade configuration to latest version if needed."""
        current_version = self._config.get("version", 0)

        if current_version < DEFAULT_CONFIG["version"]:
            self._merge_defaults(self._config, DEFAULT_CONFIG)
            self._config["version"] = DEFAULT_CONFIG["version"]
            logger.info(f"Configuration upgraded to version {DEFAULT_CONFIG['version']}")

    def _merge_defaults(self, config: dict, defaults: dict) -> None:
        """Merge default values into config for missing keys."""
        for key, value in defaults.items():
            if key not in config:
                config[key] = copy.deepcopy(value)
            elif isinstance(value, dict) and isinstance(config.get(key), dict):
                self._merge_defaults(config[key], value)

    def save(self) -> bool:
        """Save configuration to file.

        Returns:
            True if save was successful, False otherwise.
        """
        temp_path = f"{self.config_path}.tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.config_path)
            logger.debug("Configuration saved to JSON")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a configuration value by dot-separated path.

        Falls back to the built-in default before the caller's ``default``.
        """
        for source in (self._config, DEFAULT_CONFIG):
            value: Any = source
            for key in key_path.split("."):
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    break
            else:
                return value
        return default

    def set(self, key_path: str, value: Any, save_immediately: bool = True) -> None:
        """Set a configuration value by dot-separated path.

        Args:
            key_path: Dot-separated path to the config value
            value: Value to set
            save_immediately: Whether to save to file immediately
        """
        keys = key_path.split(".")
        config = self._config

        for key in keys[:-1]:
            if not isinstance(config.get(key), dict):
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

        if save_immediately:
            self.save()

    @property
    def workspace_dir(self) -> Path:
        """Resolve the workspace directory.

        Precedence: environment override, then settings, then the XDG default.
        """
        override = os.environ.get(WORKSPACE_DIR_ENV)
        if override:
            return Path(override).expanduser()
        configured = self.get("workspace.directory", "")
        if configured:
            return Path(configured).expanduser()
        return WORKSPACE_DIR


# Singleton instance for global access
_config_manager: ConfigManager | None = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
