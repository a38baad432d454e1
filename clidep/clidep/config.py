"""Configuration management for the dependency manager.

This module provides YAML-based loading and saving of the manager's own
configuration, following the XDG Base Directory Specification.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from .interfaces import ConfigLoader
from .models import ManagerConfig

logger = structlog.get_logger(__name__)


def get_config_dir() -> Path:
    """Get the configuration directory following XDG spec.

    Returns:
        Path to the configuration directory.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"

    config_dir = base / "cli-dependency-manager"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    Returns:
        Path to the default config file.
    """
    return get_config_dir() / "config.yaml"


class YamlConfigLoader(ConfigLoader):
    """YAML-based configuration loader.

    Loads and saves configuration from/to YAML files.
    """

    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            path: Path to the configuration file.

        Returns:
            Configuration dictionary.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        config_path = Path(path)

        if not config_path.exists():
            logger.debug("config_file_not_found", path=path)
            raise FileNotFoundError(f"Configuration file not found: {path}")

        data = yaml.safe_load(config_path.read_text())

        if data is None:
            return {}

        return data  # type: ignore[no-any-return]

    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a YAML file.

        Args:
            config: Configuration dictionary.
            path: Path to save the configuration.
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        content = yaml.dump(config, default_flow_style=False, sort_keys=False)
        config_path.write_text(content)

        logger.info("config_saved", path=path)


class ConfigManager:
    """Manages the manager configuration file."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Uses default path if not provided.
        """
        self.config_path = config_path or get_default_config_path()
        self._loader = YamlConfigLoader()

    def load(self) -> ManagerConfig:
        """Load configuration from file.

        Returns:
            ManagerConfig with loaded values, or defaults if file doesn't exist.
        """
        try:
            data = self._loader.load(str(self.config_path))
        except FileNotFoundError:
            logger.info("using_default_config")
            return ManagerConfig()
        return ManagerConfig(**data)

    def init_config(self, force: bool = False) -> bool:
        """Initialize a new configuration file with defaults.

        Args:
            force: If True, overwrite existing configuration.

        Returns:
            True if configuration was created, False if it already exists.
        """
        if self.config_path.exists() and not force:
            logger.info("config_exists", path=str(self.config_path))
            return False

        self._loader.save(ManagerConfig().model_dump(mode="json"), str(self.config_path))
        logger.info("config_initialized", path=str(self.config_path))
        return True
