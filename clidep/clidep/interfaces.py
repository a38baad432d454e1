"""Core interfaces for the dependency manager.

This module defines abstract base classes for the configuration layers the
update cycle depends on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ConfigLoader(ABC):
    """Abstract base class for manager configuration loaders."""

    @abstractmethod
    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration dictionary
        """
        ...

    @abstractmethod
    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a file.

        Args:
            config: Configuration dictionary
            path: Path to save the configuration
        """
        ...


class SettingsStore(ABC):
    """Persisted key/value settings grouped into sections.

    The ``settings`` section holds user choices (channel, proxy, TLS
    verification); the ``internal`` section holds the release feed cache.
    """

    @abstractmethod
    def get_setting(self, key: str, section: str = "settings") -> str | None:
        """Return a setting value, or None if it is not set.

        Args:
            key: Setting name
            section: Section the setting lives in
        """
        ...

    @abstractmethod
    def save_setting(self, section: str, key: str, value: str) -> None:
        """Persist a setting value, overwriting any previous value.

        Args:
            section: Section the setting lives in
            key: Setting name
            value: New value
        """
        ...

    def get_setting_as_boolean(self, key: str, section: str = "settings") -> bool:
        """Return a setting interpreted as a boolean flag.

        ``true``, ``yes``, ``on`` and ``1`` (any case) are true; anything else,
        including a missing value, is false.
        """
        value = self.get_setting(key, section)
        if value is None:
            return False
        return value.strip().lower() in ("true", "yes", "on", "1")
