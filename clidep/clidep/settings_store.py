"""INI-backed settings store.

The managed tool reads the same file, so the format stays plain INI with a
``[settings]`` section for user choices and an ``[internal]`` section for
state written by the dependency manager.
"""

from __future__ import annotations

import configparser
import os
import threading
from pathlib import Path

import structlog

from .interfaces import SettingsStore

logger = structlog.get_logger(__name__)


class IniSettingsStore(SettingsStore):
    """Settings stored in an INI file.

    The file is re-read on every access so edits made by other processes are
    picked up. Writes are serialized with a lock and replace the file
    atomically.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the INI file. It need not exist yet.
        """
        self.path = path
        self._lock = threading.Lock()
        self._log = logger.bind(component="settings_store", path=str(path))

    def _load(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        if self.path.exists():
            parser.read(self.path, encoding="utf-8")
        return parser

    def _read(self) -> configparser.ConfigParser:
        try:
            return self._load()
        except (configparser.Error, UnicodeDecodeError) as e:
            self._log.warning("settings_file_unreadable", error=str(e))
            return configparser.ConfigParser(interpolation=None)

    def get_setting(self, key: str, section: str = "settings") -> str | None:
        """Return a setting value, or None if the key or section is missing."""
        value = self._read().get(section, key, fallback=None)
        if value is None or value == "":
            return None
        return value

    def save_setting(self, section: str, key: str, value: str) -> None:
        """Persist a setting value, creating the section if needed.

        Raises:
            OSError: If the file cannot be written, or exists but cannot be
                parsed. An unparseable file is left untouched.
        """
        with self._lock:
            try:
                parser = self._load()
            except (configparser.Error, UnicodeDecodeError) as e:
                msg = f"Refusing to rewrite unreadable settings file {self.path}: {e}"
                raise OSError(msg) from e
            if not parser.has_section(section):
                parser.add_section(section)
            parser.set(section, key, value)

            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(f".{self.path.name}.tmp")
            try:
                with tmp_path.open("w", encoding="utf-8") as f:
                    parser.write(f)
                os.replace(tmp_path, self.path)
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise

        self._log.debug("setting_saved", section=section, key=key)
