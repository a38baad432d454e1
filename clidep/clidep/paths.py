"""Filesystem locations of the managed tool.

All locations hang off a home directory, which is either the tool's override
environment variable (when it names an existing directory) or the user's
profile directory.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from .host import detect_platform
from .models import InstallLocation, PlatformArch, ToolSpec

logger = structlog.get_logger(__name__)


class InstallPaths:
    """Computes deterministic install locations for a tool.

    Example:
        >>> paths = InstallPaths(ToolSpec())
        >>> paths.binary_path()
        PosixPath('/home/user/.wakatime/wakatime-cli-linux-amd64')
    """

    def __init__(self, tool: ToolSpec, platform_arch: PlatformArch | None = None) -> None:
        """Initialize the path resolver.

        Args:
            tool: Description of the managed tool.
            platform_arch: Host platform. Detected when not provided.
        """
        self.tool = tool
        self.platform = platform_arch or detect_platform()

    def home_directory(self) -> Path:
        """Return the home directory, honouring the override variable."""
        override = os.environ.get(self.tool.home_env_var)
        if override and Path(override).is_dir():
            return Path(override)
        return Path.home()

    def resource_directory(self) -> Path:
        """Return the tool's private directory, creating it if needed."""
        path = self.home_directory() / f".{self.tool.name}"
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)
            logger.debug("resource_directory_created", path=str(path))
        return path

    @property
    def asset_stem(self) -> str:
        """Return ``<binary>-<platform>-<arch>``, shared by binary and asset names."""
        return f"{self.tool.binary_name}-{self.platform.os}-{self.platform.arch}"

    def binary_path(self) -> Path:
        """Return the path of the installed binary."""
        return self.resource_directory() / f"{self.asset_stem}{self.platform.executable_suffix}"

    def config_file_path(self) -> Path:
        """Return the path of the tool's INI configuration file."""
        return self.home_directory() / f".{self.tool.name}.cfg"

    def archive_path(self, version: str) -> Path:
        """Return the download path of the archive for ``version``."""
        return self.resource_directory() / f"{self.tool.binary_name}-{version}.zip"

    def download_url(self, version: str) -> str:
        """Return the release asset URL for ``version`` on this platform."""
        prefix = self.tool.download_prefix.rstrip("/")
        return f"{prefix}/{version}/{self.asset_stem}.zip"

    def location(self, version: str) -> InstallLocation:
        """Return all locations involved in installing ``version``."""
        return InstallLocation(
            home_dir=self.home_directory(),
            resource_dir=self.resource_directory(),
            binary_path=self.binary_path(),
            archive_path=self.archive_path(version),
        )
