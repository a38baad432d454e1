"""Download, extract and install a release of the managed tool.

An install cycle runs under the resource directory's ``InstallLock``:

1. Stream the release archive to ``<resource_dir>/<binary>-<version>.zip``.
2. Extract it into a staging directory next to the installed files.
3. Move every extracted file into place with ``os.replace``.
4. Make the binary executable.
5. Remove the archive and the staging directory (best effort).

A download or extraction failure never reaches step 3, so the previously
installed binary is left untouched.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from .errors import ExtractError
from .lock import DEFAULT_LOCK_TIMEOUT, InstallLock

if TYPE_CHECKING:
    from collections.abc import Callable

    from .paths import InstallPaths
    from .transport import HttpTransport

logger = structlog.get_logger(__name__)

_EXECUTABLE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def attempt_cleanup(action: Callable[..., Any], *args: Any, what: str) -> bool:
    """Run a cleanup action, logging instead of raising if it fails.

    Args:
        action: Callable performing the cleanup.
        *args: Arguments passed to ``action``.
        what: Short description used in the log event.

    Returns:
        True if the action succeeded.
    """
    try:
        action(*args)
    except OSError as e:
        logger.warning("cleanup_failed", what=what, error=str(e))
        return False
    return True


def _safe_members(zf: zipfile.ZipFile, root: Path) -> list[zipfile.ZipInfo]:
    """Return the file entries of an archive, rejecting paths outside ``root``."""
    resolved_root = root.resolve()
    members = []
    for info in zf.infolist():
        target = (resolved_root / info.filename).resolve()
        if not target.is_relative_to(resolved_root):
            raise ExtractError(f"Archive entry escapes the install directory: {info.filename}")
        if not info.is_dir():
            members.append(info)
    return members


def extract_archive(archive_path: Path, resource_dir: Path, required: str) -> list[Path]:
    """Extract an archive into ``resource_dir`` via a staging directory.

    Args:
        archive_path: Zip archive to extract.
        resource_dir: Directory receiving the extracted files.
        required: Relative path that must be present in the archive.

    Returns:
        Installed file paths.

    Raises:
        ExtractError: If the archive is corrupt, lacks ``required``, or a file
            cannot be written.
    """
    staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=resource_dir))
    try:
        try:
            with zipfile.ZipFile(archive_path) as zf:
                members = _safe_members(zf, staging)
                if required not in {m.filename for m in members}:
                    raise ExtractError(f"Archive {archive_path.name} does not contain {required}")
                zf.extractall(staging, members=members)
        except zipfile.BadZipFile as e:
            raise ExtractError(f"Corrupt archive {archive_path.name}: {e}") from e
        except OSError as e:
            raise ExtractError(f"Cannot extract {archive_path.name}: {e}") from e

        installed = []
        try:
            for info in members:
                source = staging / info.filename
                target = resource_dir / info.filename
                mode = (info.external_attr >> 16) & 0o777
                if mode and os.name != "nt":
                    source.chmod(mode)
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(source, target)
                installed.append(target)
        except OSError as e:
            raise ExtractError(f"Cannot install extracted files: {e}") from e
        return installed
    finally:
        attempt_cleanup(shutil.rmtree, staging, what="staging directory")


def make_executable(path: Path) -> None:
    """Add the executable bits to ``path`` on platforms that use them."""
    if os.name == "nt":
        return
    mode = path.stat().st_mode
    if mode & _EXECUTABLE_BITS != _EXECUTABLE_BITS:
        path.chmod(mode | _EXECUTABLE_BITS)


class Installer:
    """Installs a given version of the managed tool."""

    def __init__(
        self,
        paths: InstallPaths,
        transport: HttpTransport,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        """Initialize the installer.

        Args:
            paths: Install path resolver.
            transport: HTTP transport used for the archive download.
            lock_timeout: Maximum time to wait for the install lock.
        """
        self.paths = paths
        self.transport = transport
        self.lock_timeout = lock_timeout
        self._log = logger.bind(component="installer")

    async def install_version(self, version: str) -> Path:
        """Download and install ``version``.

        Args:
            version: Release tag to install.

        Returns:
            Path to the installed binary.

        Raises:
            DownloadError: If the archive cannot be downloaded.
            ExtractError: If the archive cannot be extracted or installed.
            LockTimeoutError: If another install holds the lock for too long.
        """
        location = self.paths.location(version)
        url = self.paths.download_url(version)
        log = self._log.bind(version=version)

        async with InstallLock(location.resource_dir, timeout=self.lock_timeout):
            try:
                log.debug("download_started", url=url, path=str(location.archive_path))
                size = await self.transport.download(url, location.archive_path)
                log.debug("download_finished", bytes=size)

                log.debug("extract_started", destination=str(location.resource_dir))
                installed = await asyncio.to_thread(
                    extract_archive,
                    location.archive_path,
                    location.resource_dir,
                    location.binary_path.name,
                )
                log.debug("extract_finished", files=len(installed))

                try:
                    make_executable(location.binary_path)
                except OSError as e:
                    raise ExtractError(f"Cannot mark {location.binary_path} executable: {e}") from e
            finally:
                if location.archive_path.exists():
                    attempt_cleanup(location.archive_path.unlink, what="archive")

        log.info("cli_installed", path=str(location.binary_path))
        return location.binary_path
