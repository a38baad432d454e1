"""Install lock scoped to a resource directory.

Two checkers in the same process (or in different processes, such as two
editor windows) must never extract over the same binary at once. The lock
combines:

- an ``asyncio.Lock`` per resource directory for callers in this process
- an exclusively created lock file for callers in other processes

Lock files older than ``stale_after`` seconds are assumed to belong to a
crashed process and are broken.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from .errors import LockTimeoutError

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

logger = structlog.get_logger(__name__)

LOCK_FILE_NAME = ".install.lock"
DEFAULT_LOCK_TIMEOUT = 120.0
DEFAULT_STALE_AFTER = 600.0
DEFAULT_POLL_INTERVAL = 0.2

@dataclass
class _SharedLock:
    """In-process lock for one resource directory and the number of users."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


# event loop -> resolved resource directory -> shared lock. Entries are
# dropped once unused, so a lock never outlives its loop.
_process_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, _SharedLock]] = (
    weakref.WeakKeyDictionary()
)


def _checkout(resource_dir: Path) -> tuple[dict[str, _SharedLock], str, _SharedLock]:
    locks = _process_locks.setdefault(asyncio.get_running_loop(), {})
    key = str(resource_dir.resolve())
    shared = locks.get(key)
    if shared is None:
        shared = locks[key] = _SharedLock()
    shared.users += 1
    return locks, key, shared


def _checkin(locks: dict[str, _SharedLock], key: str, shared: _SharedLock) -> None:
    shared.users -= 1
    if shared.users == 0 and locks.get(key) is shared:
        del locks[key]


class InstallLock:
    """Async context manager serializing installs into one resource directory.

    Example:
        >>> async with InstallLock(paths.resource_directory()):
        ...     await installer.install_version("v1.2.0")
    """

    def __init__(
        self,
        resource_dir: Path,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        stale_after: float = DEFAULT_STALE_AFTER,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the lock.

        Args:
            resource_dir: Directory the lock protects. The lock file lives inside it.
            timeout: Maximum time to wait for the lock in seconds.
            stale_after: Age in seconds after which a lock file is broken.
            poll_interval: Delay between attempts to create the lock file.
        """
        self.resource_dir = resource_dir
        self.path = resource_dir / LOCK_FILE_NAME
        self.timeout = timeout
        self.stale_after = stale_after
        self.poll_interval = poll_interval
        self._acquired_at: float | None = None
        self._shared: tuple[dict[str, _SharedLock], str, _SharedLock] | None = None
        self._log = logger.bind(component="install_lock", path=str(self.path))

    @property
    def held(self) -> bool:
        """Return True while this instance holds the lock."""
        return self._acquired_at is not None

    async def acquire(self) -> None:
        """Acquire the in-process lock, then the lock file.

        Raises:
            LockTimeoutError: If the lock is not obtained within ``timeout``.
        """
        start = time.monotonic()
        deadline = start + self.timeout
        locks, key, shared = _checkout(self.resource_dir)

        try:
            try:
                await asyncio.wait_for(shared.lock.acquire(), timeout=self.timeout)
            except TimeoutError:
                self._log.warning("install_lock_timeout", holder="this process")
                raise LockTimeoutError(str(self.path), time.monotonic() - start) from None

            try:
                while not self._try_create():
                    if self._break_if_stale():
                        continue
                    if time.monotonic() >= deadline:
                        self._log.warning("install_lock_timeout", holder="another process")
                        raise LockTimeoutError(str(self.path), time.monotonic() - start)
                    self._log.debug("waiting_for_install_lock")
                    await asyncio.sleep(self.poll_interval)
            except BaseException:
                shared.lock.release()
                raise
        except BaseException:
            _checkin(locks, key, shared)
            raise

        self._shared = (locks, key, shared)
        self._acquired_at = time.monotonic()
        self._log.debug("install_lock_acquired", waited=round(self._acquired_at - start, 3))

    def release(self) -> None:
        """Release the lock. Does nothing if it is not held."""
        if self._acquired_at is None:
            return

        hold_duration = time.monotonic() - self._acquired_at
        self._acquired_at = None
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            self._log.warning("install_lock_release_failed", error=str(e))
        finally:
            if self._shared is not None:
                locks, key, shared = self._shared
                self._shared = None
                shared.lock.release()
                _checkin(locks, key, shared)

        self._log.debug("install_lock_released", hold_duration=round(hold_duration, 3))

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")
        return True

    def _break_if_stale(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < self.stale_after:
            return False
        self._log.warning("breaking_stale_install_lock", age_seconds=round(age, 1))
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
        return True

    async def __aenter__(self) -> InstallLock:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
