"""Host platform detection.

Maps the running operating system and CPU architecture onto the tags used in
release asset names (``windows``/``darwin``/``linux`` and ``amd64``/``386``).
"""

from __future__ import annotations

import os
import platform
import sys
from functools import lru_cache

from .models import PlatformArch

_64BIT_MACHINES = frozenset({"amd64", "x86_64", "x64", "arm64", "aarch64", "ia64", "ppc64le"})


def _normalize_os(system: str) -> str:
    system = system.lower()
    if system.startswith(("cygwin", "msys", "win")):
        return "windows"
    return system or "unknown"


def is_64bit_os() -> bool:
    """Return True if the operating system is confirmed to be 64-bit.

    A 32-bit interpreter on 64-bit Windows reports the native architecture
    through ``PROCESSOR_ARCHITEW6432``, which is checked first.
    """
    wow64 = os.environ.get("PROCESSOR_ARCHITEW6432", "")
    if wow64.lower() in _64BIT_MACHINES:
        return True
    if platform.machine().lower() in _64BIT_MACHINES:
        return True
    return sys.maxsize > 2**32


@lru_cache(maxsize=1)
def detect_platform() -> PlatformArch:
    """Detect the host platform once per process.

    Returns:
        PlatformArch with the OS tag and ``amd64`` or ``386``.
    """
    return PlatformArch(
        os=_normalize_os(platform.system()),
        arch="amd64" if is_64bit_os() else "386",
    )
