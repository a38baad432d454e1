"""CLI Dependency Manager Core Library.

Keeps an external command line tool installed at the latest released version
before the host application invokes it.

Module Overview:
    config: YAML-based manager configuration (XDG spec compliant)
    errors: Exception hierarchy for network, parse, process and extract failures
    feed: Latest-version resolution with conditional release feed requests
    host: Host OS/architecture detection
    installer: Download, staged extraction and installation of releases
    interfaces: Abstract base classes for configuration layers
    lock: Install lock scoped to a resource directory
    models: Pydantic data models and transient dataclasses
    orchestrator: Decides when to install or update and drives the installer
    paths: Deterministic install locations
    process: External command execution
    settings_store: INI-backed settings shared with the managed tool
    transport: aiohttp transport with explicit proxy/TLS configuration
"""

from importlib.metadata import version as get_package_version

from clidep.config import ConfigManager, YamlConfigLoader, get_config_dir, get_default_config_path
from clidep.errors import (
    DependencyError,
    DownloadError,
    ExtractError,
    LockTimeoutError,
    NetworkError,
    ParseError,
    ProcessError,
)
from clidep.feed import ReleaseFeedClient, cache_keys, parse_release_tag
from clidep.host import detect_platform, is_64bit_os
from clidep.installer import Installer, attempt_cleanup, extract_archive
from clidep.interfaces import ConfigLoader, SettingsStore
from clidep.lock import InstallLock
from clidep.models import (
    CacheEntry,
    Channel,
    CheckState,
    EnsureResult,
    EnsureStatus,
    FeedResponse,
    GithubRelease,
    InstallLocation,
    LogLevel,
    ManagerConfig,
    PlatformArch,
    ProcessResult,
    ToolSpec,
)
from clidep.orchestrator import UpdateOrchestrator
from clidep.paths import InstallPaths
from clidep.process import run_process
from clidep.settings_store import IniSettingsStore
from clidep.transport import HttpTransport, TransportConfig

__version__ = get_package_version("cli-dependency-manager")

__all__ = [
    "CacheEntry",
    "Channel",
    "CheckState",
    "ConfigLoader",
    "ConfigManager",
    "DependencyError",
    "DownloadError",
    "EnsureResult",
    "EnsureStatus",
    "ExtractError",
    "FeedResponse",
    "GithubRelease",
    "HttpTransport",
    "IniSettingsStore",
    "InstallLocation",
    "InstallLock",
    "InstallPaths",
    "Installer",
    "LockTimeoutError",
    "LogLevel",
    "ManagerConfig",
    "NetworkError",
    "ParseError",
    "PlatformArch",
    "ProcessError",
    "ProcessResult",
    "ReleaseFeedClient",
    "SettingsStore",
    "ToolSpec",
    "TransportConfig",
    "UpdateOrchestrator",
    "YamlConfigLoader",
    "attempt_cleanup",
    "cache_keys",
    "detect_platform",
    "extract_archive",
    "get_config_dir",
    "get_default_config_path",
    "is_64bit_os",
    "parse_release_tag",
    "run_process",
]
