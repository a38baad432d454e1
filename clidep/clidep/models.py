"""Core data models for the dependency manager.

This module defines Pydantic models for configuration, release feed payloads
and update results, plus small dataclasses for transient values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path  # noqa: TC003 - needed at runtime by Pydantic

from pydantic import BaseModel, ConfigDict, Field

WAKATIME_RELEASES_API = "https://api.github.com/repos/wakatime/wakatime-cli/releases"


class Channel(str, Enum):
    """Release stream consulted when resolving the latest version."""

    STABLE = "stable"
    ALPHA = "alpha"


class LogLevel(str, Enum):
    """Log level for the command line interface."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class CheckState(str, Enum):
    """Progress of a single ``ensure_installed`` invocation."""

    UNKNOWN = "unknown"
    CHECKED = "checked"


class EnsureStatus(str, Enum):
    """Outcome of an ``ensure_installed`` invocation."""

    UP_TO_DATE = "up_to_date"
    INSTALLED = "installed"
    UPDATED = "updated"
    INCONCLUSIVE = "inconclusive"
    PROBE_FAILED = "probe_failed"
    NOT_READY = "not_ready"
    FAILED = "failed"


class ToolSpec(BaseModel):
    """Describes the managed command line tool and where it is published."""

    name: str = Field(
        default="wakatime",
        description="Short tool name; used for the resource directory and config file",
    )
    binary_name: str = Field(
        default="wakatime-cli", description="Prefix of the binary and release asset names"
    )
    home_env_var: str = Field(
        default="WAKATIME_HOME", description="Environment variable overriding the home directory"
    )
    stable_feed_url: str = Field(
        default=f"{WAKATIME_RELEASES_API}/latest",
        description="Feed returning the latest stable release object",
    )
    alpha_feed_url: str = Field(
        default=f"{WAKATIME_RELEASES_API}?per_page=1",
        description="Feed returning a newest-first list of releases",
    )
    download_prefix: str = Field(
        default="https://github.com/wakatime/wakatime-cli/releases/download",
        description="URL prefix for versioned release archives",
    )
    user_agent: str = Field(
        default="github.com/wakatime/cli-dependency-manager",
        description="User-Agent sent with every request",
    )

    def feed_url(self, channel: Channel) -> str:
        """Return the feed URL for a channel."""
        return self.alpha_feed_url if channel is Channel.ALPHA else self.stable_feed_url


class ManagerConfig(BaseModel):
    """Configuration for the dependency manager itself."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level for the CLI")
    feed_timeout_seconds: float = Field(
        default=30.0, description="Total timeout for a release feed request"
    )
    download_timeout_seconds: float = Field(
        default=600.0, description="Total timeout for a single archive download attempt"
    )
    download_max_retries: int = Field(
        default=3, description="Maximum number of retry attempts for failed downloads"
    )
    download_retry_delay: float = Field(
        default=1.0, description="Initial delay between retries in seconds (exponential backoff)"
    )
    process_timeout_seconds: float = Field(
        default=10.0, description="Timeout for the installed binary's version probe"
    )
    lock_timeout_seconds: float = Field(
        default=120.0, description="Maximum time to wait for the install lock"
    )
    tool: ToolSpec = Field(default_factory=ToolSpec)


class GithubRelease(BaseModel):
    """A single release object from the feed. Only the tag is used."""

    model_config = ConfigDict(extra="ignore")

    tag_name: str = Field(..., min_length=1)


class CacheEntry(BaseModel):
    """Last version seen on a channel together with its HTTP validator."""

    cached_version: str
    cache_validator: str


class InstallLocation(BaseModel):
    """Filesystem locations used for one version of the managed tool."""

    home_dir: Path
    resource_dir: Path
    binary_path: Path
    archive_path: Path


class EnsureResult(BaseModel):
    """Result of making sure the managed tool is installed and current."""

    status: EnsureStatus
    binary_path: Path
    installed_version: str | None = Field(
        default=None, description="Version reported by the binary before any install"
    )
    latest_version: str | None = Field(default=None, description="Resolved latest version")
    ready: bool = Field(default=False, description="Whether a binary is present after the check")
    error_message: str | None = Field(default=None, description="Error message if not ready")


@dataclass(frozen=True)
class PlatformArch:
    """Host operating system and architecture tags used in asset names."""

    os: str
    arch: str

    @property
    def executable_suffix(self) -> str:
        """Return the executable file extension for this platform."""
        return ".exe" if self.os == "windows" else ""


@dataclass
class ProcessResult:
    """Captured outcome of running an external command."""

    args: list[str]
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def success(self) -> bool:
        """Return True if the command launched and exited with status 0."""
        return self.error is None and self.exit_code == 0

    @property
    def error_text(self) -> str:
        """Return the most useful description of a failure."""
        if self.error:
            return self.error
        return self.stderr.strip() or f"exited with status {self.exit_code}"


@dataclass
class FeedResponse:
    """A fully read HTTP response from the release feed."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Return a header value, matching the name case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None
