"""Latest-version resolution against an upstream release feed.

Each channel has a feed URL and its own cache entry in the ``internal``
section of the settings store. When a validator is cached, the request is
made conditional with ``If-Modified-Since``; a 304 answer returns the cached
version without reading a body. Any other successful answer is parsed and,
when it carries ``Last-Modified``, refreshes the cache.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter, ValidationError

from .errors import NetworkError, ParseError
from .models import CacheEntry, Channel, GithubRelease

if TYPE_CHECKING:
    from .interfaces import SettingsStore
    from .models import FeedResponse, ToolSpec
    from .transport import HttpTransport

logger = structlog.get_logger(__name__)

CACHE_SECTION = "internal"

_RELEASE_LIST = TypeAdapter(list[GithubRelease])


def cache_keys(channel: Channel) -> tuple[str, str]:
    """Return the (version, validator) setting keys for a channel."""
    if channel is Channel.ALPHA:
        return "cli_version_alpha", "cli_version_alpha_last_modified"
    return "cli_version", "cli_version_last_modified"


def parse_release_tag(body: bytes, channel: Channel) -> str:
    """Extract the release tag from a feed body.

    Args:
        body: Raw JSON response body.
        channel: Stable bodies are one release object, alpha bodies a
            newest-first list of them.

    Returns:
        The ``tag_name`` of the newest release.

    Raises:
        ParseError: If the body is not the expected JSON shape.
    """
    try:
        data = json.loads(body)
        if channel is Channel.ALPHA:
            releases = _RELEASE_LIST.validate_python(data)
            if not releases:
                raise ParseError("Release feed returned an empty list")
            return releases[0].tag_name
        return GithubRelease.model_validate(data).tag_name
    except (ValueError, ValidationError) as e:
        raise ParseError(f"Malformed release feed body: {e}") from e


class ReleaseFeedClient:
    """Resolves the latest version of a tool on a release channel."""

    def __init__(
        self,
        tool: ToolSpec,
        transport: HttpTransport,
        settings: SettingsStore,
    ) -> None:
        """Initialize the feed client.

        Args:
            tool: Tool description providing the feed URLs.
            transport: HTTP transport used for feed requests.
            settings: Store holding the channel choice and the feed cache.
        """
        self.tool = tool
        self.transport = transport
        self.settings = settings
        self._log = logger.bind(component="release_feed")

    def active_channel(self) -> Channel:
        """Return the channel selected in the settings store."""
        return Channel.ALPHA if self.settings.get_setting_as_boolean("alpha") else Channel.STABLE

    def cached_entry(self, channel: Channel) -> CacheEntry | None:
        """Return the cached version and validator for a channel, if both are stored."""
        version_key, validator_key = cache_keys(channel)
        version = self.settings.get_setting(version_key, CACHE_SECTION)
        validator = self.settings.get_setting(validator_key, CACHE_SECTION)
        if not version or not validator:
            return None
        return CacheEntry(cached_version=version, cache_validator=validator)

    def store_entry(self, channel: Channel, entry: CacheEntry) -> None:
        """Overwrite the cache entry for a channel.

        Raises:
            OSError: If the settings store cannot be written.
        """
        version_key, validator_key = cache_keys(channel)
        self.settings.save_setting(CACHE_SECTION, version_key, entry.cached_version)
        self.settings.save_setting(CACHE_SECTION, validator_key, entry.cache_validator)

    async def resolve_latest_version(self, channel: Channel | None = None) -> str | None:
        """Return the latest version on a channel, or None if it cannot be resolved.

        Args:
            channel: Channel to query. Defaults to the one selected in settings.

        Returns:
            The release tag, or None after a logged network or parse failure.
        """
        log = self._log
        try:
            channel = channel or self.active_channel()
            log = log.bind(channel=channel.value)
            return await self._resolve(channel, log)
        except NetworkError as e:
            log.error("feed_request_failed", error=str(e))
        except ParseError as e:
            log.error("feed_parse_failed", error=str(e))
        return None

    async def _resolve(self, channel: Channel, log: structlog.stdlib.BoundLogger) -> str:
        url = self.tool.feed_url(channel)
        headers = {"Accept": "application/vnd.github+json"}

        cached = self.cached_entry(channel)
        if cached:
            headers["If-Modified-Since"] = cached.cache_validator

        response = await self.transport.fetch(url, headers)
        log.debug("feed_response", url=url, status=response.status)

        if response.status == 304 and cached:
            log.debug("feed_not_modified", version=cached.cached_version)
            return cached.cached_version

        self._check_status(response, url)
        version = parse_release_tag(response.body, channel)
        log.debug("latest_version_resolved", version=version)

        last_modified = response.header("Last-Modified")
        if last_modified:
            try:
                self.store_entry(
                    channel, CacheEntry(cached_version=version, cache_validator=last_modified)
                )
            except OSError as e:
                log.warning("feed_cache_write_failed", error=str(e))
        return version

    @staticmethod
    def _check_status(response: FeedResponse, url: str) -> None:
        if response.status >= 300:
            raise NetworkError(f"Release feed {url} answered HTTP {response.status}")
