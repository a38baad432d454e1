"""HTTP transport for release feeds and archive downloads.

Proxy and TLS choices are carried by an explicit ``TransportConfig`` passed to
the transport's constructor, so two transports in the same process never
influence each other.

Features:
    - Conditional feed requests returning a fully read response
    - Streamed downloads in fixed-size chunks
    - Retry logic with exponential backoff for downloads
    - Explicit timeouts on every request
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp
import structlog

from .errors import DownloadError, NetworkError
from .models import FeedResponse

if TYPE_CHECKING:
    from pathlib import Path

    from .interfaces import SettingsStore
    from .models import ManagerConfig

logger = structlog.get_logger(__name__)

# Default configuration values
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_FEED_TIMEOUT_SECONDS = 30.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 600.0
DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks


@dataclass(frozen=True)
class TransportConfig:
    """Connection settings for an HttpTransport."""

    user_agent: str
    proxy: str | None = None
    verify_ssl: bool = True
    feed_timeout_seconds: float = DEFAULT_FEED_TIMEOUT_SECONDS
    download_timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_settings(cls, settings: SettingsStore, config: ManagerConfig) -> TransportConfig:
        """Build a transport configuration from the settings store.

        Args:
            settings: Store providing ``proxy`` and ``no_ssl_verify``.
            config: Manager configuration providing timeouts and retries.

        Returns:
            TransportConfig for the current settings.
        """
        return cls(
            user_agent=config.tool.user_agent,
            proxy=settings.get_setting("proxy"),
            verify_ssl=not settings.get_setting_as_boolean("no_ssl_verify"),
            feed_timeout_seconds=config.feed_timeout_seconds,
            download_timeout_seconds=config.download_timeout_seconds,
            max_retries=config.download_max_retries,
            retry_delay=config.download_retry_delay,
        )


class HttpTransport:
    """aiohttp-based HTTP client used by the feed client and the installer.

    Example:
        >>> transport = HttpTransport(TransportConfig(user_agent="example"))
        >>> response = await transport.fetch("https://example.com/releases/latest")
        >>> response.status
        200
    """

    def __init__(self, config: TransportConfig) -> None:
        """Initialize the transport.

        Args:
            config: Connection settings.
        """
        self.config = config
        self._log = logger.bind(component="http_transport")
        if not config.verify_ssl:
            self._log.warning("tls_verification_disabled")

    def _request_kwargs(self) -> dict[str, object]:
        kwargs: dict[str, object] = {}
        if self.config.proxy:
            kwargs["proxy"] = self.config.proxy
        if not self.config.verify_ssl:
            kwargs["ssl"] = False
        return kwargs

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = dict(headers) if headers else {}
        merged.setdefault("User-Agent", self.config.user_agent)
        return merged

    async def fetch(self, url: str, headers: dict[str, str] | None = None) -> FeedResponse:
        """Perform a GET request and read the whole response.

        Args:
            url: URL to fetch.
            headers: Extra request headers.

        Returns:
            FeedResponse with status, headers and body. Error statuses are
            returned, not raised.

        Raises:
            NetworkError: If the request fails at the transport level.
        """
        timeout = aiohttp.ClientTimeout(total=self.config.feed_timeout_seconds)
        try:
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(url, headers=self._headers(headers), **self._request_kwargs()) as resp,
            ):
                body = b"" if resp.status == 304 else await resp.read()
                return FeedResponse(status=resp.status, headers=dict(resp.headers), body=body)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e
        except TimeoutError:
            raise NetworkError(f"Request to {url} timed out") from None

    async def download(self, url: str, destination: Path) -> int:
        """Stream ``url`` to ``destination`` with retries.

        Args:
            url: URL to download.
            destination: Final file path. Written via a temporary sibling file.

        Returns:
            Number of bytes downloaded.

        Raises:
            DownloadError: If every attempt fails or the error is not retryable.
        """
        log = self._log.bind(url=url)
        last_error: DownloadError | None = None

        for attempt in range(self.config.max_retries + 1):
            if attempt > 0:
                delay = self.config.retry_delay * (2 ** (attempt - 1))
                log.info("retrying_download", attempt=attempt, delay=delay)
                await asyncio.sleep(delay)

            try:
                return await self._perform_download(url, destination)
            except DownloadError as e:
                last_error = e
                log.warning(
                    "download_attempt_failed",
                    attempt=attempt + 1,
                    error=str(e),
                    retryable=e.retryable,
                )
                if not e.retryable:
                    raise

        attempts = self.config.max_retries + 1
        raise DownloadError(
            f"Download failed after {attempts} attempts: {last_error}", retryable=False
        )

    async def _perform_download(self, url: str, destination: Path) -> int:
        """Perform a single download attempt.

        Raises:
            DownloadError: If the attempt fails.
        """
        start_time = time.monotonic()
        timeout = aiohttp.ClientTimeout(total=self.config.download_timeout_seconds)

        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_path = destination.parent / f".{destination.name}.download"

        try:
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(url, headers=self._headers(None), **self._request_kwargs()) as resp,
            ):
                if resp.status == 404:
                    raise DownloadError(f"File not found: {url}", retryable=False)
                if resp.status >= 400:
                    raise DownloadError(
                        f"HTTP error {resp.status}: {resp.reason}",
                        retryable=resp.status >= 500,
                    )

                bytes_downloaded = 0
                with temp_path.open("wb") as f:
                    async for chunk in resp.content.iter_chunked(DEFAULT_CHUNK_SIZE):
                        f.write(chunk)
                        bytes_downloaded += len(chunk)

            temp_path.replace(destination)

        except aiohttp.ClientError as e:
            temp_path.unlink(missing_ok=True)
            raise DownloadError(f"Network error: {e}") from e

        except TimeoutError:
            temp_path.unlink(missing_ok=True)
            raise DownloadError("Download timed out") from None

        except DownloadError:
            temp_path.unlink(missing_ok=True)
            raise

        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise DownloadError(f"Cannot write {destination}: {e}", retryable=False) from e

        self._log.debug(
            "download_complete",
            url=url,
            path=str(destination),
            bytes=bytes_downloaded,
            duration_seconds=round(time.monotonic() - start_time, 3),
        )
        return bytes_downloaded
