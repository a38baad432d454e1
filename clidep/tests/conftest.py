"""Shared test fixtures for the core library tests."""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from clidep.models import ManagerConfig, PlatformArch, ToolSpec
from clidep.paths import InstallPaths
from clidep.settings_store import IniSettingsStore
from clidep.transport import HttpTransport, TransportConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

LINUX_AMD64 = PlatformArch(os="linux", arch="amd64")
BINARY_NAME = "wakatime-cli-linux-amd64"


def make_archive(files: dict[str, bytes | str], mode: int = 0o755) -> bytes:
    """Build a zip archive in memory with Unix permissions on every entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = mode << 16
            zf.writestr(info, content)
    return buffer.getvalue()


def cli_script(version: str) -> str:
    """Return a shell script that behaves like ``<binary> --version``."""
    return f"#!/bin/sh\necho {version}\n"


@dataclass
class FakeReleaseFeed:
    """In-memory release feed and download host served over real HTTP."""

    stable_tag: str = "v1.2.0"
    alpha_tags: list[str] = field(default_factory=lambda: ["v1.3.0-alpha.1", "v1.2.0"])
    last_modified: str | None = "Mon,01Jan"
    feed_status: int = 200
    feed_body: bytes | None = None
    archives: dict[str, bytes] = field(default_factory=dict)
    feed_requests: list[dict[str, str]] = field(default_factory=list)
    download_requests: list[str] = field(default_factory=list)

    def add_release(self, version: str, files: dict[str, bytes | str] | None = None) -> None:
        """Publish an archive for ``version`` containing a working binary."""
        self.archives[version] = make_archive(files or {BINARY_NAME: cli_script(version)})

    def _feed_response(self, payload: Any) -> web.Response:
        if self.feed_status != 200:
            return web.Response(status=self.feed_status, text="feed error")
        headers = {"Last-Modified": self.last_modified} if self.last_modified else {}
        if self.feed_body is not None:
            return web.Response(body=self.feed_body, headers=headers)
        return web.json_response(payload, headers=headers)

    def _not_modified(self, request: web.Request) -> bool:
        since = request.headers.get("If-Modified-Since")
        return since is not None and since == self.last_modified

    async def latest(self, request: web.Request) -> web.Response:
        self.feed_requests.append(dict(request.headers))
        if self._not_modified(request):
            return web.Response(status=304)
        return self._feed_response({"tag_name": self.stable_tag, "draft": False})

    async def releases(self, request: web.Request) -> web.Response:
        self.feed_requests.append(dict(request.headers))
        if self._not_modified(request):
            return web.Response(status=304)
        return self._feed_response([{"tag_name": tag} for tag in self.alpha_tags])

    async def download(self, request: web.Request) -> web.Response:
        version = request.match_info["version"]
        asset = request.match_info["asset"]
        self.download_requests.append(f"{version}/{asset}")
        archive = self.archives.get(version)
        if archive is None or asset != f"{BINARY_NAME}.zip":
            return web.Response(status=404)
        return web.Response(body=archive, content_type="application/zip")

    def app(self) -> web.Application:
        application = web.Application()
        application.router.add_get("/releases/latest", self.latest)
        application.router.add_get("/releases", self.releases)
        application.router.add_get("/download/{version}/{asset}", self.download)
        return application


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the tool's home override and XDG config at temporary directories."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("WAKATIME_HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))
    return home


@pytest.fixture
def feed() -> FakeReleaseFeed:
    """Create a release feed with v1.2.0 published."""
    fake = FakeReleaseFeed()
    fake.add_release("v1.2.0")
    return fake


@pytest_asyncio.fixture
async def feed_server(feed: FakeReleaseFeed) -> AsyncIterator[TestServer]:
    """Serve the fake release feed on a local port."""
    server = TestServer(feed.app())
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def tool(feed_server: TestServer) -> ToolSpec:
    """Tool description pointing at the local feed server."""
    return ToolSpec(
        stable_feed_url=str(feed_server.make_url("/releases/latest")),
        alpha_feed_url=str(feed_server.make_url("/releases")),
        download_prefix=str(feed_server.make_url("/download")),
    )


@pytest.fixture
def manager_config(tool: ToolSpec) -> ManagerConfig:
    """Manager configuration with short timeouts and no retry delay."""
    return ManagerConfig(
        tool=tool,
        feed_timeout_seconds=5.0,
        download_timeout_seconds=5.0,
        download_max_retries=1,
        download_retry_delay=0.0,
        lock_timeout_seconds=2.0,
    )


@pytest.fixture
def paths(tool: ToolSpec) -> InstallPaths:
    """Install paths for a Linux amd64 host."""
    return InstallPaths(tool, LINUX_AMD64)


@pytest.fixture
def settings(paths: InstallPaths) -> IniSettingsStore:
    """Settings store at the tool's config file path."""
    return IniSettingsStore(paths.config_file_path())


@pytest.fixture
def transport(manager_config: ManagerConfig, settings: IniSettingsStore) -> HttpTransport:
    """HTTP transport built from the test configuration."""
    return HttpTransport(TransportConfig.from_settings(settings, manager_config))


@pytest.fixture
def archive_factory() -> Callable[..., bytes]:
    """Return the in-memory archive builder."""
    return make_archive
