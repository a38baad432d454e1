"""Tests for UpdateOrchestrator decision logic."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from clidep.errors import DownloadError, ExtractError
from clidep.feed import ReleaseFeedClient
from clidep.installer import Installer
from clidep.models import (
    Channel,
    CheckState,
    EnsureStatus,
    ManagerConfig,
    PlatformArch,
    ProcessResult,
    ToolSpec,
)
from clidep.orchestrator import UpdateOrchestrator
from clidep.paths import InstallPaths
from clidep.settings_store import IniSettingsStore


class FakeRunner:
    """Records ``--version`` probes and answers with a fixed result."""

    def __init__(self, stdout: str = "", exit_code: int = 0, error: str | None = None) -> None:
        self.stdout = stdout
        self.exit_code = exit_code
        self.error = error
        self.calls: list[tuple[str, ...]] = []

    async def __call__(self, *args: str, timeout: float) -> ProcessResult:
        self.calls.append(args)
        return ProcessResult(
            args=list(args),
            exit_code=None if self.error else self.exit_code,
            stdout=self.stdout,
            stderr="",
            error=self.error,
        )


def _make(
    latest: str | None,
    runner: FakeRunner,
    install_error: Exception | None = None,
) -> tuple[UpdateOrchestrator, MagicMock, MagicMock]:
    paths = InstallPaths(ToolSpec(), PlatformArch(os="linux", arch="amd64"))

    feed = MagicMock(spec=ReleaseFeedClient)
    feed.resolve_latest_version = AsyncMock(return_value=latest)

    async def install(version: str) -> Path:
        if install_error is not None:
            raise install_error
        paths.binary_path().write_text(f"binary {version}")
        return paths.binary_path()

    installer = MagicMock(spec=Installer)
    installer.install_version = AsyncMock(side_effect=install)

    orchestrator = UpdateOrchestrator(paths, feed, installer, process_timeout=1.0, runner=runner)
    return orchestrator, feed, installer


def _install_binary(orchestrator: UpdateOrchestrator) -> Path:
    binary = orchestrator.paths.binary_path()
    binary.write_text("binary")
    return binary


class TestMissingBinary:
    """Behaviour when no binary is installed."""

    @pytest.mark.asyncio
    async def test_installs_without_probing(self) -> None:
        """An absent binary is installed without a version probe."""
        runner = FakeRunner()
        orchestrator, feed, installer = _make("v1.2.0", runner)

        result = await orchestrator.ensure_installed()

        assert runner.calls == []
        feed.resolve_latest_version.assert_awaited_once_with(None)
        installer.install_version.assert_awaited_once_with("v1.2.0")
        assert result.status == EnsureStatus.INSTALLED
        assert result.latest_version == "v1.2.0"
        assert result.ready

    @pytest.mark.asyncio
    async def test_not_ready_without_version(self) -> None:
        """No binary and no resolvable version is reported as not ready."""
        orchestrator, _, installer = _make(None, FakeRunner())

        result = await orchestrator.ensure_installed()

        installer.install_version.assert_not_awaited()
        assert result.status == EnsureStatus.NOT_READY
        assert not result.ready
        assert result.error_message

    @pytest.mark.asyncio
    async def test_install_failure_reported(self) -> None:
        """Install errors are reported through the result."""
        orchestrator, _, _ = _make(
            "v1.2.0", FakeRunner(), install_error=DownloadError("HTTP error 500", retryable=True)
        )

        result = await orchestrator.ensure_installed()

        assert result.status == EnsureStatus.FAILED
        assert not result.ready
        assert "HTTP error 500" in (result.error_message or "")


class TestInstalledBinary:
    """Behaviour when a binary is present."""

    @pytest.mark.asyncio
    async def test_up_to_date(self) -> None:
        """Equal version strings mean no install."""
        runner = FakeRunner(stdout="v1.2.0\n")
        orchestrator, _, installer = _make("v1.2.0", runner)
        binary = _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        assert runner.calls == [(str(binary), "--version")]
        installer.install_version.assert_not_awaited()
        assert result.status == EnsureStatus.UP_TO_DATE
        assert result.installed_version == "v1.2.0"

    @pytest.mark.asyncio
    async def test_stale_binary_updated_once(self) -> None:
        """Different versions trigger exactly one install of the latest version."""
        orchestrator, _, installer = _make("v1.2.0", FakeRunner(stdout="v1.1.0"))
        _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        installer.install_version.assert_awaited_once_with("v1.2.0")
        assert result.status == EnsureStatus.UPDATED
        assert result.installed_version == "v1.1.0"
        assert result.latest_version == "v1.2.0"

    @pytest.mark.asyncio
    async def test_comparison_is_exact(self) -> None:
        """Versions are compared as strings; a missing prefix counts as different."""
        orchestrator, _, installer = _make("v1.2.0", FakeRunner(stdout="1.2.0"))
        _install_binary(orchestrator)

        await orchestrator.ensure_installed()

        installer.install_version.assert_awaited_once_with("v1.2.0")

    @pytest.mark.asyncio
    async def test_probe_failure_does_not_reinstall(self) -> None:
        """A binary that cannot report its version is left alone."""
        orchestrator, feed, installer = _make(
            "v1.2.0", FakeRunner(error="Failed to launch: permission denied")
        )
        _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        feed.resolve_latest_version.assert_not_awaited()
        installer.install_version.assert_not_awaited()
        assert result.status == EnsureStatus.PROBE_FAILED
        assert "permission denied" in (result.error_message or "")

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_probe_failure(self) -> None:
        """A non-zero exit status from the probe is a probe failure."""
        orchestrator, _, installer = _make("v1.2.0", FakeRunner(stdout="v1.1.0", exit_code=1))
        _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        installer.install_version.assert_not_awaited()
        assert result.status == EnsureStatus.PROBE_FAILED

    @pytest.mark.asyncio
    async def test_unresolvable_latest_is_inconclusive(self) -> None:
        """Without a latest version nothing is installed."""
        orchestrator, _, installer = _make(None, FakeRunner(stdout="v1.1.0"))
        _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        installer.install_version.assert_not_awaited()
        assert result.status == EnsureStatus.INCONCLUSIVE
        assert result.installed_version == "v1.1.0"
        assert result.ready

    @pytest.mark.asyncio
    async def test_failed_update_keeps_binary(self) -> None:
        """A failed update reports failure but the old binary stays usable."""
        orchestrator, _, _ = _make(
            "v1.2.0", FakeRunner(stdout="v1.1.0"), install_error=ExtractError("corrupt")
        )
        _install_binary(orchestrator)

        result = await orchestrator.ensure_installed()

        assert result.status == EnsureStatus.FAILED
        assert result.ready

    @pytest.mark.asyncio
    async def test_channel_passed_to_feed(self) -> None:
        """An explicit channel is forwarded to the feed client."""
        orchestrator, feed, _ = _make("v1.3.0-alpha.1", FakeRunner(stdout="v1.3.0-alpha.1"))
        _install_binary(orchestrator)

        await orchestrator.ensure_installed(Channel.ALPHA)

        feed.resolve_latest_version.assert_awaited_once_with(Channel.ALPHA)


class TestState:
    """Tests for the per-invocation check state."""

    @pytest.mark.asyncio
    async def test_state_transitions(self) -> None:
        """The orchestrator starts unknown and ends checked."""
        orchestrator, _, _ = _make(None, FakeRunner())
        assert orchestrator.state == CheckState.UNKNOWN

        await orchestrator.ensure_installed()

        assert orchestrator.state == CheckState.CHECKED


class TestCreate:
    """Tests for UpdateOrchestrator.create()."""

    def test_wires_collaborators(self, isolated_home: Path) -> None:
        """create() builds paths, settings, transport, feed and installer."""
        settings = IniSettingsStore(isolated_home / ".wakatime.cfg")
        settings.save_setting("settings", "proxy", "http://proxy.local:3128")
        config = ManagerConfig(process_timeout_seconds=3.0, lock_timeout_seconds=9.0)

        orchestrator = UpdateOrchestrator.create(config, platform_arch=PlatformArch("linux", "386"))

        assert orchestrator.paths.binary_path().name == "wakatime-cli-linux-386"
        assert orchestrator.process_timeout == 3.0
        assert orchestrator.installer.lock_timeout == 9.0
        assert orchestrator.feed.transport.config.proxy == "http://proxy.local:3128"
        assert orchestrator.feed.transport is orchestrator.installer.transport

    def test_accepts_custom_settings(self, tmp_path: Path) -> None:
        """A provided settings store is used instead of the INI file."""
        store = IniSettingsStore(tmp_path / "custom.cfg")
        orchestrator = UpdateOrchestrator.create(settings=store)
        assert orchestrator.feed.settings is store
