"""Update orchestration for the managed tool.

``UpdateOrchestrator.ensure_installed`` decides whether the tool needs to be
installed or updated and drives the installer when it does. Versions are
compared as plain strings: the installed binary is current exactly when its
``--version`` output equals the release tag.

No error escapes ``ensure_installed``; every failure is logged and reported
through the returned ``EnsureResult``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .errors import DependencyError, ProcessError
from .feed import ReleaseFeedClient
from .installer import Installer
from .models import CheckState, EnsureResult, EnsureStatus, ManagerConfig
from .paths import InstallPaths
from .process import DEFAULT_PROCESS_TIMEOUT, run_process
from .settings_store import IniSettingsStore
from .transport import HttpTransport, TransportConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .interfaces import SettingsStore
    from .models import Channel, PlatformArch, ProcessResult

    ProcessRunner = Callable[..., Awaitable[ProcessResult]]

logger = structlog.get_logger(__name__)


class UpdateOrchestrator:
    """Ensures the managed tool is installed at the latest version.

    Example:
        >>> orchestrator = UpdateOrchestrator.create()
        >>> result = await orchestrator.ensure_installed()
        >>> result.status
        <EnsureStatus.UP_TO_DATE: 'up_to_date'>
    """

    def __init__(
        self,
        paths: InstallPaths,
        feed: ReleaseFeedClient,
        installer: Installer,
        process_timeout: float = DEFAULT_PROCESS_TIMEOUT,
        runner: ProcessRunner = run_process,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            paths: Install path resolver.
            feed: Client resolving the latest version.
            installer: Installer for new versions.
            process_timeout: Timeout for the ``--version`` probe.
            runner: Process execution function, replaceable in tests.
        """
        self.paths = paths
        self.feed = feed
        self.installer = installer
        self.process_timeout = process_timeout
        self._runner = runner
        self._state = CheckState.UNKNOWN
        self._log = logger.bind(component="orchestrator")

    @classmethod
    def create(
        cls,
        config: ManagerConfig | None = None,
        settings: SettingsStore | None = None,
        platform_arch: PlatformArch | None = None,
    ) -> UpdateOrchestrator:
        """Build an orchestrator and its collaborators from configuration.

        Args:
            config: Manager configuration. Defaults are used when omitted.
            settings: Settings store. Defaults to the tool's INI file.
            platform_arch: Host platform. Detected when omitted.

        Returns:
            Configured UpdateOrchestrator instance.
        """
        config = config or ManagerConfig()
        paths = InstallPaths(config.tool, platform_arch)
        settings = settings or IniSettingsStore(paths.config_file_path())
        transport = HttpTransport(TransportConfig.from_settings(settings, config))
        return cls(
            paths=paths,
            feed=ReleaseFeedClient(config.tool, transport, settings),
            installer=Installer(paths, transport, lock_timeout=config.lock_timeout_seconds),
            process_timeout=config.process_timeout_seconds,
        )

    @property
    def state(self) -> CheckState:
        """Return whether a check has completed on this instance."""
        return self._state

    def is_installed(self) -> bool:
        """Return True if the binary exists at its expected path."""
        return self.paths.binary_path().is_file()

    async def installed_version(self) -> str:
        """Return the version reported by ``<binary> --version``.

        Raises:
            ProcessError: If the binary cannot be launched, times out or exits
                with a non-zero status.
        """
        binary = self.paths.binary_path()
        result = await self._runner(str(binary), "--version", timeout=self.process_timeout)
        if not result.success:
            raise ProcessError(result.error_text)
        return result.stdout.strip()

    async def ensure_installed(self, channel: Channel | None = None) -> EnsureResult:
        """Install or update the tool when it is missing or stale.

        Args:
            channel: Release channel. Defaults to the one selected in settings.

        Returns:
            EnsureResult describing what happened.
        """
        try:
            return await self._ensure(channel)
        finally:
            self._state = CheckState.CHECKED

    async def _ensure(self, channel: Channel | None) -> EnsureResult:
        binary = self.paths.binary_path()
        log = self._log.bind(binary=str(binary))

        if not self.is_installed():
            log.info("cli_not_installed")
            latest = await self.feed.resolve_latest_version(channel)
            if latest is None:
                log.error("cli_not_ready", reason="latest version could not be resolved")
                return EnsureResult(
                    status=EnsureStatus.NOT_READY,
                    binary_path=binary,
                    error_message="Latest version could not be resolved",
                )
            return await self._install(latest, EnsureStatus.INSTALLED, None)

        try:
            current = await self.installed_version()
        except ProcessError as e:
            log.error("cli_version_probe_failed", error=str(e))
            return EnsureResult(
                status=EnsureStatus.PROBE_FAILED,
                binary_path=binary,
                ready=True,
                error_message=str(e),
            )

        log.debug("cli_current_version", version=current)
        log.debug("checking_for_updates")

        latest = await self.feed.resolve_latest_version(channel)
        if latest is None:
            log.warning("update_check_inconclusive", installed=current)
            return EnsureResult(
                status=EnsureStatus.INCONCLUSIVE,
                binary_path=binary,
                installed_version=current,
                ready=True,
                error_message="Latest version could not be resolved",
            )

        if current == latest:
            log.info("cli_up_to_date", version=current)
            return EnsureResult(
                status=EnsureStatus.UP_TO_DATE,
                binary_path=binary,
                installed_version=current,
                latest_version=latest,
                ready=True,
            )

        log.info("cli_update_found", installed=current, latest=latest)
        return await self._install(latest, EnsureStatus.UPDATED, current)

    async def _install(
        self, version: str, success_status: EnsureStatus, current: str | None
    ) -> EnsureResult:
        binary = self.paths.binary_path()
        try:
            await self.installer.install_version(version)
        except (DependencyError, OSError) as e:
            self._log.error("cli_install_failed", version=version, error=str(e))
            return EnsureResult(
                status=EnsureStatus.FAILED,
                binary_path=binary,
                installed_version=current,
                latest_version=version,
                ready=self.is_installed(),
                error_message=str(e),
            )

        return EnsureResult(
            status=success_status,
            binary_path=binary,
            installed_version=current,
            latest_version=version,
            ready=True,
        )
