"""Main CLI entry point for cli-deps.

This module defines the Typer application and its commands.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.table import Table

from clidep import (
    Channel,
    ConfigManager,
    DependencyError,
    EnsureResult,
    EnsureStatus,
    LogLevel,
    ManagerConfig,
    UpdateOrchestrator,
)

from . import __version__

app = typer.Typer(
    name="cli-deps",
    help="Keep an external command line tool installed at its latest release.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

_STATUS_STYLES = {
    EnsureStatus.UP_TO_DATE: "green",
    EnsureStatus.INSTALLED: "green",
    EnsureStatus.UPDATED: "green",
    EnsureStatus.INCONCLUSIVE: "yellow",
    EnsureStatus.PROBE_FAILED: "yellow",
    EnsureStatus.NOT_READY: "red",
    EnsureStatus.FAILED: "red",
}

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to the manager configuration file."),
]
ChannelOption = Annotated[
    Channel | None,
    typer.Option("--channel", help="Release channel. Defaults to the tool's settings."),
]
LogLevelOption = Annotated[
    LogLevel | None,
    typer.Option("--log-level", "-l", help="Override the configured log level."),
]


def configure_logging(log_level: str) -> None:
    """Configure structlog and standard logging with the specified level.

    Args:
        log_level: Log level string (debug, info, warning, error).
    """
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    level = level_map.get(log_level.lower(), logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, force=True)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]cli-deps[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """cli-deps: self-updating command line tool dependency manager."""


def _load_config(config_path: Path | None, log_level: LogLevel | None) -> ManagerConfig:
    config = ConfigManager(config_path).load()
    configure_logging((log_level or config.log_level).value)
    return config


def _print_result(result: EnsureResult) -> None:
    style = _STATUS_STYLES[result.status]
    console.print(f"[{style}]{result.status.value.replace('_', ' ')}[/{style}]")
    if result.installed_version:
        console.print(f"  Installed: {result.installed_version}")
    if result.latest_version:
        console.print(f"  Latest:    {result.latest_version}")
    console.print(f"  Binary:    {result.binary_path}")
    if result.error_message:
        console.print(f"  [dim]{result.error_message}[/dim]")


@app.command()
def ensure(
    config_path: ConfigOption = None,
    channel: ChannelOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Install the tool if it is missing, or update it if it is stale.

    Exits with status 1 when no usable binary is available afterwards.
    """
    config = _load_config(config_path, log_level)
    orchestrator = UpdateOrchestrator.create(config)
    result = asyncio.run(orchestrator.ensure_installed(channel))
    _print_result(result)
    if not result.ready:
        raise typer.Exit(1)


@app.command()
def latest(
    config_path: ConfigOption = None,
    channel: ChannelOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Print the latest released version."""
    config = _load_config(config_path, log_level)
    orchestrator = UpdateOrchestrator.create(config)
    version = asyncio.run(orchestrator.feed.resolve_latest_version(channel))
    if version is None:
        console.print("[red]Latest version could not be resolved[/red]")
        raise typer.Exit(1)
    console.print(version)


@app.command()
def install(
    version: Annotated[str, typer.Argument(help="Release tag to install, e.g. v1.2.0.")],
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Install a specific version, replacing the current binary."""
    config = _load_config(config_path, log_level)
    orchestrator = UpdateOrchestrator.create(config)
    try:
        binary = asyncio.run(orchestrator.installer.install_version(version))
    except (DependencyError, OSError) as e:
        console.print(f"[red]Installation failed: {e}[/red]")
        raise typer.Exit(1) from None
    console.print(f"[green]Installed {version}: {binary}[/green]")


@app.command()
def paths(config_path: ConfigOption = None) -> None:
    """Show where the tool and its files live."""
    config = _load_config(config_path, None)
    install_paths = UpdateOrchestrator.create(config).paths

    table = Table(title=f"{config.tool.binary_name} locations", show_header=True)
    table.add_column("Location", style="cyan")
    table.add_column("Path")
    table.add_column("Exists", justify="center")

    for label, path in (
        ("Home", install_paths.home_directory()),
        ("Resources", install_paths.resource_directory()),
        ("Binary", install_paths.binary_path()),
        ("Config file", install_paths.config_file_path()),
    ):
        exists = "[green]✓[/green]" if path.exists() else "[red]✗[/red]"
        table.add_row(label, str(path), exists)

    console.print(table)


# Create config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage the manager configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(config_path: ConfigOption = None) -> None:
    """Show the effective configuration."""
    import yaml

    config_manager = ConfigManager(config_path)
    config = config_manager.load()

    console.print(f"[bold]Configuration File:[/bold] {config_manager.config_path}")
    console.print()
    console.print(yaml.dump(config.model_dump(mode="json"), default_flow_style=False))


@config_app.command("init")
def config_init(
    config_path: ConfigOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing configuration."),
    ] = False,
) -> None:
    """Initialize the configuration file with defaults."""
    config_manager = ConfigManager(config_path)

    if config_manager.init_config(force=force):
        console.print(f"[green]Configuration initialized: {config_manager.config_path}[/green]")
    else:
        console.print(
            f"[yellow]Configuration already exists: {config_manager.config_path}[/yellow]"
        )
        console.print("Use --force to overwrite.")


@config_app.command("path")
def config_path_command(config_path: ConfigOption = None) -> None:
    """Show the configuration file path."""
    console.print(str(ConfigManager(config_path).config_path))


if __name__ == "__main__":
    app()
