"""Command line interface for the CLI dependency manager."""

from importlib.metadata import version as get_package_version

__version__ = get_package_version("cli-dependency-manager")
