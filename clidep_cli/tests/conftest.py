"""Shared test fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Isolate tests from the real user's home and configuration.

    Sets WAKATIME_HOME and XDG_CONFIG_HOME to temporary directories so that
    tests never install binaries into or read settings from the real home.
    """
    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("WAKATIME_HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))

    yield home


@pytest.fixture
def unreachable_config(tmp_path: Path) -> Path:
    """Write a manager config whose feed and downloads point at a closed port."""
    path = tmp_path / "unreachable.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "feed_timeout_seconds": 2.0,
                "download_timeout_seconds": 2.0,
                "download_max_retries": 0,
                "download_retry_delay": 0.0,
                "tool": {
                    "stable_feed_url": "http://127.0.0.1:9/releases/latest",
                    "alpha_feed_url": "http://127.0.0.1:9/releases",
                    "download_prefix": "http://127.0.0.1:9/download",
                },
            }
        )
    )
    return path
