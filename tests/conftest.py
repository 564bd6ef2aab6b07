"""Pytest configuration for Vista Player."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolated_config_home(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    """Keep config and state files out of the real user profile."""
    home = tmp_path_factory.mktemp("config-home")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    monkeypatch.setenv("APPDATA", str(home))


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    del config
    if os.environ.get("VISTA_PLAYER_CI") != "1":
        return
    skip_vlc = pytest.mark.skip(reason="Skipping VLC-dependent tests in CI.")
    for item in items:
        if "vlc" in item.keywords:
            item.add_marker(skip_vlc)
