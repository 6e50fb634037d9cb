"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest

from discordnotify.engine.preferences import PreferenceIndex
from discordnotify.services.sync import SettingsSynchronizer


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path, monkeypatch):
    """Point the config directory at a temp dir and drop any real token."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    return tmp_path / "xdg" / "discordnotify"


@pytest.fixture
def index() -> PreferenceIndex:
    return PreferenceIndex()


@pytest.fixture
def synchronizer(index: PreferenceIndex) -> SettingsSynchronizer:
    return SettingsSynchronizer(index)
