"""Shared fixtures: an isolated Mods/ + saves root and a fresh registry."""
from __future__ import annotations

from pathlib import Path

import pytest

from Profiles.profile_state import ProfileLocations, ProfileStateMachine
from Profiles.registry import ProfileRegistry
from Profiles.shared_pool import SharedPoolManager


@pytest.fixture
def locations(tmp_path: Path) -> ProfileLocations:
    mods_root = tmp_path / "Mods"
    saves_root = tmp_path / "StardewValley"
    mods_root.mkdir()
    saves_root.mkdir()
    return ProfileLocations(mods_root, saves_root)


@pytest.fixture
def registry() -> ProfileRegistry:
    return ProfileRegistry()


@pytest.fixture
def state(locations: ProfileLocations) -> ProfileStateMachine:
    return ProfileStateMachine(locations)


@pytest.fixture
def pool(locations: ProfileLocations) -> SharedPoolManager:
    return SharedPoolManager(locations)


@pytest.fixture
def profiles(locations, registry, state):
    """Factory: create profiles by name; the first one listed becomes active."""
    def _make(*names: str) -> dict[str, Path]:
        for name in names:
            state.create(name)
            registry.add_profile(name)
        state.switch_profile(None, names[0])
        registry.active_profile = names[0]
        return {name: locations.find_profile_dir(name) for name in names}
    return _make
