"""Tests for the enabled/disabled and profile folder naming rules."""
from __future__ import annotations

import pytest

from Utils.folder_names import (
    clean_name,
    inactive_saves_folder_name,
    is_disabled,
    is_enabled,
    names_equal,
    parse_profile_name,
    parse_saves_folder_name,
    profile_folder_name,
    to_disabled,
    to_enabled,
    validate_name,
)

NAMES = ["ContentPatcher", ".ContentPatcher", "..Twice", "[PROFILE] Farm", "a.b"]


@pytest.mark.parametrize("name", NAMES)
def test_prefix_transforms_are_idempotent(name: str) -> None:
    assert to_disabled(to_disabled(name)) == to_disabled(name)
    assert to_enabled(to_enabled(name)) == to_enabled(name)
    assert to_enabled(to_disabled(name)) == clean_name(name)


@pytest.mark.parametrize("name", NAMES)
def test_enabled_and_disabled_are_exclusive(name: str) -> None:
    assert is_enabled(name) != is_disabled(name)
    assert is_disabled(to_disabled(name))
    assert is_enabled(to_enabled(name))


@pytest.mark.parametrize("profile", ["Farm1", "My Farm", "Vanilla"])
def test_profile_folder_name_round_trips(profile: str) -> None:
    folder = profile_folder_name(profile)
    assert folder == f"[PROFILE] {profile}"
    assert parse_profile_name(folder) == profile
    assert parse_profile_name(to_disabled(folder)) == profile


@pytest.mark.parametrize("folder", ["ContentPatcher", ".hidden", "[PROFILE] ", "[PROFILE]x"])
def test_parse_profile_name_rejects_other_folders(folder: str) -> None:
    assert parse_profile_name(folder) is None


def test_saves_folder_name_round_trips() -> None:
    assert inactive_saves_folder_name("Farm1") == ".Farm1Saves"
    assert parse_saves_folder_name(".Farm1Saves") == "Farm1"
    assert parse_saves_folder_name("Saves") is None
    assert parse_saves_folder_name(".Saves") is None


class TestValidateName:
    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_is_rejected(self, text) -> None:
        assert "empty" in validate_name(text)

    @pytest.mark.parametrize("text", ["a/b", "a\\b", "what?", "x:y", "tab\tname", "a|b"])
    def test_invalid_characters_are_rejected(self, text: str) -> None:
        assert "invalid characters" in validate_name(text)

    @pytest.mark.parametrize("text", [".", "..", ".hidden"])
    def test_dot_names_are_rejected(self, text: str) -> None:
        assert validate_name(text) is not None

    def test_field_label_is_used(self) -> None:
        assert validate_name("", "Profile name") == "Profile name cannot be empty."

    @pytest.mark.parametrize("text", ["Farm 1", "Ginger Island (modded)", "  padded  "])
    def test_valid_names_pass(self, text: str) -> None:
        assert validate_name(text) is None


def test_names_equal_is_case_insensitive() -> None:
    assert names_equal("Farm1", "FARM1")
    assert not names_equal("Farm1", "Farm2")
    assert names_equal(None, None)
    assert not names_equal("Farm1", None)
