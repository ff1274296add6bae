"""Tests for the shared mod pool: share, unshare, snapshots, validation and repair."""
from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from Profiles.mod_folders import ModFolder, load_collection, read_mod_folder
from Profiles.profile_state import ProfileLocations, ProfileStateMachine
from Profiles.shared_pool import SharedPoolManager
from Utils.dir_links import is_link, points_to
from Utils.errors import (
    FilesystemConflict,
    IdentityMismatch,
    NotFoundError,
    SourceNotFound,
    ValidationError,
)
from helpers import make_collection, make_mod, read_config, tree_snapshot, write_config, write_manifest

CP = "ContentPatcher"
CP_ID = "Pathoschild.ContentPatcher"
BUNDLE = {"ContentPatcher": CP_ID, "SpaceCore": "spacechase0.SpaceCore"}


@pytest.fixture
def shared_cp(locations, registry, pool, profiles):
    """ContentPatcher shared across A, B and C, each with its own settings."""
    dirs = profiles("A", "B", "C")
    for name, d in dirs.items():
        make_mod(d, CP, CP_ID, config={"owner": name})
    mod = read_mod_folder(dirs["A"] / CP)
    return pool.share_mod(mod, ["A", "B", "C"], registry)


def _profile_dir(locations, name):
    return locations.find_profile_dir(name)


class TestShareMod:
    def test_one_pooled_copy_linked_everywhere(self, locations, registry, shared_cp) -> None:
        pooled = locations.pool_dir / CP

        assert pooled.is_dir() and not is_link(pooled)
        for name in ("A", "B", "C"):
            assert points_to(_profile_dir(locations, name) / CP, pooled)
        assert shared_cp.profile_names == ["A", "B", "C"]
        assert shared_cp.unique_id == CP_ID
        assert registry.shared_mods[CP] is shared_cp

    def test_active_profile_settings_are_live(self, locations, pool, shared_cp) -> None:
        assert read_config(locations.pool_dir / CP) == {"owner": "A"}
        for name in ("A", "B", "C"):
            assert read_config(pool.snapshot_dir(name, CP)) == {"owner": name}

    def test_needs_two_distinct_profiles(self, registry, pool, profiles) -> None:
        dirs = profiles("A", "B")
        make_mod(dirs["A"], CP, CP_ID)
        mod = read_mod_folder(dirs["A"] / CP)
        with pytest.raises(ValidationError):
            pool.share_mod(mod, ["A", "a"], registry)

    def test_no_real_copy_anywhere(self, locations, registry, pool, profiles) -> None:
        profiles("A", "B")
        ghost = ModFolder(folder_name="Ghost", path=locations.mods_root / "Ghost")
        with pytest.raises(SourceNotFound):
            pool.share_mod(ghost, ["A", "B"], registry)
        assert not locations.pool_dir.exists()

    def test_unknown_profile_fails_before_moving(self, locations, registry, pool, profiles) -> None:
        dirs = profiles("A", "B")
        make_mod(dirs["A"], CP, CP_ID)
        before = tree_snapshot(locations.mods_root)
        with pytest.raises(NotFoundError):
            pool.share_mod(read_mod_folder(dirs["A"] / CP), ["A", "Nobody"], registry)
        assert tree_snapshot(locations.mods_root) == before

    def test_disabled_source_links_at_canonical_name(self, locations, registry, pool, profiles) -> None:
        dirs = profiles("A", "B")
        make_mod(dirs["B"], "." + CP, CP_ID)

        pool.share_mod(read_mod_folder(dirs["B"] / ("." + CP)), ["A", "B"], registry)

        for name in ("A", "B"):
            d = _profile_dir(locations, name)
            assert points_to(d / CP, locations.pool_dir / CP)
            assert not (d / ("." + CP)).exists()

    def test_already_shared_name_is_rejected(self, registry, pool, shared_cp, locations) -> None:
        mod = ModFolder(folder_name=CP, path=_profile_dir(locations, "A") / CP)
        with pytest.raises(FilesystemConflict):
            pool.share_mod(mod, ["A", "B"], registry)


class TestUnshare:
    def test_unshare_one_keeps_others_linked(self, locations, registry, pool, shared_cp) -> None:
        pool.unshare_mod(CP, "A", registry)

        a_copy = _profile_dir(locations, "A") / CP
        assert a_copy.is_dir() and not is_link(a_copy)
        assert read_config(a_copy) == {"owner": "A"}
        for name in ("B", "C"):
            assert points_to(_profile_dir(locations, name) / CP, locations.pool_dir / CP)
        assert shared_cp.profile_names == ["B", "C"]
        assert not pool.snapshot_dir("A", CP).exists()

    def test_unshare_inactive_profile_restores_its_settings(self, locations, registry, pool,
                                                           shared_cp) -> None:
        pool.unshare_mod(CP, "B", registry)
        assert read_config(_profile_dir(locations, "B") / CP) == {"owner": "B"}

    def test_second_to_last_unshare_dissolves(self, locations, registry, pool, shared_cp) -> None:
        pool.unshare_mod(CP, "A", registry)
        pool.unshare_mod(CP, "B", registry)

        for name in ("A", "B", "C"):
            d = _profile_dir(locations, name) / CP
            assert d.is_dir() and not is_link(d)
            assert read_config(d) == {"owner": name}
        assert CP not in registry.shared_mods
        assert not (locations.pool_dir / CP).exists()

    def test_unshare_all(self, locations, registry, pool, shared_cp) -> None:
        pool.unshare_all(CP, registry)

        assert registry.shared_mods == {}
        for name in ("A", "B", "C"):
            assert not is_link(_profile_dir(locations, name) / CP)

    def test_unshare_keeps_disabled_state(self, locations, registry, pool, shared_cp) -> None:
        b_dir = _profile_dir(locations, "B")
        (b_dir / CP).rename(b_dir / ("." + CP))

        pool.unshare_mod(CP, "B", registry)

        assert (b_dir / ("." + CP)).is_dir()
        assert not is_link(b_dir / ("." + CP))
        assert not (b_dir / CP).exists()

    def test_unshare_non_member_raises(self, registry, pool, shared_cp) -> None:
        with pytest.raises(NotFoundError):
            pool.unshare_mod(CP, "Nobody", registry)

    def test_unshare_unknown_entry_is_noop(self, registry, pool) -> None:
        pool.unshare_mod("NotShared", "A", registry)
        assert registry.shared_mods == {}


class TestSettingsSnapshots:
    def test_save_and_restore(self, locations, registry, pool, shared_cp) -> None:
        pooled = locations.pool_dir / CP
        write_config(pooled, {"owner": "A", "edited": True})

        pool.save_settings_snapshot("A", registry)
        pool.restore_settings_snapshot("B", registry)

        assert read_config(pool.snapshot_dir("A", CP)) == {"owner": "A", "edited": True}
        assert read_config(pooled) == {"owner": "B"}

        pool.restore_settings_snapshot("A", registry)
        assert read_config(pooled) == {"owner": "A", "edited": True}


class TestShareCollection:
    def _setup(self, locations, profiles, b_version="1.0.0"):
        dirs = profiles("A", "B")
        make_collection(dirs["A"], "Bundle", BUNDLE)
        make_collection(dirs["B"], "Bundle", BUNDLE)
        if b_version != "1.0.0":
            write_manifest(dirs["B"] / "Bundle" / "SpaceCore", "spacechase0.SpaceCore",
                           b_version)
        return dirs

    def test_version_mismatch_fails_without_mutation(self, locations, registry, pool,
                                                    profiles) -> None:
        dirs = self._setup(locations, profiles, b_version="1.1.0")
        before = tree_snapshot(locations.mods_root)

        with pytest.raises(IdentityMismatch) as exc_info:
            pool.share_collection(load_collection(dirs["A"] / "Bundle"), ["A", "B"], registry)

        assert any("SpaceCore" in d for d in exc_info.value.differences)
        assert tree_snapshot(locations.mods_root) == before
        assert registry.shared_collections == {}

    def test_missing_instance_fails(self, locations, registry, pool, profiles) -> None:
        dirs = profiles("A", "B")
        make_collection(dirs["A"], "Bundle", BUNDLE)
        with pytest.raises(NotFoundError):
            pool.share_collection(load_collection(dirs["A"] / "Bundle"), ["A", "B"], registry)

    def test_identical_instances_share(self, locations, registry, pool, profiles) -> None:
        dirs = self._setup(locations, profiles)
        write_config(dirs["B"] / "Bundle" / "SpaceCore", {"owner": "B"})

        entry = pool.share_collection(load_collection(dirs["A"] / "Bundle"), ["A", "B"], registry)

        pooled = locations.pool_dir / "Bundle"
        assert sorted(entry.fingerprint) == ["ContentPatcher", "SpaceCore"]
        for name in ("A", "B"):
            assert points_to(_profile_dir(locations, name) / "Bundle", pooled)
            assert registry.collections_for(name) == ["Bundle"]
        assert read_config(pool.snapshot_dir("B", "Bundle") / "SpaceCore") == {"owner": "B"}
        assert not (pooled / "SpaceCore" / "config.json").exists()

    def test_cleanup_profile_dissolves_to_real_copy(self, locations, registry, pool,
                                                    profiles) -> None:
        dirs = self._setup(locations, profiles)
        pool.share_collection(load_collection(dirs["A"] / "Bundle"), ["A", "B"], registry)

        pool.cleanup_profile("B", registry)

        a_copy = _profile_dir(locations, "A") / "Bundle"
        assert a_copy.is_dir() and not is_link(a_copy)
        assert (a_copy / "SpaceCore" / "manifest.json").is_file()
        assert not (locations.pool_dir / "Bundle").exists()
        assert registry.shared_collections == {}
        assert not is_link(_profile_dir(locations, "B") / "Bundle")

    def test_validate_collections_reports_drift(self, locations, registry, pool,
                                                profiles) -> None:
        dirs = self._setup(locations, profiles)
        pool.share_collection(load_collection(dirs["A"] / "Bundle"), ["A", "B"], registry)
        assert pool.validate_collections(registry) == {}

        write_manifest(locations.pool_dir / "Bundle" / "SpaceCore", "spacechase0.SpaceCore", "2.0.0")

        drift = pool.validate_collections(registry)
        assert list(drift) == ["Bundle"]
        assert "SpaceCore: Version mismatch (1.0.0 vs 2.0.0)" in drift["Bundle"]


class TestValidateAndRepair:
    @pytest.fixture
    def vanilla_farm(self, locations, registry, pool, profiles):
        dirs = profiles("Vanilla", "Farm1")
        for d in dirs.values():
            make_mod(d, CP, CP_ID)
        pool.share_mod(read_mod_folder(dirs["Vanilla"] / CP), ["Vanilla", "Farm1"], registry)

    def test_healthy_pool_has_no_broken_entries(self, registry, pool, vanilla_farm) -> None:
        assert pool.validate_pool(registry) == []

    def test_missing_pool_folder_is_broken_then_removed(self, locations, registry, pool,
                                                        vanilla_farm) -> None:
        shutil.rmtree(locations.pool_dir / CP)

        assert pool.validate_pool(registry) == [CP]
        pool.repair_broken(CP, registry)

        assert registry.shared_mods == {}
        assert pool.validate_pool(registry) == []
        assert not is_link(_profile_dir(locations, "Farm1") / CP)

    def test_missing_link_is_recreated(self, locations, registry, pool, vanilla_farm) -> None:
        link = _profile_dir(locations, "Farm1") / CP
        link.unlink()

        assert pool.validate_pool(registry) == [CP]
        pool.repair_broken(CP, registry)

        assert points_to(link, locations.pool_dir / CP)
        assert pool.validate_pool(registry) == []

    def test_real_copy_in_link_slot_dissolves_share(self, locations, registry, pool,
                                                    vanilla_farm) -> None:
        farm = _profile_dir(locations, "Farm1")
        (farm / CP).unlink()
        make_mod(farm, CP, CP_ID)

        pool.repair_broken(CP, registry)

        assert registry.shared_mods == {}
        vanilla_copy = _profile_dir(locations, "Vanilla") / CP
        assert vanilla_copy.is_dir() and not is_link(vanilla_copy)
        assert not (locations.pool_dir / CP).exists()


class TestRenameAndDuplicates:
    def test_rename_profile_references(self, locations, registry, pool, state, shared_cp) -> None:
        state.rename("B", "Beta")
        pool.rename_profile_references("B", "Beta", registry)

        assert shared_cp.profile_names == ["A", "Beta", "C"]
        assert read_config(pool.snapshot_dir("Beta", CP)) == {"owner": "B"}
        assert not pool.snapshot_dir("B").exists()

    def test_detect_duplicate_mods(self, locations, registry, pool, profiles) -> None:
        dirs = profiles("A", "B")
        make_mod(dirs["A"], CP, CP_ID)
        make_mod(dirs["B"], "CP-renamed", CP_ID)
        make_mod(dirs["A"], "SpaceCore", "spacechase0.SpaceCore")

        dupes = pool.detect_duplicate_mods(["A", "B"], registry)

        assert list(dupes) == [CP_ID]
        assert [(p, m.folder_name) for p, m in dupes[CP_ID]] == [("A", CP), ("B", "CP-renamed")]

    def test_linked_mods_are_not_duplicates(self, registry, pool, shared_cp) -> None:
        assert pool.detect_duplicate_mods(["A", "B", "C"], registry) == {}

    def test_detect_duplicate_collections(self, locations, registry, pool, profiles) -> None:
        dirs = profiles("C", "a", "B")
        for d in dirs.values():
            make_collection(d, "Bundle", BUNDLE)
        write_manifest(dirs["C"] / "Bundle" / "SpaceCore", "spacechase0.SpaceCore", "9.0.0")
        for name in dirs:
            registry.add_profile_collection(name, "Bundle")

        groups = pool.detect_duplicate_collections(registry)

        assert len(groups) == 1
        assert [i.profile for i in groups[0].instances] == ["a", "B", "C"]
        assert groups[0].has_identity_mismatch
        assert groups[0].instances[0].sub_mod_count == 2


class TestDetachAndDissolve:
    def test_detach_drops_link_without_copy(self, locations, registry, pool, shared_cp) -> None:
        pool.detach_profile(CP, "B", registry)

        b_slot = _profile_dir(locations, "B") / CP
        assert not b_slot.exists() and not is_link(b_slot)
        assert shared_cp.profile_names == ["A", "C"]
        assert not pool.snapshot_dir("B", CP).exists()
        assert (locations.pool_dir / CP).is_dir()

    def test_detach_to_one_consumer_dissolves(self, locations, registry, pool,
                                              shared_cp) -> None:
        pool.detach_profile(CP, "B", registry)
        pool.detach_profile(CP, "C", registry)

        a_copy = _profile_dir(locations, "A") / CP
        assert a_copy.is_dir() and not is_link(a_copy)
        assert read_config(a_copy) == {"owner": "A"}
        assert registry.shared_mods == {}

    def test_detach_non_member_is_noop(self, registry, pool, shared_cp) -> None:
        pool.detach_profile(CP, "Z", registry)
        assert shared_cp.profile_names == ["A", "B", "C"]

    def test_dissolve_is_logged_once(self, locations, registry, profiles) -> None:
        messages: list[str] = []
        pool = SharedPoolManager(locations, log_fn=messages.append)
        dirs = profiles("A", "B")
        for d in dirs.values():
            make_mod(d, CP, CP_ID)
        pool.share_mod(read_mod_folder(dirs["A"] / CP), ["A", "B"], registry)

        pool.unshare_mod(CP, "B", registry)

        assert sum("Dissolved shared entry" in m for m in messages) == 1


def test_relative_roots_link_to_the_pool(tmp_path: Path, monkeypatch, registry) -> None:
    monkeypatch.chdir(tmp_path)
    Path("Mods").mkdir()
    Path("saves").mkdir()
    locations = ProfileLocations(Path("Mods"), Path("saves"))
    state = ProfileStateMachine(locations)
    pool = SharedPoolManager(locations)
    for name in ("A", "B"):
        state.create(name)
        registry.add_profile(name)
    state.switch_profile(None, "A")
    registry.active_profile = "A"
    for name in ("A", "B"):
        make_mod(locations.find_profile_dir(name), CP, CP_ID)

    pool.share_mod(read_mod_folder(locations.find_profile_dir("A") / CP), ["A", "B"], registry)

    assert locations.mods_root.is_absolute()
    for name in ("A", "B"):
        link = locations.find_profile_dir(name) / CP
        assert points_to(link, locations.pool_dir / CP)
        assert (link / "manifest.json").is_file()
    assert pool.validate_pool(registry) == []
