from __future__ import annotations

import pytest

from fontpatch.assets.constants import CLASS_FONT, CLASS_TEXTURE_2D
from fontpatch.assets.errors import (
    CorruptContainerError,
    InvalidCrossReferenceError,
    NotFoundError,
)
from fontpatch.assets.inspector import inspect_container, validate_container
from fontpatch.assets.references import AssetRef
from fontpatch.assets.registry import ContainerRegistry, LogicalIndex, Side
from fontpatch.schema.locator import locate_metadata
from fontpatch.schema.loader import SchemaSource

from game_fixture import atlas_payload, build_game


def _open(data):
    paths = locate_metadata(data)
    return ContainerRegistry.open(paths.leaf, paths.dependent, SchemaSource.load(paths.schema))


def test_dependency_slot_resolved_by_name(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        assert reg.dependency_slot == 2
        assert reg.leaf.name == "resources.assets"
        assert reg.dependent.name == "sharedassets1.assets"


def test_script_names_resolve_across_containers(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        assert reg.script_name(Side.LEAF, 0) == "TMP_FontAsset"
        assert reg.script_name(Side.LEAF, 1) == "TMP_Settings"
        assert reg.script_name(Side.DEPENDENT, 0) == "TMP_FontAsset"
        assert reg.type_name_of(-5) == "TMP_FontAsset"
        assert reg.type_name_of(-3) == "Material"
        assert reg.type_name_of(1) == "Texture2D"


def test_resolve_record_type_with_and_without_hint(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        assert reg.resolve_record_type(Side.LEAF, "TMP_Settings") == 1
        assert reg.resolve_record_type(Side.LEAF, "TMP_Settings", hint=1) == 1
        assert reg.resolve_record_type(Side.LEAF, "TMP_FontAsset", hint=1) == 0
        assert reg.resolve_record_type(Side.LEAF, "TMP_FontAsset", hint=469) == 0
        with pytest.raises(NotFoundError):
            reg.resolve_record_type(Side.DEPENDENT, "TMP_Settings")


def test_enumerate_records_of_type(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        leaf = list(reg.enumerate_records_of_type(Side.LEAF, "TMP_FontAsset"))
        assert [int(i) for i, _ in leaf] == [-5, -6]
        assert [t["m_Name"] for _, t in leaf] == ["LiberationSans SDF", "Fallback SDF"]
        dep = list(reg.enumerate_records_of_type(Side.DEPENDENT, "TMP_FontAsset"))
        assert [int(i) for i, _ in dep] == [2, 3]
        assert list(reg.enumerate_records_of_type(Side.DEPENDENT, "TMP_Settings")) == []


def test_enumerate_detects_script_mismatch(tmp_path):
    data = build_game(tmp_path)
    with _open(data) as reg:
        tree = dict(reg.get_decoded_field(-7))
        tree["m_Script"] = AssetRef(0, 1).to_node()
        reg.set_payload(-7, b"", tree)
        with pytest.raises(CorruptContainerError):
            list(reg.enumerate_records_of_type(Side.LEAF, "TMP_Settings"))


def test_reference_for_follows_container_rules(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        assert reg.reference_for(Side.LEAF, -5) == AssetRef(0, 5)
        assert reg.reference_for(Side.DEPENDENT, 2) == AssetRef(0, 3)
        assert reg.reference_for(Side.DEPENDENT, -5) == AssetRef(2, 5)
        with pytest.raises(InvalidCrossReferenceError):
            reg.reference_for(Side.LEAF, 2)


def test_resolve_reference_is_inverse(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        for side, target in [(Side.LEAF, -6), (Side.DEPENDENT, 3), (Side.DEPENDENT, -6)]:
            ref = reg.reference_for(side, target)
            assert reg.resolve_reference(side, ref) == LogicalIndex.from_int(target)
        assert reg.resolve_reference(Side.LEAF, AssetRef.NULL) is None
        with pytest.raises(InvalidCrossReferenceError):
            reg.resolve_reference(Side.LEAF, AssetRef(1, 1))


def test_append_record_goes_to_leaf(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        before = reg.leaf.record_count
        index = reg.append_record(CLASS_TEXTURE_2D, atlas_payload())
        assert index == LogicalIndex(Side.LEAF, before)
        assert int(index) == ~before
        assert reg.get_record(index).object_id == 8
        assert reg.is_dirty(Side.LEAF)
        assert not reg.is_dirty(Side.DEPENDENT)
        assert reg.type_name_of(index) == "Texture2D"


def test_get_record_out_of_range(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        with pytest.raises(NotFoundError):
            reg.get_record(-100)
        with pytest.raises(NotFoundError):
            reg.get_record(50)


def test_set_payload_marks_owner_dirty_and_refreshes_cache(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        tree = reg.get_decoded_field(3)
        assert reg.cached(3) is tree
        reg.set_payload(3, reg.read_payload(3))
        assert reg.cached(3) is None
        assert reg.is_dirty(Side.DEPENDENT)
        assert not reg.is_dirty(Side.LEAF)


def test_save_writes_only_dirty_containers(tmp_path):
    data = build_game(tmp_path)
    dependent_before = (data / "sharedassets1.assets").read_bytes()
    with _open(data) as reg:
        reg.append_record(CLASS_FONT, b"\x00" * 48)
        saved = reg.save()
        assert [p.name for p in saved] == ["resources.assets"]
        assert not reg.is_dirty(Side.LEAF)
    assert (data / "sharedassets1.assets").read_bytes() == dependent_before
    assert not (data / "~resources.assets").exists()
    info = inspect_container(data / "resources.assets")
    assert validate_container(info) == []
    assert len(info["records"]) == 8
    assert info["records"][-1]["object_id"] == 8


def test_invalidate_drops_cached_tree(tmp_path):
    with _open(build_game(tmp_path)) as reg:
        tree = reg.get_decoded_field(-5)
        reg.invalidate(-5)
        assert reg.cached(-5) is None
        again = reg.get_decoded_field(-5)
        assert again is not tree
        assert again == tree
        assert not reg.is_dirty(Side.LEAF)


def test_untracked_script_entries_never_match(tmp_path):
    with _open(build_game(tmp_path, foreign_script=True)) as reg:
        assert reg.dependent.script_types[0] == AssetRef(1, 7)
        assert not reg.is_tracked(Side.DEPENDENT, AssetRef(1, 7))
        for hint in (0, 1, 347):
            assert reg.resolve_record_type(Side.DEPENDENT, "TMP_FontAsset", hint=hint) == 1
        with pytest.raises(NotFoundError):
            reg.resolve_record_type(Side.DEPENDENT, "TMP_Settings")
        dep = list(reg.enumerate_records_of_type(Side.DEPENDENT, "TMP_FontAsset"))
        assert [int(i) for i, _ in dep] == [2, 3]


def test_failed_write_removes_temporary_file(tmp_path, monkeypatch):
    data = build_game(tmp_path)
    before = (data / "resources.assets").read_bytes()

    def failing_write(f):
        f.write(b"partial")
        raise OSError("disk full")

    with _open(data) as reg:
        reg.append_record(CLASS_TEXTURE_2D, atlas_payload())
        monkeypatch.setattr(reg.leaf, "write", failing_write)
        with pytest.raises(OSError, match="disk full"):
            reg.save()
        assert reg.is_dirty(Side.LEAF)
    assert not (data / "~resources.assets").exists()
    assert (data / "resources.assets").read_bytes() == before
