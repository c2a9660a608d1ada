import pytest

from fontpatch.assets.errors import ValueTypeMismatchError
from fontpatch.assets.references import AssetRef
from fontpatch.assets.registry import LogicalIndex, Side


def test_null_reference():
    assert AssetRef.NULL.is_null
    assert AssetRef(0, 0) == AssetRef.NULL
    assert not AssetRef(0, 5).is_null
    assert not AssetRef(1, 0).is_null


def test_reference_node_roundtrip():
    node = {"m_FileID": 2, "m_PathID": 1 << 40}
    ref = AssetRef.from_node(node)
    assert ref == AssetRef(2, 1 << 40)
    assert ref.to_node() == node
    assert str(ref) == f"2:{1 << 40}"


def test_write_to_updates_node_in_place():
    node = {"m_FileID": 0, "m_PathID": 0, "extra": True}
    AssetRef(1, 7).write_to(node)
    assert node == {"m_FileID": 1, "m_PathID": 7, "extra": True}


def test_reference_ranges_are_checked():
    with pytest.raises(ValueTypeMismatchError):
        AssetRef(2**31, 0)
    with pytest.raises(ValueTypeMismatchError):
        AssetRef(0, 2**63)


@pytest.mark.parametrize(
    "node",
    [None, {"m_FileID": 0}, {"m_FileID": "0", "m_PathID": 1}, {"m_FileID": True, "m_PathID": 1}],
)
def test_malformed_reference_nodes(node):
    with pytest.raises(ValueTypeMismatchError):
        AssetRef.from_node(node)


def test_logical_index_sign_selects_container():
    assert LogicalIndex.from_int(-1) == LogicalIndex(Side.LEAF, 0)
    assert LogicalIndex.from_int(-5) == LogicalIndex(Side.LEAF, 4)
    assert LogicalIndex.from_int(0) == LogicalIndex(Side.DEPENDENT, 0)
    assert LogicalIndex.from_int(3) == LogicalIndex(Side.DEPENDENT, 3)


def test_logical_index_is_a_bijection():
    for value in range(-20, 20):
        index = LogicalIndex.from_int(value)
        assert int(index) == value
        assert LogicalIndex.coerce(index) is index
        assert LogicalIndex.coerce(value) == index
    assert str(LogicalIndex(Side.LEAF, 2)) == "-3"


def test_logical_index_rejects_negative_position():
    with pytest.raises(ValueError):
        LogicalIndex(Side.DEPENDENT, -1)
