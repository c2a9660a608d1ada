"""Object reference values (``m_FileID`` / ``m_PathID`` pairs)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, MutableMapping

from .errors import value_type_mismatch

__all__ = ["AssetRef"]

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


@dataclass(frozen=True, slots=True, order=True)
class AssetRef:
    """Reference to one object.

    ``file_id`` 0 means the container holding the referencing record; any
    other value is a dependency slot of that container. ``(0, 0)`` is null.
    Ordering is by ``(file_id, path_id)``.
    """

    file_id: int
    path_id: int

    NULL: ClassVar["AssetRef"]

    def __post_init__(self) -> None:
        if not _INT32_MIN <= self.file_id <= _INT32_MAX:
            raise value_type_mismatch(
                f"m_FileID out of int32 range: {self.file_id}"
            )
        if not _INT64_MIN <= self.path_id <= _INT64_MAX:
            raise value_type_mismatch(
                f"m_PathID out of int64 range: {self.path_id}"
            )

    @property
    def is_null(self) -> bool:
        return self.file_id == 0 and self.path_id == 0

    @classmethod
    def from_node(cls, node: Any) -> "AssetRef":
        if not isinstance(node, dict):
            raise value_type_mismatch(
                "Reference node must be an object with m_FileID/m_PathID",
                {"node": repr(node)},
            )
        try:
            file_id = node["m_FileID"]
            path_id = node["m_PathID"]
        except KeyError as e:
            raise value_type_mismatch(
                f"Reference node is missing {e.args[0]}"
            ) from e
        for v in (file_id, path_id):
            if isinstance(v, bool) or not isinstance(v, int):
                raise value_type_mismatch(
                    f"Reference ids must be integers, got {v!r}"
                )
        return cls(file_id, path_id)

    def to_node(self) -> Dict[str, int]:
        return {"m_FileID": self.file_id, "m_PathID": self.path_id}

    def write_to(self, node: MutableMapping[str, Any]) -> None:
        node["m_FileID"] = self.file_id
        node["m_PathID"] = self.path_id

    def __str__(self) -> str:
        return f"{self.file_id}:{self.path_id}"


AssetRef.NULL = AssetRef(0, 0)
