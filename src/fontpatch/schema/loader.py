"""Schema source: type-tree documents (JSON/YAML) keyed by runtime version.

Document shape::

    {
      "versions": {
        "2019.4.40f1": {
          "Font": {"name": "Base", "type": "Font", "children": [...]},
          "TMP_FontAsset": {...}
        }
      }
    }

Each node carries ``name`` and ``type``; ``kind`` overrides the kind derived
from ``type``; ``flags`` may contain ``"aligned"`` and ``"array"``. Array nodes
must have exactly two children: the size field and the element template.
Arrays of single bytes are read as byte blobs, like ``TypelessData``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from ..assets.errors import not_found, schema_mismatch
from .fields import KIND_BY_TYPE_NAME, FieldSchema, ValueKind

__all__ = ["SchemaSource", "parse_field_schema"]

_KNOWN_FLAGS = {"aligned", "array"}


def parse_field_schema(node: Any, path: str = "") -> FieldSchema:
    if not isinstance(node, dict):
        raise schema_mismatch("Schema node must be an object", {"path": path})
    name = node.get("name")
    type_name = node.get("type")
    if not isinstance(name, str) or not isinstance(type_name, str):
        raise schema_mismatch(
            "Schema node requires string 'name' and 'type'", {"path": path}
        )
    here = f"{path}.{name}" if path else name
    flags = node.get("flags", []) or []
    if not isinstance(flags, list) or not set(flags) <= _KNOWN_FLAGS:
        raise schema_mismatch(
            f"Invalid flags {flags!r}", {"path": here}
        )
    raw_children = node.get("children", []) or []
    if not isinstance(raw_children, list):
        raise schema_mismatch("'children' must be a list", {"path": here})
    children = tuple(
        parse_field_schema(c, here) for c in raw_children
    )
    is_array = "array" in flags

    explicit = node.get("kind")
    if explicit is not None:
        try:
            kind = ValueKind(explicit)
        except ValueError as e:
            raise schema_mismatch(
                f"Unknown kind {explicit!r}", {"path": here}
            ) from e
    elif is_array:
        if len(children) != 2:
            raise schema_mismatch(
                "Array node needs size and data children", {"path": here}
            )
        kind = (
            ValueKind.BYTE_ARRAY
            if children[1].kind is ValueKind.UINT8 and not children[1].children
            else ValueKind.ARRAY
        )
    else:
        kind = KIND_BY_TYPE_NAME.get(type_name, ValueKind.NONE)
        if kind is ValueKind.BYTE_ARRAY:
            is_array = True
    if is_array and kind not in (ValueKind.ARRAY, ValueKind.BYTE_ARRAY):
        raise schema_mismatch(
            f"Array node cannot have kind {kind.value}", {"path": here}
        )
    if kind is ValueKind.ARRAY and (not is_array or len(children) != 2):
        raise schema_mismatch(
            "Array node needs the array flag and size/data children",
            {"path": here},
        )
    return FieldSchema(
        name=name,
        type_name=type_name,
        kind=kind,
        is_array=is_array,
        is_aligned="aligned" in flags,
        children=children,
    )


class SchemaSource:
    """Provides :class:`FieldSchema` trees per (runtime version, type name)."""

    def __init__(self, versions: Dict[str, Dict[str, Any]]):
        self._raw = versions
        self._cache: Dict[Tuple[str, str], FieldSchema] = {}

    @classmethod
    def load(cls, path: str | Path) -> "SchemaSource":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(p)
        try:
            text = p.read_text(encoding="utf-8")
            if p.suffix.lower() in {".yaml", ".yml"}:
                data: Any = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (ValueError, yaml.YAMLError) as e:
            raise schema_mismatch(
                f"Cannot parse type tree: {e}", {"path": str(p)}
            ) from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "SchemaSource":
        if not isinstance(data, dict) or not isinstance(
            data.get("versions"), dict
        ):
            raise schema_mismatch("Type tree root must contain 'versions'")
        for version, types in data["versions"].items():
            if not isinstance(types, dict):
                raise schema_mismatch(
                    "Types of a version must be an object",
                    {"version": version},
                )
        return cls(data["versions"])

    @property
    def versions(self) -> list[str]:
        return sorted(self._raw)

    def lookup(self, runtime_version: str, type_name: str) -> FieldSchema:
        key = (runtime_version, type_name)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        types = self._raw.get(runtime_version)
        if types is None:
            raise not_found(
                f"No type trees for runtime version {runtime_version}",
                {"known": self.versions},
            )
        node = types.get(type_name)
        if node is None:
            raise not_found(
                f"No type tree for {type_name} ({runtime_version})"
            )
        schema = parse_field_schema(node)
        self._cache[key] = schema
        return schema

    def get_schema(self, container: Any, type_name: str) -> FieldSchema:
        return self.lookup(container.runtime_version, type_name)
