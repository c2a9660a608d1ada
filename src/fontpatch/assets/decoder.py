"""Minimal read path: record payload -> dynamic value tree.

Mirrors :mod:`fontpatch.assets.encoder` exactly, including the duplicated
count of ordinary arrays, so that decoded trees can be edited and encoded
again byte for byte.
"""

from __future__ import annotations

import struct
from typing import Any, Dict

from ..schema.fields import FieldSchema, ValueKind
from .constants import FIELD_ALIGNMENT
from .errors import corrupt_container, unsupported_feature

__all__ = ["decode", "RecordReader"]

_FORMATS: Dict[ValueKind, str] = {
    ValueKind.INT8: "<b",
    ValueKind.UINT8: "<B",
    ValueKind.INT16: "<h",
    ValueKind.UINT16: "<H",
    ValueKind.INT32: "<i",
    ValueKind.UINT32: "<I",
    ValueKind.INT64: "<q",
    ValueKind.UINT64: "<Q",
    ValueKind.FLOAT: "<f",
    ValueKind.DOUBLE: "<d",
}


class RecordReader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self.position = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.position

    def read(self, size: int, label: str) -> bytes:
        if size < 0 or self.position + size > len(self._data):
            raise corrupt_container(
                f"Out of range read for {label}: "
                f"{self.position}+{size}>{len(self._data)}"
            )
        out = bytes(self._data[self.position : self.position + size])
        self.position += size
        return out

    def unpack(self, fmt: str, label: str) -> Any:
        raw = self.read(struct.calcsize(fmt), label)
        return struct.unpack(fmt, raw)[0]

    def read_count(self, label: str) -> int:
        count = self.unpack("<i", label)
        if count < 0:
            raise corrupt_container(f"Negative length for {label}: {count}")
        return count

    def align(self, alignment: int = FIELD_ALIGNMENT) -> None:
        pad = (alignment - (self.position % alignment)) % alignment
        self.read(pad, "alignment")


def _decode_node(r: RecordReader, schema: FieldSchema, path: str) -> Any:
    align = schema.is_aligned
    if schema.is_struct:
        out: Dict[str, Any] = {}
        for child in schema.children:
            out[child.name] = _decode_node(
                r, child, f"{path}.{child.name}" if path else child.name
            )
        if align:
            r.align()
        return out

    kind = schema.kind
    if kind is ValueKind.MANAGED_REFERENCES_REGISTRY:
        raise unsupported_feature(
            "Managed reference registries are not supported", {"path": path}
        )

    value: Any
    if kind is ValueKind.BOOL:
        value = r.read(1, path) != b"\x00"
    elif kind is ValueKind.STRING:
        size = r.read_count(path)
        raw = r.read(size, path)
        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise corrupt_container(
                f"Invalid UTF-8 string at {path}"
            ) from e
        align = True
    elif kind is ValueKind.BYTE_ARRAY:
        size = r.read_count(path)
        value = list(r.read(size, path))
    elif kind is ValueKind.ARRAY:
        count = r.read_count(path)
        again = r.read_count(path)
        if again != count:
            raise corrupt_container(
                f"Array counts disagree at {path}: {count} != {again}"
            )
        element = schema.element
        value = [_decode_node(r, element, f"{path}[{i}]") for i in range(count)]
    else:
        value = r.unpack(_FORMATS[kind], path)

    if align:
        r.align()
    return value


def decode(schema: FieldSchema, data: bytes) -> Any:
    """Decode a full record payload; trailing bytes are an error."""
    r = RecordReader(data)
    value = _decode_node(r, schema, "")
    if r.remaining:
        raise corrupt_container(
            f"{r.remaining} trailing bytes after {schema.type_name} record"
        )
    return value
