"""Schema-driven encoder from dynamic value trees to record payloads.

The encoder walks a :class:`~fontpatch.schema.fields.FieldSchema` and the
matching dynamic value (dicts, lists and scalars as produced by a JSON/YAML
parser) in lockstep and emits the exact layout the runtime reader expects:

- integers and floats are fixed-width little endian;
- strings are an ``int32`` byte length followed by UTF-8 bytes, and always
  realign to 4 bytes afterwards;
- byte blobs are an ``int32`` count followed by the raw bytes;
- ordinary arrays write their count, then the count *again* followed by the
  elements. The duplicated count is required by the runtime deserializer and
  must not be "fixed";
- aligned nodes pad the output to a multiple of 4 relative to the start of
  the record.

The encoder is side-effect free: on failure nothing is returned and the
partially written buffer is dropped.
"""

from __future__ import annotations

import struct
from typing import Any, Callable, Dict

from ..schema.fields import FieldSchema, ValueKind
from .constants import FIELD_ALIGNMENT
from .errors import schema_mismatch, unsupported_feature, value_type_mismatch

__all__ = ["encode", "RecordWriter"]


_INT_FORMATS: Dict[ValueKind, str] = {
    ValueKind.INT8: "<b",
    ValueKind.UINT8: "<B",
    ValueKind.INT16: "<h",
    ValueKind.UINT16: "<H",
    ValueKind.INT32: "<i",
    ValueKind.UINT32: "<I",
    ValueKind.INT64: "<q",
    ValueKind.UINT64: "<Q",
}

_FLOAT_FORMATS: Dict[ValueKind, str] = {
    ValueKind.FLOAT: "<f",
    ValueKind.DOUBLE: "<d",
}


class RecordWriter:
    """Append-only little-endian writer with record-relative alignment."""

    def __init__(self) -> None:
        self._buf = bytearray()

    @property
    def position(self) -> int:
        return len(self._buf)

    def write(self, data: bytes) -> None:
        self._buf += data

    def write_int32(self, value: int) -> None:
        self._buf += struct.pack("<i", value)

    def align(self, alignment: int = FIELD_ALIGNMENT) -> None:
        pad = (alignment - (len(self._buf) % alignment)) % alignment
        if pad:
            self._buf += b"\x00" * pad

    def getvalue(self) -> bytes:
        return bytes(self._buf)


def _path(parent: str, name: str) -> str:
    return f"{parent}.{name}" if parent else name


def _as_int(schema: FieldSchema, value: Any, path: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise value_type_mismatch(
        f"Expected integer for {schema.type_name}, got {type(value).__name__}",
        {"path": path, "value": repr(value)},
    )


def _as_float(schema: FieldSchema, value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise value_type_mismatch(
            f"Expected number for {schema.type_name}, got {type(value).__name__}",
            {"path": path, "value": repr(value)},
        )
    return float(value)


def _write_bool(w: RecordWriter, schema: FieldSchema, value: Any, path: str):
    if isinstance(value, bool):
        w.write(b"\x01" if value else b"\x00")
        return
    if isinstance(value, int) and value in (0, 1):
        w.write(bytes([value]))
        return
    raise value_type_mismatch(
        f"Expected bool, got {value!r}", {"path": path}
    )


def _write_string(w: RecordWriter, schema: FieldSchema, value: Any, path: str):
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise value_type_mismatch(
            f"Expected string, got {type(value).__name__}", {"path": path}
        )
    data = value.encode("utf-8")
    w.write_int32(len(data))
    w.write(data)


def _write_byte_array(
    w: RecordWriter, schema: FieldSchema, value: Any, path: str
):
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    elif isinstance(value, list):
        try:
            data = bytes(_as_int(schema, v, path) for v in value)
        except ValueError as e:
            raise value_type_mismatch(
                f"Byte values must be within 0..255: {e}", {"path": path}
            ) from e
    else:
        raise value_type_mismatch(
            f"Expected byte list, got {type(value).__name__}", {"path": path}
        )
    w.write_int32(len(data))
    w.write(data)


def _write_scalar(w: RecordWriter, schema: FieldSchema, value: Any, path: str):
    kind = schema.kind
    fmt = _INT_FORMATS.get(kind)
    if fmt is not None:
        iv = _as_int(schema, value, path)
        try:
            w.write(struct.pack(fmt, iv))
        except struct.error as e:
            raise value_type_mismatch(
                f"{iv} does not fit {kind.value}", {"path": path}
            ) from e
        return
    fmt = _FLOAT_FORMATS.get(kind)
    if fmt is not None:
        fv = _as_float(schema, value, path)
        try:
            w.write(struct.pack(fmt, fv))
        except OverflowError as e:
            raise value_type_mismatch(
                f"{fv} does not fit {kind.value}", {"path": path}
            ) from e
        return
    writer = _SPECIAL_WRITERS.get(kind)
    if writer is None:  # pragma: no cover
        raise unsupported_feature(
            f"No writer for {kind.value}", {"path": path}
        )
    writer(w, schema, value, path)


def _write_array_count(
    w: RecordWriter, schema: FieldSchema, value: Any, path: str
):
    if not isinstance(value, list):
        raise value_type_mismatch(
            f"Expected array, got {type(value).__name__}", {"path": path}
        )
    w.write_int32(len(value))


_SPECIAL_WRITERS: Dict[ValueKind, Callable[..., None]] = {
    ValueKind.BOOL: _write_bool,
    ValueKind.STRING: _write_string,
    ValueKind.BYTE_ARRAY: _write_byte_array,
    ValueKind.ARRAY: _write_array_count,
}


def _encode_node(
    w: RecordWriter, schema: FieldSchema, value: Any, path: str
) -> None:
    align = schema.is_aligned
    if schema.is_struct:
        if not isinstance(value, dict):
            raise schema_mismatch(
                f"Expected object for {schema.type_name} {schema.name}",
                {"path": path},
            )
        for child in schema.children:
            if child.name not in value:
                raise schema_mismatch(
                    f"Missing field {child.name} of {schema.name}",
                    {"path": _path(path, child.name)},
                )
            _encode_node(w, child, value[child.name], _path(path, child.name))
        if align:
            w.align()
        return

    if schema.kind is ValueKind.MANAGED_REFERENCES_REGISTRY:
        raise unsupported_feature(
            "Managed reference registries are not supported",
            {"path": path},
        )

    _write_scalar(w, schema, value, path)
    if schema.kind is ValueKind.STRING:
        align = True

    # The runtime deserializer reads ordinary arrays with a second count.
    if schema.is_array and schema.kind is not ValueKind.BYTE_ARRAY:
        element = schema.element
        w.write_int32(len(value))
        for i, item in enumerate(value):
            _encode_node(w, element, item, f"{path}[{i}]")

    if align:
        w.align()


def encode(schema: FieldSchema, value: Any) -> bytes:
    """Encode ``value`` following ``schema`` and return the record payload."""
    w = RecordWriter()
    _encode_node(w, schema, value, "")
    return w.getvalue()
