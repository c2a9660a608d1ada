"""Field schema (type tree) model.

A :class:`FieldSchema` describes the binary layout of one record type for one
runtime version. Nodes are immutable and shared by every record of that type,
so encoders and decoders can walk them freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

__all__ = ["ValueKind", "FieldSchema", "KIND_BY_TYPE_NAME"]


class ValueKind(Enum):
    NONE = "none"
    BOOL = "bool"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BYTE_ARRAY = "byte_array"
    ARRAY = "array"
    MANAGED_REFERENCES_REGISTRY = "managed_references_registry"


# Type names as they appear in type trees; anything else is a struct unless
# the node carries an explicit ``kind``.
KIND_BY_TYPE_NAME = {
    "bool": ValueKind.BOOL,
    "SInt8": ValueKind.INT8,
    "char": ValueKind.UINT8,
    "UInt8": ValueKind.UINT8,
    "SInt16": ValueKind.INT16,
    "short": ValueKind.INT16,
    "UInt16": ValueKind.UINT16,
    "unsigned short": ValueKind.UINT16,
    "int": ValueKind.INT32,
    "SInt32": ValueKind.INT32,
    "unsigned int": ValueKind.UINT32,
    "UInt32": ValueKind.UINT32,
    "Type*": ValueKind.UINT32,
    "long long": ValueKind.INT64,
    "SInt64": ValueKind.INT64,
    "FileSize": ValueKind.UINT64,
    "unsigned long long": ValueKind.UINT64,
    "UInt64": ValueKind.UINT64,
    "float": ValueKind.FLOAT,
    "double": ValueKind.DOUBLE,
    "string": ValueKind.STRING,
    "TypelessData": ValueKind.BYTE_ARRAY,
    "ManagedReferencesRegistry": ValueKind.MANAGED_REFERENCES_REGISTRY,
}


@dataclass(frozen=True, slots=True)
class FieldSchema:
    name: str
    type_name: str
    kind: ValueKind = ValueKind.NONE
    is_array: bool = False
    is_aligned: bool = False
    children: Tuple["FieldSchema", ...] = ()

    @property
    def has_value(self) -> bool:
        return self.kind is not ValueKind.NONE

    @property
    def is_struct(self) -> bool:
        return not self.has_value and not self.is_array

    @property
    def element(self) -> "FieldSchema":
        """Element template of an array node (``children[1]``)."""
        if not self.is_array or len(self.children) < 2:
            raise ValueError(f"{self.name} is not an array node")
        return self.children[1]

    def child(self, name: str) -> Optional["FieldSchema"]:
        for c in self.children:
            if c.name == name:
                return c
        return None
