"""Error definitions for FontPatch."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_SCHEMA_MISMATCH = "E_SCHEMA_MISMATCH"
E_VALUE_TYPE_MISMATCH = "E_VALUE_TYPE_MISMATCH"
E_UNSUPPORTED_FEATURE = "E_UNSUPPORTED_FEATURE"
E_CORRUPT_CONTAINER = "E_CORRUPT_CONTAINER"
E_INVALID_CROSS_REFERENCE = "E_INVALID_CROSS_REFERENCE"
E_CROSS_CONTAINER = "E_CROSS_CONTAINER"
E_TYPE_MISMATCH = "E_TYPE_MISMATCH"
E_PAYLOAD_SHAPE = "E_PAYLOAD_SHAPE"
E_NOT_FOUND = "E_NOT_FOUND"


@dataclass(eq=False)
class FontPatchError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


# Encoder level
class SchemaMismatchError(FontPatchError):
    pass


class ValueTypeMismatchError(FontPatchError):
    pass


class UnsupportedFeatureError(FontPatchError):
    pass


# Registry level
class CorruptContainerError(FontPatchError):
    pass


class NotFoundError(FontPatchError):
    pass


# Addressing discipline
class InvalidCrossReferenceError(FontPatchError):
    pass


class CrossContainerNotAllowedError(FontPatchError):
    pass


# Patch operations
class TypeMismatchError(FontPatchError):
    pass


class UnsupportedPayloadShapeError(FontPatchError):
    pass


def schema_mismatch(
    message: str, context: Optional[Dict[str, Any]] = None
) -> SchemaMismatchError:
    return SchemaMismatchError(E_SCHEMA_MISMATCH, message, context)


def value_type_mismatch(
    message: str, context: Optional[Dict[str, Any]] = None
) -> ValueTypeMismatchError:
    return ValueTypeMismatchError(E_VALUE_TYPE_MISMATCH, message, context)


def unsupported_feature(
    message: str, context: Optional[Dict[str, Any]] = None
) -> UnsupportedFeatureError:
    return UnsupportedFeatureError(E_UNSUPPORTED_FEATURE, message, context)


def corrupt_container(
    message: str, context: Optional[Dict[str, Any]] = None
) -> CorruptContainerError:
    return CorruptContainerError(E_CORRUPT_CONTAINER, message, context)


def not_found(
    message: str, context: Optional[Dict[str, Any]] = None
) -> NotFoundError:
    return NotFoundError(E_NOT_FOUND, message, context)


def invalid_cross_reference(
    message: str, context: Optional[Dict[str, Any]] = None
) -> InvalidCrossReferenceError:
    return InvalidCrossReferenceError(
        E_INVALID_CROSS_REFERENCE, message, context
    )


def cross_container_not_allowed(
    message: str, context: Optional[Dict[str, Any]] = None
) -> CrossContainerNotAllowedError:
    return CrossContainerNotAllowedError(E_CROSS_CONTAINER, message, context)


def type_mismatch(
    message: str, context: Optional[Dict[str, Any]] = None
) -> TypeMismatchError:
    return TypeMismatchError(E_TYPE_MISMATCH, message, context)


def unsupported_payload_shape(
    message: str, context: Optional[Dict[str, Any]] = None
) -> UnsupportedPayloadShapeError:
    return UnsupportedPayloadShapeError(E_PAYLOAD_SHAPE, message, context)


__all__ = [
    "FontPatchError",
    "SchemaMismatchError",
    "ValueTypeMismatchError",
    "UnsupportedFeatureError",
    "CorruptContainerError",
    "NotFoundError",
    "InvalidCrossReferenceError",
    "CrossContainerNotAllowedError",
    "TypeMismatchError",
    "UnsupportedPayloadShapeError",
    "schema_mismatch",
    "value_type_mismatch",
    "unsupported_feature",
    "corrupt_container",
    "not_found",
    "invalid_cross_reference",
    "cross_container_not_allowed",
    "type_mismatch",
    "unsupported_payload_shape",
    "E_SCHEMA_MISMATCH",
    "E_VALUE_TYPE_MISMATCH",
    "E_UNSUPPORTED_FEATURE",
    "E_CORRUPT_CONTAINER",
    "E_INVALID_CROSS_REFERENCE",
    "E_CROSS_CONTAINER",
    "E_TYPE_MISMATCH",
    "E_PAYLOAD_SHAPE",
    "E_NOT_FOUND",
]
