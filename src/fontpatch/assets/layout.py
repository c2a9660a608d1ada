"""Low-level layout helpers (alignment, fixed-size name fields)."""

from __future__ import annotations

from .constants import FIELD_ALIGNMENT

__all__ = ["align_up", "pack_name_string", "unpack_name_string"]


def align_up(offset: int, alignment: int = FIELD_ALIGNMENT) -> int:
    return offset + (alignment - (offset % alignment)) % alignment


def pack_name_string(name: str, size: int) -> bytes:
    name_bytes = name.encode("utf-8")
    if len(name_bytes) >= size:
        raise ValueError(f"Name too long for {size}-byte field: {name!r}")
    return name_bytes + b"\x00" * (size - len(name_bytes))


def unpack_name_string(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8")
