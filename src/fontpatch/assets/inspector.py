"""Container inspection utilities.

Public functions:
- inspect_container(path) -> dict
- validate_container(info) -> list[str]
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Any, Dict, List

from .constants import (
    CLASS_NAMES,
    DEPENDENCY_PATH_SIZE,
    DIRECTORY_ENTRY_SIZE,
    FOOTER_MAGIC,
    FOOTER_SIZE,
    HEADER_SIZE,
    MAGIC,
    NO_SCRIPT,
    RUNTIME_VERSION_SIZE,
    SCRIPT_TYPE_ENTRY_SIZE,
)
from .container import _DIRECTORY_FMT, _FOOTER_FMT, compute_crc32
from .errors import corrupt_container
from .layout import unpack_name_string

__all__ = ["inspect_container", "validate_container", "parse_header", "parse_footer"]


def _read_exact(data: bytes, offset: int, size: int, label: str) -> bytes:
    end = offset + size
    if offset < 0 or end > len(data):
        raise corrupt_container(
            f"Out of range read for {label}: {offset}+{size}>{len(data)}"
        )
    return data[offset:end]


def parse_header(data: bytes) -> Dict[str, Any]:
    raw = _read_exact(data, 0, HEADER_SIZE, "header")
    version, flags = struct.unpack_from("<HH", raw, len(MAGIC))
    start = len(MAGIC) + 4
    return {
        "magic_ok": raw[: len(MAGIC)] == MAGIC,
        "format_version": version,
        "flags": flags,
        "runtime_version": unpack_name_string(
            raw[start : start + RUNTIME_VERSION_SIZE]
        ),
    }


def parse_footer(data: bytes) -> Dict[str, Any]:
    footer_offset = len(data) - FOOTER_SIZE
    raw = _read_exact(data, footer_offset, FOOTER_SIZE, "footer")
    (
        directory_offset,
        record_count,
        entry_size,
        scripts_offset,
        script_count,
        script_entry_size,
        externals_offset,
        external_count,
        path_size,
    ) = struct.unpack_from(_FOOTER_FMT, raw, 0)
    crc_offset = FOOTER_SIZE - 4 - len(FOOTER_MAGIC)
    return {
        "offset": footer_offset,
        "directory": {
            "offset": directory_offset,
            "count": record_count,
            "entry_size": entry_size,
        },
        "script_types": {
            "offset": scripts_offset,
            "count": script_count,
            "entry_size": script_entry_size,
        },
        "externals": {
            "offset": externals_offset,
            "count": external_count,
            "entry_size": path_size,
        },
        "crc32": struct.unpack_from("<I", raw, crc_offset)[0],
        "magic_ok": raw[-len(FOOTER_MAGIC) :] == FOOTER_MAGIC,
    }


def inspect_container(path: str | Path) -> Dict[str, Any]:
    data = Path(path).read_bytes()
    header = parse_header(data)
    footer = parse_footer(data)
    crc_calc = compute_crc32(data)
    result: Dict[str, Any] = {
        "file_size": len(data),
        "header": header,
        "footer": {
            **footer,
            "crc_calculated": crc_calc,
            "crc_match": crc_calc == footer["crc32"],
        },
    }
    d = footer["directory"]
    if d["entry_size"] == DIRECTORY_ENTRY_SIZE and (
        d["offset"] + d["count"] * DIRECTORY_ENTRY_SIZE <= len(data)
    ):
        entries = []
        for i in range(d["count"]):
            raw = _read_exact(
                data,
                d["offset"] + i * DIRECTORY_ENTRY_SIZE,
                DIRECTORY_ENTRY_SIZE,
                f"dir[{i}]",
            )
            object_id, class_id, script_index, _res, offset, size = (
                struct.unpack(_DIRECTORY_FMT, raw)
            )
            entries.append(
                {
                    "object_id": object_id,
                    "class_id": class_id,
                    "class_name": CLASS_NAMES.get(class_id, f"class{class_id}"),
                    "script_index": (
                        None if script_index == NO_SCRIPT else script_index
                    ),
                    "data_offset": offset,
                    "data_size": size,
                }
            )
        result["records"] = entries
    s = footer["script_types"]
    if s["offset"] + s["count"] * SCRIPT_TYPE_ENTRY_SIZE <= len(data):
        result["script_types"] = [
            "%d:%d"
            % struct.unpack_from(
                "<iq", data, s["offset"] + i * SCRIPT_TYPE_ENTRY_SIZE
            )
            for i in range(s["count"])
        ]
    e = footer["externals"]
    if e["offset"] + e["count"] * DEPENDENCY_PATH_SIZE <= len(data):
        result["externals"] = [
            unpack_name_string(
                _read_exact(
                    data,
                    e["offset"] + i * DEPENDENCY_PATH_SIZE,
                    DEPENDENCY_PATH_SIZE,
                    f"externals[{i}]",
                )
            )
            for i in range(e["count"])
        ]
    return result


def validate_container(info: Dict[str, Any]) -> List[str]:
    issues: List[str] = []
    if not info["header"]["magic_ok"]:
        issues.append("Header magic mismatch")
    footer = info["footer"]
    if not footer["magic_ok"]:
        issues.append("Footer magic mismatch")
    if not footer["crc_match"]:
        issues.append("CRC mismatch")
    limit = footer["offset"]
    for table, entry_size in (
        ("directory", DIRECTORY_ENTRY_SIZE),
        ("script_types", SCRIPT_TYPE_ENTRY_SIZE),
        ("externals", DEPENDENCY_PATH_SIZE),
    ):
        t = footer[table]
        if t["entry_size"] != entry_size:
            issues.append(f"Table {table} has entry size {t['entry_size']}")
        if t["offset"] + t["count"] * entry_size > limit:
            issues.append(f"Table {table} exceeds file size")
    seen: set[int] = set()
    dir_offset = footer["directory"]["offset"]
    for r in info.get("records", []):
        if r["object_id"] in seen:
            issues.append(f"Duplicate object id {r['object_id']}")
        seen.add(r["object_id"])
        if r["data_offset"] + r["data_size"] > dir_offset:
            issues.append(f"Payload of object {r['object_id']} overlaps tables")
        if r["script_index"] is not None and r["script_index"] >= footer[
            "script_types"
        ]["count"]:
            issues.append(
                f"Object {r['object_id']} uses unknown script type "
                f"{r['script_index']}"
            )
    return issues
