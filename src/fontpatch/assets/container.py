"""Asset container files: load, record access and writing.

Layout (little endian)::

    header      64 bytes  magic, format version, runtime version
    payloads    record data, each payload aligned to DATA_ALIGNMENT
    directory   DIRECTORY_ENTRY_SIZE bytes per record
    scripts     SCRIPT_TYPE_ENTRY_SIZE bytes per script type (AssetRef)
    externals   DEPENDENCY_PATH_SIZE bytes per dependency path
    footer      64 bytes  table offsets/counts, crc32, footer magic

Tables start on TABLE_ALIGNMENT boundaries. The CRC covers the whole file
except the CRC field itself (the last 12 bytes hold CRC + footer magic).

A loaded :class:`Container` keeps its file handle open and reads original
payloads on demand; :meth:`Container.close` releases it.
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional

from .constants import (
    DATA_ALIGNMENT,
    DEPENDENCY_PATH_SIZE,
    DIRECTORY_ENTRY_SIZE,
    FOOTER_MAGIC,
    FOOTER_SIZE,
    FORMAT_VERSION,
    HEADER_SIZE,
    MAGIC,
    NO_SCRIPT,
    RUNTIME_VERSION_SIZE,
    SCRIPT_TYPE_ENTRY_SIZE,
    TABLE_ALIGNMENT,
)
from .errors import corrupt_container, not_found
from .layout import align_up, pack_name_string, unpack_name_string
from .references import AssetRef

__all__ = ["Record", "Container", "pack_header", "pack_footer"]

_DIRECTORY_FMT = "<qiHHQI4x"
_FOOTER_FMT = "<QIIQIIQII"


@dataclass(slots=True)
class Record:
    """One object of a container.

    ``replacement`` holds a pending payload set by a patch operation; when
    present it is authoritative over the original bytes at save time.
    """

    object_id: int
    class_id: int
    script_index: int = NO_SCRIPT
    data_offset: int = 0
    data_size: int = 0
    replacement: Optional[bytes] = None

    @property
    def has_script(self) -> bool:
        return self.script_index != NO_SCRIPT

    @property
    def is_modified(self) -> bool:
        return self.replacement is not None


def pack_header(runtime_version: str) -> bytes:
    out = (
        MAGIC
        + struct.pack("<HH", FORMAT_VERSION, 0)
        + pack_name_string(runtime_version, RUNTIME_VERSION_SIZE)
    )
    out += b"\x00" * (HEADER_SIZE - len(out))
    if len(out) != HEADER_SIZE:  # pragma: no cover - defensive
        raise RuntimeError("Header size mismatch")
    return out


def pack_footer(
    *,
    directory_offset: int,
    record_count: int,
    scripts_offset: int,
    script_count: int,
    externals_offset: int,
    external_count: int,
    crc32: int = 0,
) -> bytes:
    body = struct.pack(
        _FOOTER_FMT,
        directory_offset,
        record_count,
        DIRECTORY_ENTRY_SIZE,
        scripts_offset,
        script_count,
        SCRIPT_TYPE_ENTRY_SIZE,
        externals_offset,
        external_count,
        DEPENDENCY_PATH_SIZE,
    )
    reserved = FOOTER_SIZE - len(body) - 4 - len(FOOTER_MAGIC)
    out = body + b"\x00" * reserved + struct.pack("<I", crc32) + FOOTER_MAGIC
    if len(out) != FOOTER_SIZE:  # pragma: no cover - defensive
        raise RuntimeError("Footer size mismatch")
    return out


def compute_crc32(data: bytes) -> int:
    crc_field_offset = len(data) - 12
    return (
        zlib.crc32(data[:crc_field_offset] + data[crc_field_offset + 4 :])
        & 0xFFFFFFFF
    )


def _pad_to(f: BinaryIO, target_offset: int) -> None:
    pos = f.tell()
    if pos > target_offset:
        raise RuntimeError(
            f"Writer position {pos} surpassed planned offset {target_offset}"
        )
    if pos < target_offset:
        f.write(b"\x00" * (target_offset - pos))


class Container:
    """One asset container file with its records, script types and externals."""

    def __init__(
        self,
        name: str,
        runtime_version: str,
        records: Optional[List[Record]] = None,
        script_types: Optional[List[AssetRef]] = None,
        dependencies: Optional[List[str]] = None,
        *,
        path: Optional[Path] = None,
        handle: Optional[BinaryIO] = None,
    ) -> None:
        self.name = name
        self.runtime_version = runtime_version
        self.records: List[Record] = list(records or [])
        self.script_types: List[AssetRef] = list(script_types or [])
        self.dependencies: List[str] = list(dependencies or [])
        self.path = path
        self._handle = handle
        self._by_id: Dict[int, int] = {}
        for i, r in enumerate(self.records):
            if r.object_id in self._by_id:
                raise corrupt_container(
                    f"Duplicate object id {r.object_id} in {name}"
                )
            self._by_id[r.object_id] = i

    # Loading ------------------------------------------------------------------
    @classmethod
    def load(cls, path: str | Path) -> "Container":
        p = Path(path)
        f = p.open("rb")
        try:
            return cls._parse(p, f)
        except BaseException:
            f.close()
            raise

    @classmethod
    def _parse(cls, path: Path, f: BinaryIO) -> "Container":
        f.seek(0, 2)
        file_size = f.tell()
        if file_size < HEADER_SIZE + FOOTER_SIZE:
            raise corrupt_container(f"{path.name} is too small ({file_size})")
        f.seek(0)
        header = f.read(HEADER_SIZE)
        if header[: len(MAGIC)] != MAGIC:
            raise corrupt_container(f"{path.name}: header magic mismatch")
        (version,) = struct.unpack_from("<H", header, len(MAGIC))
        if version != FORMAT_VERSION:
            raise corrupt_container(
                f"{path.name}: unsupported format version {version}"
            )
        runtime_version = unpack_name_string(
            header[len(MAGIC) + 4 : len(MAGIC) + 4 + RUNTIME_VERSION_SIZE]
        )
        f.seek(file_size - FOOTER_SIZE)
        footer = f.read(FOOTER_SIZE)
        if footer[-len(FOOTER_MAGIC) :] != FOOTER_MAGIC:
            raise corrupt_container(f"{path.name}: footer magic mismatch")
        (
            directory_offset,
            record_count,
            entry_size,
            scripts_offset,
            script_count,
            _script_entry_size,
            externals_offset,
            external_count,
            _path_size,
        ) = struct.unpack_from(_FOOTER_FMT, footer, 0)
        if entry_size != DIRECTORY_ENTRY_SIZE:
            raise corrupt_container(
                f"{path.name}: unexpected directory entry size {entry_size}"
            )

        def read_table(offset: int, count: int, size: int, label: str) -> bytes:
            end = offset + count * size
            if end > file_size - FOOTER_SIZE:
                raise corrupt_container(
                    f"{path.name}: {label} table exceeds file size"
                )
            f.seek(offset)
            return f.read(count * size)

        raw_dir = read_table(
            directory_offset, record_count, DIRECTORY_ENTRY_SIZE, "directory"
        )
        records: List[Record] = []
        for i in range(record_count):
            object_id, class_id, script_index, _reserved, offset, size = (
                struct.unpack_from(_DIRECTORY_FMT, raw_dir, i * DIRECTORY_ENTRY_SIZE)
            )
            if offset + size > directory_offset:
                raise corrupt_container(
                    f"{path.name}: record {object_id} payload out of range"
                )
            records.append(
                Record(object_id, class_id, script_index, offset, size)
            )

        raw_scripts = read_table(
            scripts_offset, script_count, SCRIPT_TYPE_ENTRY_SIZE, "script type"
        )
        script_types = [
            AssetRef(*struct.unpack_from("<iq", raw_scripts, i * SCRIPT_TYPE_ENTRY_SIZE))
            for i in range(script_count)
        ]
        raw_ext = read_table(
            externals_offset, external_count, DEPENDENCY_PATH_SIZE, "external"
        )
        dependencies = [
            unpack_name_string(
                raw_ext[i * DEPENDENCY_PATH_SIZE : (i + 1) * DEPENDENCY_PATH_SIZE]
            )
            for i in range(external_count)
        ]
        return cls(
            path.name,
            runtime_version,
            records,
            script_types,
            dependencies,
            path=path,
            handle=f,
        )

    # Records --------------------------------------------------------------------
    @property
    def record_count(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def get_record(self, position: int) -> Record:
        if not 0 <= position < len(self.records):
            raise not_found(
                f"No record at position {position} in {self.name}"
            )
        return self.records[position]

    def position_of(self, object_id: int) -> int:
        try:
            return self._by_id[object_id]
        except KeyError:
            raise not_found(
                f"No object {object_id} in {self.name}"
            ) from None

    def find_record(self, object_id: int) -> Record:
        return self.records[self.position_of(object_id)]

    def next_object_id(self) -> int:
        return max((r.object_id for r in self.records), default=0) + 1

    def append_record_descriptor(
        self, class_id: int, payload: bytes, script_index: int = NO_SCRIPT
    ) -> int:
        """Append a new record holding ``payload``; returns its position."""
        record = Record(
            object_id=self.next_object_id(),
            class_id=class_id,
            script_index=script_index,
            replacement=bytes(payload),
        )
        self.records.append(record)
        self._by_id[record.object_id] = len(self.records) - 1
        return len(self.records) - 1

    def read_payload(self, record: Record) -> bytes:
        if record.replacement is not None:
            return record.replacement
        if self._handle is None:
            raise RuntimeError(f"{self.name} is closed")
        self._handle.seek(record.data_offset)
        data = self._handle.read(record.data_size)
        if len(data) != record.data_size:
            raise corrupt_container(
                f"Short read for object {record.object_id} in {self.name}"
            )
        return data

    def dependency_slot(self, container_name: str) -> int:
        """1-based slot of ``container_name``; 0 is reserved for self."""
        for i, dep in enumerate(self.dependencies):
            if Path(dep).name == container_name:
                return i + 1
        raise not_found(
            f"{self.name} has no dependency on {container_name}",
            {"dependencies": list(self.dependencies)},
        )

    # Writing ----------------------------------------------------------------------
    def write(self, f: BinaryIO) -> int:
        """Write the whole container to ``f`` (positioned at 0).

        ``f`` must be readable as well (``"w+b"`` or ``BytesIO``): the CRC is
        computed over the written bytes and patched in place. Returns the
        number of bytes written.
        """
        start = f.tell()
        if start != 0:
            raise RuntimeError("Container must be written at stream start")
        f.write(pack_header(self.runtime_version))
        placed: List[tuple[Record, int, int]] = []
        for record in self.records:
            payload = self.read_payload(record)
            _pad_to(f, align_up(f.tell(), DATA_ALIGNMENT))
            placed.append((record, f.tell(), len(payload)))
            f.write(payload)

        directory_offset = align_up(f.tell(), TABLE_ALIGNMENT)
        _pad_to(f, directory_offset)
        for record, offset, size in placed:
            f.write(
                struct.pack(
                    _DIRECTORY_FMT,
                    record.object_id,
                    record.class_id,
                    record.script_index,
                    0,
                    offset,
                    size,
                )
            )

        scripts_offset = align_up(f.tell(), TABLE_ALIGNMENT)
        _pad_to(f, scripts_offset)
        for ref in self.script_types:
            f.write(struct.pack("<iq", ref.file_id, ref.path_id))

        externals_offset = align_up(f.tell(), TABLE_ALIGNMENT)
        _pad_to(f, externals_offset)
        for dep in self.dependencies:
            f.write(pack_name_string(dep, DEPENDENCY_PATH_SIZE))

        _pad_to(f, align_up(f.tell(), TABLE_ALIGNMENT))
        f.write(
            pack_footer(
                directory_offset=directory_offset,
                record_count=len(placed),
                scripts_offset=scripts_offset,
                script_count=len(self.script_types),
                externals_offset=externals_offset,
                external_count=len(self.dependencies),
            )
        )
        size = f.tell()
        # Patch the CRC field now that the content is final.
        f.flush()
        f.seek(0)
        data = f.read(size)
        crc = compute_crc32(data)
        f.seek(size - 12)
        f.write(struct.pack("<I", crc))
        f.seek(size)
        return size

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    @property
    def closed(self) -> bool:
        return self._handle is None
