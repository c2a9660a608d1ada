"""Patch packages: a folder or a zip archive holding a manifest and data files."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from .logging import get_logger
from .utils.io import TransferBuffer, safe_read_file
from .utils.paths import normalize_entry_name, safe_file_path

__all__ = ["PatchPackage"]


class PatchPackage:
    """Read-only access to the files of a patch package.

    File names are matched case-insensitively. Zip entries are streamed
    through one :class:`TransferBuffer` reused for every read.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._zip: Optional[zipfile.ZipFile] = None
        self._entries: Dict[str, Any] = {}
        self._buffer = TransferBuffer()
        if self.path.is_dir():
            root = self.path.resolve()
            for p in root.rglob("*"):
                if p.is_file():
                    rel = p.relative_to(root).as_posix()
                    self._entries.setdefault(normalize_entry_name(rel), rel)
        elif self.path.is_file():
            self._zip = zipfile.ZipFile(self.path)
            for info in self._zip.infolist():
                if not info.is_dir():
                    self._entries[normalize_entry_name(info.filename)] = info
        else:
            raise FileNotFoundError(f"Patch package not found: {self.path}")

    @property
    def is_archive(self) -> bool:
        return self._zip is not None

    def __contains__(self, name: str) -> bool:
        return normalize_entry_name(name) in self._entries

    def read(self, name: str) -> bytes:
        entry = self._entries.get(normalize_entry_name(name))
        if entry is None:
            raise FileNotFoundError(f"{name} not found in {self.path.name}")
        get_logger().debug("Getting %s", name)
        if self._zip is None:
            # Re-resolve so that symlinks cannot point outside the package.
            return safe_read_file(safe_file_path(self.path, entry))
        with self._zip.open(entry) as s:
            return self._buffer.read_from(s, entry.file_size)

    def close(self) -> None:
        self._buffer.release()
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def __enter__(self) -> "PatchPackage":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
