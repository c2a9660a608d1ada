"""Path utilities (safe resolution inside a patch package)."""

from __future__ import annotations
from pathlib import Path

__all__ = ["safe_file_path", "normalize_entry_name"]


def safe_file_path(base_dir: Path, file_path: str) -> Path:
    base_dir = base_dir.resolve()
    resolved = (base_dir / file_path).resolve()
    resolved.relative_to(base_dir)  # raises ValueError if escapes
    return resolved


def normalize_entry_name(name: str) -> str:
    """Archive lookup key: forward slashes, no leading ``./``, lower case."""
    key = name.replace("\\", "/")
    while key.startswith("./"):
        key = key[2:]
    return key.lower()
