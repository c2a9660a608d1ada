"""IO helpers for reading patch package files."""

from __future__ import annotations
from pathlib import Path
from typing import BinaryIO

__all__ = ["safe_read_file", "TransferBuffer", "MAX_FILE_SIZE"]

MAX_FILE_SIZE = 512 * 1024 * 1024


def safe_read_file(path: Path, max_size: int = MAX_FILE_SIZE) -> bytes:
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    size = path.stat().st_size
    if size > max_size:
        raise ValueError(f"File too large: {size}>{max_size}")
    return path.read_bytes()


class TransferBuffer:
    """Reusable scratch buffer for streamed reads.

    The buffer only grows; :meth:`release` drops it.
    """

    def __init__(self) -> None:
        self._buf: bytearray | None = None

    @property
    def capacity(self) -> int:
        return 0 if self._buf is None else len(self._buf)

    def read_from(self, stream: BinaryIO, size: int) -> bytes:
        """Read exactly ``size`` bytes from ``stream`` through the buffer."""
        if self._buf is None or len(self._buf) < size:
            self._buf = bytearray(size)
        view = memoryview(self._buf)
        got = 0
        while got < size:
            n = stream.readinto(view[got:size])
            if not n:
                raise EOFError(f"Unexpected end of stream ({got}/{size} bytes)")
            got += n
        return bytes(view[:size])

    def release(self) -> None:
        self._buf = None
