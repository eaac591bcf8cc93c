"""Backward line reader for append-only logs"""
import os
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_MAX_BYTES = 4 * 1024 * 1024


class ReverseChunkReader:
    """Reads lines from the end of a binary stream towards its start.

    The stream is consumed in fixed-size chunks from the end, so the cost of
    a read is bounded by ``max_bytes`` (when given) instead of the log size.
    Works on any seekable binary handle; :meth:`open` is the file shortcut.
    """

    def __init__(
        self,
        handle: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_bytes: Optional[int] = DEFAULT_MAX_BYTES,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._handle = handle
        self._chunk_size = chunk_size
        self._max_bytes = max_bytes
        self.bytes_scanned = 0

    @classmethod
    def open(cls, path: Path, **kwargs) -> "ReverseChunkReader":
        return cls(open(path, "rb"), **kwargs)

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> "ReverseChunkReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def iter_lines(self) -> Iterator[str]:
        """Yield stripped, non-blank lines newest first.

        When ``max_bytes`` is reached the partial line at the cut is dropped,
        since its beginning was never read.
        """
        self._handle.seek(0, os.SEEK_END)
        position = self._handle.tell()
        remainder = b""

        while position > 0:
            if self._max_bytes is not None and self.bytes_scanned >= self._max_bytes:
                return
            read_size = min(self._chunk_size, position)
            position -= read_size
            self._handle.seek(position)
            chunk = self._handle.read(read_size)
            self.bytes_scanned += len(chunk)

            # Splitting on raw bytes keeps multi-byte characters intact
            parts = (chunk + remainder).split(b"\n")
            remainder = parts[0]
            for raw in reversed(parts[1:]):
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    yield line

        line = remainder.decode("utf-8", errors="replace").strip()
        if line:
            yield line

    def tail(self, limit: int) -> List[str]:
        """Return up to ``limit`` last lines in file (chronological) order"""
        lines: List[str] = []
        if limit <= 0:
            return lines
        for line in self.iter_lines():
            lines.append(line)
            if len(lines) >= limit:
                break
        lines.reverse()
        return lines


def tail_lines(path: Path, limit: int, max_bytes: Optional[int] = DEFAULT_MAX_BYTES) -> List[str]:
    """Blocking helper: last ``limit`` lines of ``path`` (empty when missing)"""
    if not path.exists():
        return []
    with ReverseChunkReader.open(path, max_bytes=max_bytes) as reader:
        return reader.tail(limit)
