"""Flat text-file primitives: line reads, atomic rewrites, appends and the write queue.

All mutations of the store must go through one :class:`SerialWriteQueue`
so that read-modify-write cycles never interleave. Reads are not queued;
rewrites use write-to-temp + rename so readers only ever see a complete file.
"""
import asyncio
import os
import secrets
import time
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, TypeVar

T = TypeVar("T")


class SerialWriteQueue:
    """Runs write tasks strictly one after another, in submission order.

    A task runs only after the previously submitted one has settled, whether
    it succeeded or raised. The task's own result or exception is returned
    to its submitter only.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of submitted tasks that have not settled yet"""
        return self._pending

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        self._pending += 1
        try:
            async with self._lock:
                return await task()
        finally:
            self._pending -= 1


# ---------------------------------------------------------------------------
# Blocking helpers (executed in a worker thread by the async wrappers below)
# ---------------------------------------------------------------------------

def _ensure_file_sync(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.touch()


def _read_lines_sync(path: Path) -> List[str]:
    _ensure_file_sync(path)
    raw = path.read_text(encoding="utf-8")
    return [line.strip() for line in raw.splitlines() if line.strip()]


def _write_lines_atomic_sync(path: Path, lines: List[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{int(time.time() * 1000)}.{secrets.token_hex(6)}.tmp")
    payload = "".join(f"{line}\n" for line in lines)
    try:
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def _append_lines_sync(path: Path, lines: List[str]) -> None:
    _ensure_file_sync(path)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write("".join(f"{line}\n" for line in lines))


# ---------------------------------------------------------------------------
# Async API
# ---------------------------------------------------------------------------

async def ensure_dir(path: Path) -> None:
    await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)


async def ensure_file(path: Path) -> None:
    await asyncio.to_thread(_ensure_file_sync, path)


async def read_lines(path: Path) -> List[str]:
    """Return the non-blank, stripped lines of ``path`` (created empty if missing)"""
    return await asyncio.to_thread(_read_lines_sync, path)


async def write_lines_atomic(path: Path, lines: Iterable[str]) -> None:
    """Replace the content of ``path``. Callers must hold the write queue."""
    await asyncio.to_thread(_write_lines_atomic_sync, path, list(lines))


async def append_lines(path: Path, lines: Iterable[str]) -> None:
    """Append ``lines`` to ``path``. Callers must hold the write queue."""
    batch = list(lines)
    if batch:
        await asyncio.to_thread(_append_lines_sync, path, batch)
