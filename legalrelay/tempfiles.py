from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

log = logging.getLogger("legalrelay.tempfiles")


class TempFileManager:
    """
    Owns the upload temp directory.

    Each upload lives in a uuid-named file for exactly one request; ``hold``
    guarantees removal and ``sweep`` catches anything a crash left behind.
    Removing a file that is already gone is never an error, so the two may
    race freely.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _remove(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            log.exception("Error deleting temporary file %s", path.name)
            return False
        return True

    @contextmanager
    def hold(self, content: bytes, extension: str) -> Iterator[Path]:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{uuid.uuid4().hex}{extension.lower()}"
        try:
            path.write_bytes(content)
            yield path
        finally:
            if self._remove(path):
                log.info("Temporary file deleted: %s", path.name)

    def sweep(self, max_age_seconds: float = 3600) -> int:
        """
        Delete files whose modification time is older than ``max_age_seconds``.
        """
        if not self.directory.is_dir():
            return 0
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in self.directory.iterdir():
            try:
                if not path.is_file() or path.stat().st_mtime >= cutoff:
                    continue
            except FileNotFoundError:
                continue
            if self._remove(path):
                log.info("Auto-cleaned old temp file: %s", path.name)
                removed += 1
        return removed

    def purge(self) -> int:
        """Delete every file in the temp directory (used on shutdown)."""
        if not self.directory.is_dir():
            return 0
        removed = sum(1 for path in self.directory.iterdir() if path.is_file() and self._remove(path))
        if removed:
            log.info("Cleaned up %d temp file(s)", removed)
        return removed


async def run_periodic_sweep(
    manager: TempFileManager,
    interval_seconds: float,
    max_age_seconds: float,
) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(manager.sweep, max_age_seconds)
        except OSError:
            log.exception("Periodic temp sweep failed")
