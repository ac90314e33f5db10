"""JSON file key-value store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger("mealsync.storage")


class FileStore:
    """Durable store backed by a single JSON object on disk.

    Writes go to a temporary file that atomically replaces the target, so a
    crash never leaves a half-written file behind. Blocking I/O runs in a
    worker thread.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable store file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> str | None:
        """Get a value by key."""
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store a value."""
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        """Delete a value."""
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._write, data)

    async def clear(self) -> None:
        """Remove the backing file."""
        async with self._lock:
            await asyncio.to_thread(self._path.unlink, True)

    async def disconnect(self) -> None:
        """Nothing to release for files."""
        pass
