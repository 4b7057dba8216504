"""JSON file-backed key-value store for the three data records.

Each key maps to ``<data_dir>/<key>.json``. Reads of a missing file create
the file from the caller's default record. Writes go to a temporary sibling
file and are atomically renamed over the target.

File I/O runs in a worker thread via ``asyncio.to_thread`` so the event loop
is never blocked. Read-modify-write sequences must hold ``lock(key)``; the
lock is per key and per process, which serializes concurrent appends to the
same log within one server.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from src.enablement.core.errors import StoreError

logger = structlog.get_logger(__name__)


class JsonFileStore:
    """Async read/write of whole JSON records keyed by name.

    Args:
        data_dir: Directory holding the ``<key>.json`` files. Created on
            first write if missing.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self._data_dir = Path(data_dir)
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def lock(self, key: str) -> asyncio.Lock:
        """Return the write lock guarding ``key``."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def read(self, key: str, default: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        """Read the record for ``key``, creating it from ``default`` if absent.

        Raises:
            StoreError: If the file exists but is not a JSON object.
        """
        path = self.path_for(key)
        data = await asyncio.to_thread(self._read_sync, path)
        if data is None:
            data = default()
            await self.write(key, data)
            logger.info("store.created", key=key, path=str(path))
            return data
        if not isinstance(data, dict):
            raise StoreError(key, "expected a JSON object")
        return data

    async def write(self, key: str, data: dict[str, Any]) -> None:
        """Overwrite the record for ``key``.

        Raises:
            StoreError: If the file cannot be written.
        """
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except OSError as exc:
            logger.error("store.write_failed", key=key, path=str(path), error=str(exc))
            raise StoreError(key, str(exc)) from exc

    # ── Blocking helpers (worker thread) ────────────────────────────────

    @staticmethod
    def _read_sync(path: Path) -> Any:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise StoreError(path.stem, f"invalid JSON: {exc}") from exc

    @staticmethod
    def _write_sync(path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
