"""JSONDiskStore: debounced, deduplicated JSON persistence.

Stores a single value of any pydantic-validatable type (a model, a dict, a
list of models ...) in one JSON file.  Rapid ``save()`` calls coalesce into
one write; writes whose bytes match the last saved payload are skipped.
Persistence is best effort: I/O failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Generic, TypeVar

import aiofiles
import aiofiles.os
from pydantic import TypeAdapter, ValidationError

from hostguard.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JSONDiskStore(Generic[T]):
    """File-backed JSON store for values of *value_type*.

    Args:
        value_type:     Type used to encode and validate the stored value.
        filename:       File name inside the store directory.
        directory_name: Sub-directory created under *base_directory*.
        base_directory: Defaults to ``Settings.DATA_DIRECTORY``.
    """

    def __init__(
        self,
        value_type: Any,
        filename: str,
        directory_name: str = "hostguard-data",
        base_directory: str | Path | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        base = Path(base_directory).expanduser() if base_directory is not None else settings.DATA_DIRECTORY
        directory = base / directory_name
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.warning("Could not create store directory %s", directory)

        self._path = directory / filename
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)
        self._default_debounce = settings.STORE_DEBOUNCE_SECONDS
        self._last_saved: bytes | None = None
        self._pending: asyncio.Task[bool] | None = None
        self._write_lock = asyncio.Lock()

    def storage_path(self) -> Path:
        """Return the file backing this store."""
        return self._path

    async def load(self) -> T | None:
        """Load the stored value; ``None`` if missing or unreadable."""
        try:
            async with aiofiles.open(self._path, "rb") as f:
                data = await f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read %s: %s", self._path, exc)
            return None

        self._last_saved = data
        try:
            return self._adapter.validate_json(data)
        except ValidationError:
            logger.warning("Stored payload in %s does not match the expected type", self._path)
            return None

    def save(self, value: T, encoded_data: bytes | None = None, debounce_seconds: float | None = None) -> None:
        """Schedule a write after *debounce_seconds*, replacing any pending one.

        Must be called from a running event loop.
        """
        self._cancel_pending()
        delay = self._default_debounce if debounce_seconds is None else debounce_seconds
        self._pending = asyncio.get_running_loop().create_task(self._save_later(value, encoded_data, delay))

    async def save_now(self, value: T, encoded_data: bytes | None = None) -> bool:
        """Write immediately; ``False`` when deduplicated or the write failed."""
        self._cancel_pending()
        return await self._write(value, encoded_data)

    async def flush_pending_save(self) -> None:
        """Wait for the currently scheduled save, if any, to finish."""
        pending = self._pending
        if pending is not None:
            await asyncio.wait({pending})

    def clear(self) -> None:
        """Cancel any pending save and delete the stored file."""
        self._cancel_pending()
        self._last_saved = None
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", self._path, exc)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def _save_later(self, value: T, encoded_data: bytes | None, delay: float) -> bool:
        if delay > 0:
            await asyncio.sleep(delay)
        written = await self._write(value, encoded_data)
        if self._pending is asyncio.current_task():
            self._pending = None
        return written

    async def _write(self, value: T, encoded_data: bytes | None) -> bool:
        async with self._write_lock:
            try:
                data = encoded_data if encoded_data is not None else self._adapter.dump_json(value)
                if data == self._last_saved:
                    return False
                tmp_path = self._path.with_name(self._path.name + ".tmp")
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                await aiofiles.os.replace(tmp_path, self._path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to save %s: %s", self._path, exc)
                return False
            self._last_saved = data
            return True
