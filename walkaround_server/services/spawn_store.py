# walkaround_server/services/spawn_store.py
"""The single editable spawn point and its JSON file on disk."""

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple, Union

from walkaround_server.config.settings import DEFAULT_SPAWN_POINT
from walkaround_server.errors import MalformedEvent, PersistenceError
from walkaround_server.models.entities import Vec3

logger = logging.getLogger(__name__)


class SpawnStore:
    """Owns the process-wide spawn point.

    The in-memory value is authoritative. ``set`` persists synchronously;
    ``update`` persists on a worker thread so the event loop never blocks on
    disk, and rapid edits collapse into a single write of the latest value.
    """

    def __init__(
        self,
        path: Union[str, Path] = "spawn_config.json",
        default: Tuple[float, float, float] = DEFAULT_SPAWN_POINT,
    ):
        self.path = Path(path)
        self._default = Vec3(*default)
        self._spawn = self._default.copy()
        self._dirty = False
        self._writer: Optional[asyncio.Task] = None

    def get(self) -> Vec3:
        return self._spawn.copy()

    def load(self) -> Vec3:
        """Read the spawn file, keeping the default when it is absent or bad."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No spawn file at %s, using default %s", self.path, self._default)
            return self.get()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read spawn file %s: %s", self.path, exc)
            return self.get()

        try:
            self._spawn = Vec3.from_wire(json.loads(raw))
        except (ValueError, MalformedEvent) as exc:
            logger.warning("Ignoring malformed spawn file %s: %s", self.path, exc)
        else:
            logger.info("Loaded spawn point %s from %s", self._spawn, self.path)
        return self.get()

    def set(self, point: Vec3):
        """Update the spawn point and write it to disk before returning."""
        self._spawn = point.copy()
        self._write(self._spawn)

    def update(self, point: Vec3):
        """Update the spawn point and persist it in the background."""
        self._spawn = point.copy()
        self._dirty = True
        if self._writer is None or self._writer.done():
            self._writer = asyncio.get_running_loop().create_task(self._drain_writes())

    async def flush(self):
        """Wait for any background write to finish."""
        if self._writer is not None:
            await self._writer

    async def _drain_writes(self):
        while self._dirty:
            self._dirty = False
            snapshot = self.get()
            try:
                await asyncio.to_thread(self._write, snapshot)
            except PersistenceError as exc:
                logger.error("%s", exc)

    def _write(self, point: Vec3):
        # Temp file in the same directory so the rename stays atomic
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(point.to_wire(), handle)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceError(f"Failed to persist spawn point to {self.path}: {exc}") from exc

