"""Tests for spawn point storage and persistence."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest

from walkaround_server.errors import PersistenceError
from walkaround_server.models.entities import Vec3
from walkaround_server.services.spawn_store import SpawnStore


class TestSpawnStore:
    def test_default_without_file(self, spawn_store: SpawnStore) -> None:
        assert spawn_store.load() == Vec3(0, 5, 0)
        assert spawn_store.get() == Vec3(0, 5, 0)

    def test_get_returns_a_copy(self, spawn_store: SpawnStore) -> None:
        spawn_store.get().x = 99
        assert spawn_store.get() == Vec3(0, 5, 0)

    def test_set_then_get(self, spawn_store: SpawnStore) -> None:
        spawn_store.set(Vec3(7, 5, -2))
        assert spawn_store.get() == Vec3(7, 5, -2)

    def test_set_survives_restart(self, spawn_store: SpawnStore, spawn_path: Path) -> None:
        spawn_store.set(Vec3(7, 5, -2))

        assert json.loads(spawn_path.read_text()) == {"x": 7, "y": 5, "z": -2}
        fresh = SpawnStore(spawn_path)
        fresh.load()
        assert fresh.get() == Vec3(7, 5, -2)

    def test_set_leaves_no_temp_files(self, spawn_store: SpawnStore, spawn_path: Path) -> None:
        spawn_store.set(Vec3(1, 2, 3))
        spawn_store.set(Vec3(4, 5, 6))
        assert [p.name for p in spawn_path.parent.iterdir()] == [spawn_path.name]

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[1, 2, 3]",
            '{"x": 1, "y": 2}',
            '{"x": "a", "y": 2, "z": 3}',
            '{"x": 1' + "0" * 400 + ', "y": 2, "z": 3}',
        ],
    )
    def test_malformed_file_keeps_default(
        self, spawn_path: Path, content: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        spawn_path.write_text(content)
        store = SpawnStore(spawn_path)

        with caplog.at_level(logging.WARNING):
            assert store.load() == Vec3(0, 5, 0)
        assert "malformed" in caplog.text

    def test_undecodable_file_keeps_default(
        self, spawn_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        spawn_path.write_bytes(b'\xff\xfe{"x": 1}')
        store = SpawnStore(spawn_path)

        with caplog.at_level(logging.WARNING):
            assert store.load() == Vec3(0, 5, 0)
        assert "Could not read spawn file" in caplog.text

    def test_write_failure_keeps_memory_value(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = SpawnStore(blocker / "spawn_config.json")

        with pytest.raises(PersistenceError):
            store.set(Vec3(1, 1, 1))
        assert store.get() == Vec3(1, 1, 1)

    def test_update_persists_in_background(self, spawn_store: SpawnStore, spawn_path: Path) -> None:
        async def run() -> None:
            spawn_store.update(Vec3(1, 2, 3))
            spawn_store.update(Vec3(4, 5, 6))
            assert spawn_store.get() == Vec3(4, 5, 6)
            await spawn_store.flush()

        asyncio.run(run())
        assert json.loads(spawn_path.read_text()) == {"x": 4, "y": 5, "z": 6}

    def test_update_failure_is_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = SpawnStore(blocker / "spawn_config.json")

        async def run() -> None:
            store.update(Vec3(1, 1, 1))
            await store.flush()

        with caplog.at_level(logging.ERROR):
            asyncio.run(run())
        assert store.get() == Vec3(1, 1, 1)
        assert "Failed to persist" in caplog.text
