"""Shared fixtures for the session server tests."""

from __future__ import annotations

import json
import random
from pathlib import Path

import pytest

from walkaround_server.errors import TransportDead
from walkaround_server.services.connection_registry import ConnectionRegistry
from walkaround_server.services.session_coordinator import SessionCoordinator
from walkaround_server.services.spawn_store import SpawnStore


class FakeConnection:
    """Stands in for a live socket and records every frame sent to it."""

    def __init__(self, conn_id: str) -> None:
        self.id = conn_id
        self.alive = True
        self.frames: list[dict] = []

    def send(self, frame: str) -> None:
        if not self.alive:
            raise TransportDead(f"connection {self.id} is closed")
        self.frames.append(json.loads(frame))

    def events(self, name: str | None = None) -> list[tuple[str, list]]:
        return [
            (frame["event"], frame["args"])
            for frame in self.frames
            if "event" in frame and (name is None or frame["event"] == name)
        ]

    def names(self) -> list[str]:
        return [name for name, _ in self.events()]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def spawn_path(tmp_path: Path) -> Path:
    return tmp_path / "spawn_config.json"


@pytest.fixture
def spawn_store(spawn_path: Path) -> SpawnStore:
    return SpawnStore(spawn_path)


@pytest.fixture
def make_coordinator(registry: ConnectionRegistry, spawn_store: SpawnStore):
    def factory(max_players: int = 20, spawn_policy: str = "jitter") -> SessionCoordinator:
        return SessionCoordinator(
            registry,
            spawn_store,
            max_players=max_players,
            spawn_policy=spawn_policy,
            rng=random.Random(1234),
        )

    return factory


@pytest.fixture
def connect(registry: ConnectionRegistry):
    """Register a fake connection and run the connect handler for it."""

    def do_connect(coordinator: SessionCoordinator, conn_id: str) -> FakeConnection:
        connection = FakeConnection(conn_id)
        registry.add(connection)
        coordinator.handle_connect(conn_id)
        return connection

    return do_connect


@pytest.fixture
def disconnect(registry: ConnectionRegistry):
    """Drop a fake connection the way the WebSocket endpoint does."""

    def do_disconnect(coordinator: SessionCoordinator, connection: FakeConnection) -> None:
        registry.remove(connection.id)
        connection.alive = False
        coordinator.handle_disconnect(connection.id)

    return do_disconnect
