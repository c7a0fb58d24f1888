# walkaround_server/services/session_coordinator.py
"""Admission, roster and movement logic for all connected sessions."""

import logging
import random
from typing import Any, Callable, Dict, List, Optional

from walkaround_server.config.settings import MAX_PLAYERS
from walkaround_server.models.entities import Animation, Player, Pose, Session, Vec3
from walkaround_server.utils.helpers import jittered_spawn, random_color, random_spawn
from .admission_queue import AdmissionQueue
from .connection_registry import ConnectionRegistry
from .spawn_store import SpawnStore
from .wire_codec import ClientEvent, EventRouter, ServerEvent

logger = logging.getLogger(__name__)


class SessionCoordinator:
    """Owns the player table and the admission queue.

    Handlers never await, so each one runs to completion on the event loop
    and its state changes and sends are observed atomically.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        spawn_store: SpawnStore,
        max_players: int = MAX_PLAYERS,
        spawn_policy: str = "jitter",
        rng: Optional[random.Random] = None,
    ):
        self.registry = registry
        self.spawn_store = spawn_store
        self.max_players = max_players
        self.spawn_policy = spawn_policy
        self.rng = rng or random.Random()
        self.sessions: Dict[str, Session] = {}
        self.queue = AdmissionQueue()
        self.players: Dict[str, Player] = {}

    def register(self, router: EventRouter):
        """Attach the client event handlers to ``router``."""
        router.on(ClientEvent.SPAWN, self.handle_spawn)
        router.on(ClientEvent.MOVE, self.handle_move)
        router.on(ClientEvent.UPDATE_SPAWN_POINT, self.handle_update_spawn_point)
        router.ack_reply(ClientEvent.REQUEST_SPAWN_POINT, self.handle_request_spawn_point)
        router.ack_reply(ClientEvent.PING_SYNC, self.handle_ping_sync)

    @property
    def occupied_slots(self) -> int:
        # A slot is taken from loginAllowed onwards, before the player spawns
        return sum(1 for session in self.sessions.values() if session.is_admitted)

    def handle_connect(self, conn_id: str):
        """Queue a new session and let it in if there is room."""
        if conn_id in self.sessions:
            logger.debug("Ignoring duplicate connect for %s", conn_id)
            return

        self.sessions[conn_id] = Session(conn_id)
        position = self.queue.enqueue(conn_id)
        logger.info("Session %s connected, queue position %d", conn_id, position)
        self.registry.send(conn_id, ServerEvent.QUEUE_UPDATE, position)

        self.try_admit()

        self.registry.send(conn_id, ServerEvent.SPAWN_POINT_UPDATED, self.spawn_store.get())

    def try_admit(self, reshuffled: bool = False) -> List[str]:
        """Admit queued sessions while slots are free.

        Queued sessions are told their new position whenever the queue
        changed, either here or by the caller (``reshuffled``).
        """
        admitted = []
        # Dead sessions don't take a slot, so keep draining until full
        while True:
            popped = self.queue.drain_to_capacity(self.occupied_slots, self.max_players)
            if not popped:
                break
            reshuffled = True
            for conn_id in popped:
                session = self.sessions.get(conn_id)
                if session is None or not self.registry.is_alive(conn_id):
                    logger.debug("Skipping admission of dead session %s", conn_id)
                    continue
                session.admit()
                admitted.append(conn_id)
                logger.info(
                    "Session %s admitted (%d/%d)", conn_id, self.occupied_slots, self.max_players
                )
                self.registry.send(conn_id, ServerEvent.LOGIN_ALLOWED)

        if reshuffled:
            for conn_id, position in self.queue.positions_snapshot():
                self.registry.send(conn_id, ServerEvent.QUEUE_UPDATE, position)
        return admitted

    def handle_spawn(self, conn_id: str):
        """Create the player for an admitted session."""
        session = self.sessions.get(conn_id)
        if session is None or not session.is_admitted:
            logger.debug("Ignoring spawn from non-admitted session %s", conn_id)
            return
        if conn_id in self.players:
            logger.debug("Ignoring repeated spawn from %s", conn_id)
            return

        player = Player(
            id=conn_id,
            position=self._initial_position(),
            rotation=0.0,
            animation=Animation.IDLE.value,
            color=random_color(self.rng),
        )
        self.players[conn_id] = player
        logger.info("Player %s spawned at %s", conn_id, player.position)

        self.registry.send(conn_id, ServerEvent.CURRENT_PLAYERS, dict(self.players))
        self.registry.broadcast_except(conn_id, ServerEvent.NEW_PLAYER, player)

        self.try_admit()

    def handle_move(self, conn_id: str, position: Any, rotation: Any, animation: Any):
        """Overwrite the sender's pose and relay it to everybody else."""
        player = self.players.get(conn_id)
        if player is None:
            logger.debug("Dropping move from %s: no player", conn_id)
            return

        pose = Pose.from_wire(position, rotation, animation)
        player.position = pose.position
        player.rotation = pose.rotation
        player.animation = pose.animation

        self.registry.broadcast_except(conn_id, ServerEvent.PLAYER_MOVED, player)

    def handle_update_spawn_point(self, conn_id: str, position: Any):
        """Replace the spawn point and tell every connection."""
        session = self.sessions.get(conn_id)
        if session is None or not session.is_admitted:
            logger.debug("Dropping spawn point edit from non-admitted session %s", conn_id)
            return

        point = Vec3.from_wire(position)
        if point != self.spawn_store.get():
            self.spawn_store.update(point)
            logger.info("Spawn point set to %s by %s", point, conn_id)

        self.registry.broadcast(ServerEvent.SPAWN_POINT_UPDATED, point)

    def handle_request_spawn_point(self, conn_id: str, reply: Callable[..., None]):
        spawn = self.spawn_store.get()
        self.registry.send(conn_id, ServerEvent.SPAWN_POINT_UPDATED, spawn)
        reply(spawn)

    def handle_ping_sync(self, conn_id: str, reply: Callable[..., None]):
        reply()

    def handle_disconnect(self, conn_id: str):
        """Forget the session, tell others if it had a player, refill the slot."""
        session = self.sessions.pop(conn_id, None)
        if session is None:
            return

        was_queued = self.queue.remove(conn_id)
        player = self.players.pop(conn_id, None)
        logger.info("Session %s disconnected (%s)", conn_id, session.state.value)
        if player is not None:
            self.registry.broadcast(ServerEvent.PLAYER_DISCONNECTED, conn_id)

        self.try_admit(reshuffled=was_queued)

    def _initial_position(self) -> Vec3:
        if self.spawn_policy == "random":
            return random_spawn(self.rng)
        return jittered_spawn(self.spawn_store.get(), self.rng)

    def get_stats(self) -> Dict[str, int]:
        return {
            "connections": len(self.registry),
            "players": len(self.players),
            "queued": len(self.queue),
        }
