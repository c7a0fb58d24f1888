# walkaround_server/services/connection_registry.py
"""WebSocket connection management and outbound delivery."""

import asyncio
import contextlib
import logging
import uuid
from typing import Any, Dict, Iterator, List, Optional

from fastapi import WebSocket, WebSocketDisconnect, status

from walkaround_server.config.settings import OUTBOX_LIMIT
from walkaround_server.errors import TransportDead
from .wire_codec import encode_event

logger = logging.getLogger(__name__)


class Connection:
    """One live client socket with its own ordered outbox.

    ``send`` only queues the frame; a dedicated sender task writes frames to
    the socket in order, so callers never wait on the network. A client that
    lets ``max_outbox`` frames pile up is cut off and its socket closed.
    """

    def __init__(
        self,
        websocket: WebSocket,
        conn_id: Optional[str] = None,
        max_outbox: int = OUTBOX_LIMIT,
    ):
        self.id = conn_id or str(uuid.uuid4())
        self.websocket = websocket
        self.alive = True
        self._outbox: "asyncio.Queue[str]" = asyncio.Queue(maxsize=max_outbox)
        self._sender: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None

    def start(self):
        """Start the background sender task."""
        if self._sender is None:
            self._sender = asyncio.create_task(self._send_loop())

    def send(self, frame: str):
        if not self.alive:
            raise TransportDead(f"connection {self.id} is closed")
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "Connection %s has %d unsent frames, closing it", self.id, self._outbox.qsize()
            )
            self.alive = False
            self._closer = asyncio.get_running_loop().create_task(self._abort())
            raise TransportDead(f"connection {self.id} is not reading") from None

    async def _abort(self):
        # Closing the socket ends the receive loop, which runs the usual cleanup
        await self._stop_sender()
        try:
            await self.websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        except Exception as exc:
            logger.debug("Close of %s failed: %s", self.id, exc)

    async def _send_loop(self):
        try:
            while True:
                frame = await self._outbox.get()
                await self.websocket.send_text(frame)
        except WebSocketDisconnect:
            logger.debug("Connection %s went away while sending", self.id)
        except Exception as exc:
            logger.debug("Send to %s failed: %s", self.id, exc)
        finally:
            self.alive = False

    async def _stop_sender(self):
        if self._sender is not None:
            self._sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sender

    async def close(self):
        """Stop sending; frames still queued are discarded."""
        self.alive = False
        await self._stop_sender()
        if self._closer is not None:
            await self._closer


class ConnectionRegistry:
    """Tracks live connections by id and is the only writer to the wire."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def add(self, connection: Connection):
        self._connections[connection.id] = connection

    def remove(self, conn_id: str) -> Optional[Connection]:
        return self._connections.pop(conn_id, None)

    def get(self, conn_id: str) -> Optional[Connection]:
        return self._connections.get(conn_id)

    def is_alive(self, conn_id: str) -> bool:
        connection = self._connections.get(conn_id)
        return connection is not None and connection.alive

    def ids(self) -> List[str]:
        return list(self._connections)

    def __contains__(self, conn_id: str) -> bool:
        return conn_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def send_frame(self, conn_id: str, frame: str) -> bool:
        """Queue an already encoded frame for one connection."""
        connection = self._connections.get(conn_id)
        if connection is None:
            logger.debug("Dropping frame for unknown connection %s", conn_id)
            return False
        return self._deliver(connection, frame)

    def send(self, conn_id: str, name: str, *args: Any) -> bool:
        """Send an event to one connection. Returns False if it was dropped."""
        return self.send_frame(conn_id, encode_event(name, *args))

    def broadcast(self, name: str, *args: Any):
        """Send an event to every live connection."""
        frame = encode_event(name, *args)
        for connection in self:
            self._deliver(connection, frame)

    def broadcast_except(self, conn_id: str, name: str, *args: Any):
        """Send an event to every live connection but ``conn_id``."""
        frame = encode_event(name, *args)
        for connection in self:
            if connection.id != conn_id:
                self._deliver(connection, frame)

    @staticmethod
    def _deliver(connection: Connection, frame: str) -> bool:
        try:
            connection.send(frame)
        except TransportDead as exc:
            logger.debug("Dropping frame: %s", exc)
            return False
        return True
