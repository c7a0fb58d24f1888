# walkaround_server/services/wire_codec.py
"""Event framing over the WebSocket and routing of incoming events.

Every text frame is a JSON object. Events look like::

    {"event": "move", "args": [{"x": 1, "y": 5, "z": 1}, 0.0, "Run"]}

A client that wants a reply adds an integer ``"ack"`` id, and the server
answers with ``{"ack": <id>, "args": [...]}``.
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from walkaround_server.errors import MalformedEvent

logger = logging.getLogger(__name__)


class ServerEvent:
    """Names of events the server emits."""

    QUEUE_UPDATE = "queueUpdate"
    LOGIN_ALLOWED = "loginAllowed"
    CURRENT_PLAYERS = "currentPlayers"
    NEW_PLAYER = "newPlayer"
    PLAYER_MOVED = "playerMoved"
    PLAYER_DISCONNECTED = "playerDisconnected"
    SPAWN_POINT_UPDATED = "spawnPointUpdated"


class ClientEvent:
    """Names of events the server accepts."""

    SPAWN = "spawn"
    MOVE = "move"
    UPDATE_SPAWN_POINT = "updateSpawnPoint"
    REQUEST_SPAWN_POINT = "requestSpawnPoint"
    PING_SYNC = "pingSync"


@dataclass
class IncomingEvent:
    name: str
    args: List[Any] = field(default_factory=list)
    ack: Optional[int] = None


def _to_json(value: Any) -> Any:
    """Turn entity objects into plain JSON values."""
    if hasattr(value, "to_wire"):
        return value.to_wire()
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return value


def encode_event(name: str, *args: Any) -> str:
    """Serialize one server event to a text frame."""
    return json.dumps({"event": name, "args": [_to_json(arg) for arg in args]})


def encode_ack(ack_id: int, *args: Any) -> str:
    """Serialize the reply to an acknowledged client event."""
    return json.dumps({"ack": ack_id, "args": [_to_json(arg) for arg in args]})


def decode_event(raw: Union[str, bytes]) -> IncomingEvent:
    """Parse a client text frame into an IncomingEvent."""
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedEvent(f"frame is not valid JSON: {exc}") from exc

    if not isinstance(frame, dict):
        raise MalformedEvent("frame must be a JSON object")

    name = frame.get("event")
    if not isinstance(name, str) or not name:
        raise MalformedEvent("frame has no event name")

    args = frame.get("args", [])
    if not isinstance(args, list):
        raise MalformedEvent("args must be a list")

    ack = frame.get("ack")
    if ack is not None and (isinstance(ack, bool) or not isinstance(ack, int)):
        raise MalformedEvent("ack id must be an integer")

    return IncomingEvent(name=name, args=args, ack=ack)


FrameSink = Callable[[str], None]
Handler = Callable[..., Optional[Awaitable[None]]]


@dataclass
class _Route:
    handler: Handler
    signature: inspect.Signature
    wants_ack: bool


class EventRouter:
    """Maps event names to handlers and isolates handler failures.

    Handlers are called as ``handler(conn_id, *args)``. Handlers registered
    with :meth:`ack_reply` get one more trailing argument, a ``reply``
    callable that answers the client's acknowledgement.
    """

    def __init__(self):
        self._routes: Dict[str, _Route] = {}

    def on(self, name: str, handler: Handler):
        self._routes[name] = _Route(handler, inspect.signature(handler), False)

    def ack_reply(self, name: str, handler: Handler):
        self._routes[name] = _Route(handler, inspect.signature(handler), True)

    def __contains__(self, name: str) -> bool:
        return name in self._routes

    async def dispatch(self, conn_id: str, raw: Union[str, bytes], sink: FrameSink):
        """Decode one frame and run its handler."""
        try:
            event = decode_event(raw)
        except MalformedEvent as exc:
            logger.debug("Dropping malformed frame from %s: %s", conn_id, exc)
            return
        await self.handle(conn_id, event, sink)

    async def handle(self, conn_id: str, event: IncomingEvent, sink: FrameSink):
        route = self._routes.get(event.name)
        if route is None:
            logger.debug("Ignoring unknown event %r from %s", event.name, conn_id)
            return

        args = list(event.args)
        if route.wants_ack:
            args.append(self._make_reply(event.ack, sink))

        try:
            route.signature.bind(conn_id, *args)
        except TypeError:
            logger.debug(
                "Dropping %r from %s: wrong number of arguments (%d)",
                event.name,
                conn_id,
                len(event.args),
            )
            return

        try:
            result = route.handler(conn_id, *args)
            if inspect.isawaitable(result):
                await result
        except MalformedEvent as exc:
            logger.debug("Dropping malformed %r from %s: %s", event.name, conn_id, exc)
        except Exception:
            logger.exception("Handler for %r failed for %s", event.name, conn_id)

    @staticmethod
    def _make_reply(ack_id: Optional[int], sink: FrameSink) -> Callable[..., None]:
        replied = False

        def reply(*args: Any):
            nonlocal replied
            # The client didn't ask for an ack, or we already answered
            if ack_id is None or replied:
                return
            replied = True
            sink(encode_ack(ack_id, *args))

        return reply
