# walkaround_server/main.py
"""Application assembly and entry point for the session server."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from walkaround_server.api.routes import ServerAPI
from walkaround_server.config.settings import LOG_LEVEL, ServerSettings
from walkaround_server.services.connection_registry import Connection, ConnectionRegistry
from walkaround_server.services.session_coordinator import SessionCoordinator
from walkaround_server.services.spawn_store import SpawnStore
from walkaround_server.services.wire_codec import EventRouter

logger = logging.getLogger(__name__)


def setup_logging(level: str = LOG_LEVEL):
    """Configure console logging for the whole process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(settings: Optional[ServerSettings] = None) -> FastAPI:
    """Build the FastAPI app with its own session state."""
    settings = settings or ServerSettings()

    registry = ConnectionRegistry()
    spawn_store = SpawnStore(settings.spawn_config_path, settings.default_spawn_point)
    coordinator = SessionCoordinator(
        registry,
        spawn_store,
        max_players=settings.max_players,
        spawn_policy=settings.spawn_policy,
    )
    router = EventRouter()
    coordinator.register(router)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        spawn_store.load()
        logger.info(
            "Session server ready: max %d players, spawn policy %s",
            settings.max_players,
            settings.spawn_policy,
        )
        yield
        await spawn_store.flush()
        logger.info("Session server stopped")

    app = FastAPI(lifespan=lifespan)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.spawn_store = spawn_store
    app.state.coordinator = coordinator
    app.state.router = router

    @app.websocket("/")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        connection = Connection(websocket, max_outbox=settings.outbox_limit)
        conn_id = connection.id
        registry.add(connection)
        connection.start()
        logger.info("Connection %s opened from %s", conn_id, websocket.client)

        def reply_sink(frame: str):
            registry.send_frame(conn_id, frame)

        try:
            coordinator.handle_connect(conn_id)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.debug("Ignoring binary frame from %s", conn_id)
                    continue
                await router.dispatch(conn_id, text, reply_sink)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("Connection %s failed", conn_id)
        finally:
            registry.remove(conn_id)
            coordinator.handle_disconnect(conn_id)
            await connection.close()
            logger.info("Connection %s closed", conn_id)

    app.include_router(ServerAPI(coordinator, settings).router)
    return app


app = create_app()


def run():
    """Console entry point: ``walkaround-server``."""
    setup_logging()
    settings = ServerSettings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
