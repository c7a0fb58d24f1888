# walkaround_server/api/routes.py
"""HTTP routes: server info endpoints and static/SPA delivery."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from walkaround_server.config.settings import ServerSettings, get_server_config
from walkaround_server.services.session_coordinator import SessionCoordinator


class ServerAPI:
    """API routes for server endpoints and the web client bundle."""

    def __init__(self, coordinator: SessionCoordinator, settings: ServerSettings):
        self.coordinator = coordinator
        self.settings = settings
        self.router = APIRouter()
        self._setup_routes()

    def _setup_routes(self):
        """Set up all API routes."""

        @self.router.get("/api/server/config")
        async def get_server_config_endpoint():
            """Get the public server configuration."""
            return get_server_config(self.settings)

        @self.router.get("/api/server/stats")
        async def get_server_stats():
            """Get connection, player and queue counts."""
            return self.coordinator.get_stats()

        @self.router.get("/api/spawn")
        async def get_spawn_point():
            """Get the current spawn point."""
            return self.coordinator.spawn_store.get().to_wire()

        # Registered last so it never shadows the endpoints above
        @self.router.get("/{file_path:path}")
        async def serve_client(file_path: str):
            """Serve a static asset, falling back to the SPA entry document."""
            asset = self.find_asset(file_path)
            if asset is not None:
                return FileResponse(asset)
            entry = self.settings.spa_entry
            if entry.is_file():
                return FileResponse(entry)
            raise HTTPException(status_code=404, detail="Not Found")

    def find_asset(self, file_path: str) -> Optional[Path]:
        """Resolve ``file_path`` inside one of the asset roots."""
        if not file_path:
            return None
        for root in self.settings.asset_roots():
            root = root.resolve()
            candidate = (root / file_path).resolve()
            # Refuse anything that escapes the root
            if root != candidate and root not in candidate.parents:
                continue
            if candidate.is_file():
                return candidate
        return None
