# walkaround_server/config/settings.py
"""Server configuration constants and settings."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

# Network settings
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", 3000))
NODE_ENV = os.environ.get("NODE_ENV", "")

# CORS settings
CORS_ALLOW_ORIGINS = ["*"]  # Tighten in deployment
CORS_ALLOW_METHODS = ["GET", "POST"]

# Admission settings
MAX_PLAYERS = 20

# Frames queued for one client before it is treated as stalled
OUTBOX_LIMIT = 256

# Spawn settings
SPAWN_CONFIG_PATH = os.environ.get("SPAWN_CONFIG_PATH", "spawn_config.json")
DEFAULT_SPAWN_POINT = (0.0, 5.0, 0.0)
SPAWN_POLICY = os.environ.get("SPAWN_POLICY", "jitter")  # "jitter" or "random"
SPAWN_JITTER = 1.0
RANDOM_SPAWN_EXTENT = 20.0
RANDOM_SPAWN_HEIGHT = 5.0

# Static assets
STATIC_ROOT = os.environ.get("STATIC_ROOT", ".")
SPA_ENTRY = "index.html"

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

SPAWN_POLICIES = ("jitter", "random")


@dataclass
class ServerSettings:
    """Everything needed to build one server instance."""

    host: str = HOST
    port: int = PORT
    node_env: str = NODE_ENV
    max_players: int = MAX_PLAYERS
    outbox_limit: int = OUTBOX_LIMIT
    spawn_config_path: str = SPAWN_CONFIG_PATH
    default_spawn_point: Tuple[float, float, float] = DEFAULT_SPAWN_POINT
    spawn_policy: str = SPAWN_POLICY
    static_root: str = STATIC_ROOT
    cors_allow_origins: List[str] = field(default_factory=lambda: list(CORS_ALLOW_ORIGINS))
    cors_allow_methods: List[str] = field(default_factory=lambda: list(CORS_ALLOW_METHODS))

    def __post_init__(self):
        if self.spawn_policy not in SPAWN_POLICIES:
            raise ValueError(
                f"spawn_policy must be one of {SPAWN_POLICIES}, got {self.spawn_policy!r}"
            )
        if self.max_players < 0:
            raise ValueError("max_players must not be negative")
        if self.outbox_limit < 1:
            raise ValueError("outbox_limit must be at least 1")

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    def asset_roots(self) -> List[Path]:
        """Directories searched for static files, in lookup order."""
        root = Path(self.static_root)
        if self.is_production:
            return [root / "dist"]
        return [root / "dist", root / "public"]

    @property
    def spa_entry(self) -> Path:
        return Path(self.static_root) / "dist" / SPA_ENTRY


def get_server_config(settings: ServerSettings) -> dict:
    """Get the public server configuration as a dictionary."""
    x, y, z = settings.default_spawn_point
    return {
        "maxPlayers": settings.max_players,
        "spawnPolicy": settings.spawn_policy,
        "defaultSpawnPoint": {"x": x, "y": y, "z": z},
    }
