# walkaround_server/utils/helpers.py
"""Utility functions and helpers."""

import random
from typing import Optional

from walkaround_server.config.settings import (
    RANDOM_SPAWN_EXTENT,
    RANDOM_SPAWN_HEIGHT,
    SPAWN_JITTER,
)
from walkaround_server.models.entities import Vec3


def random_color(rng: Optional[random.Random] = None) -> str:
    """Random 24-bit colour as a CSS hex string."""
    rng = rng or random
    return f"#{rng.randrange(0x1000000):06x}"


def jittered_spawn(
    spawn: Vec3, rng: Optional[random.Random] = None, jitter: float = SPAWN_JITTER
) -> Vec3:
    """Spawn point plus a small x/z offset so players don't stack."""
    rng = rng or random
    return Vec3(
        spawn.x + rng.uniform(-jitter, jitter),
        spawn.y,
        spawn.z + rng.uniform(-jitter, jitter),
    )


def random_spawn(
    rng: Optional[random.Random] = None,
    extent: float = RANDOM_SPAWN_EXTENT,
    height: float = RANDOM_SPAWN_HEIGHT,
) -> Vec3:
    """Uniformly random position on the x/z plane, dropped from ``height``."""
    rng = rng or random
    return Vec3(rng.uniform(-extent, extent), height, rng.uniform(-extent, extent))
