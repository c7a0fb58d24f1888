# walkaround_server/models/entities.py
"""Session entity models and data classes."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from walkaround_server.errors import MalformedEvent


def _coerce_number(value: Any, name: str) -> float:
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEvent(f"{name} must be a number, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError as exc:
        raise MalformedEvent(f"{name} is out of range") from exc
    if not math.isfinite(number):
        raise MalformedEvent(f"{name} must be finite")
    return number


@dataclass
class Vec3:
    """A point in world space."""

    x: float
    y: float
    z: float

    @classmethod
    def from_wire(cls, data: Any) -> "Vec3":
        """Decode ``{"x", "y", "z"}`` into a Vec3."""
        if not isinstance(data, dict):
            raise MalformedEvent("vector must be an object with x, y and z")
        try:
            return cls(
                x=_coerce_number(data["x"], "x"),
                y=_coerce_number(data["y"], "y"),
                z=_coerce_number(data["z"], "z"),
            )
        except KeyError as exc:
            raise MalformedEvent(f"vector is missing {exc.args[0]!r}") from exc

    def to_wire(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def copy(self) -> "Vec3":
        return Vec3(self.x, self.y, self.z)


class Animation(str, Enum):
    """Animation states a client can report for its character."""

    IDLE = "Idle"
    WALK = "Walk"
    RUN = "Run"
    JUMP = "Jump"

    @classmethod
    def validate(cls, value: Any) -> str:
        """Check that ``value`` names a known animation and return it unchanged.

        Clients send animation names in whatever case their renderer uses, so
        the match is case-insensitive and the client's spelling is kept for
        the broadcast.
        """
        if not isinstance(value, str):
            raise MalformedEvent("animation must be a string")
        known = {member.value.lower() for member in cls}
        if value.lower() not in known:
            raise MalformedEvent(f"unknown animation {value!r}")
        return value


class SessionState(str, Enum):
    QUEUED = "queued"
    ADMITTED = "admitted"


@dataclass
class Player:
    """Represents an admitted player in the world."""

    id: str
    position: Vec3
    rotation: float = 0.0  # Y-axis, radians
    animation: str = Animation.IDLE.value
    color: str = "#ffffff"

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position.to_wire(),
            "rotation": self.rotation,
            "animation": self.animation,
            "color": self.color,
        }


@dataclass
class Pose:
    """The triple carried by a ``move`` event."""

    position: Vec3
    rotation: float
    animation: str

    @classmethod
    def from_wire(cls, position: Any, rotation: Any, animation: Any) -> "Pose":
        return cls(
            position=Vec3.from_wire(position),
            rotation=_coerce_number(rotation, "rotation"),
            animation=Animation.validate(animation),
        )


@dataclass
class Session:
    """One live connection as seen by the session coordinator."""

    id: str
    state: SessionState = SessionState.QUEUED

    @property
    def is_queued(self) -> bool:
        return self.state is SessionState.QUEUED

    @property
    def is_admitted(self) -> bool:
        return self.state is SessionState.ADMITTED

    def admit(self):
        """Move from Queued to Admitted; never goes backwards."""
        if self.state is not SessionState.QUEUED:
            raise ValueError(f"session {self.id} was already admitted")
        self.state = SessionState.ADMITTED
