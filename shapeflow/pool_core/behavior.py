"""Behavior unit contract shared by every pluggable shape."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol, Tuple


class BehaviorType(str, Enum):
    """How a shape reaches completion."""
    SURVIVAL = "survival"    # Lasts until the timer runs out
    SEQUENCE = "sequence"    # Completes only through its own internal logic
    OBJECTIVE = "objective"  # Player hits a goal before time expires

    @classmethod
    def parse(cls, value: Any) -> Optional["BehaviorType"]:
        """Return the matching member, or None for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


class BehaviorUnit(Protocol):
    """Protocol for a live shape instance handed out by the scheduler.

    A fresh instance is built for every turn and dropped when the scheduler
    moves on; units are never reused across turns.
    """

    name: str

    @property
    def behavior_type(self) -> str:
        """One of "survival", "sequence", "objective"."""
        ...

    def update(self, delta_time: float) -> None:
        """Advance the unit by delta_time milliseconds."""
        ...

    def draw(self, surface: Any) -> None:
        ...

    def is_ready(self) -> bool:
        """True once the intro has finished and input is accepted."""
        ...

    def is_sequence_completed(self) -> bool:
        ...

    def force_complete(self) -> None:
        """End the unit immediately. Optional for sequence units."""
        ...


# Direct-factory (v1) surface
REQUIRED_CAPABILITIES: Tuple[str, ...] = ("update", "draw", "is_ready", "is_sequence_completed")
OPTIONAL_CAPABILITIES: Tuple[str, ...] = (
    "reset_sequence", "force_complete", "check_boundary", "on_start", "on_complete",
)

# Context-factory (v2) surface
CONTEXT_REQUIRED_CAPABILITIES: Tuple[str, ...] = (
    "on_start", "update", "draw", "on_complete", "is_ready_to_play",
)


# Side activities launched between levels; any name in a group satisfies it
SIDE_ACTIVITY_REQUIRED: Tuple[Tuple[str, ...], ...] = (("on_start", "start"), ("on_complete", "complete"))
SIDE_ACTIVITY_LEGACY: Tuple[Tuple[str, ...], ...] = (("update",), ("is_ready", "ready"))


def has_capability(obj: Any, name: str) -> bool:
    """True if obj exposes a callable attribute called name."""
    return callable(getattr(obj, name, None))


def requires_force_complete(behavior_type: Any) -> bool:
    return BehaviorType.parse(behavior_type) is not BehaviorType.SEQUENCE
