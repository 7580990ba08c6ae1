"""
Progression Modes
=================

Level flow on top of the scheduler.

- Rotation: play through the level's pool; when it is complete below the
  infinite level, prewarm the next level and hand over to a side activity;
  when the side activity ends, advance and consume the prewarm.
- Isolation: replay one chosen shape forever at a fixed level.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from shapeflow.pool_core.catalog import SideActivityDescriptor
from shapeflow.pool_core.events import EventSink, NullBus, safe_emit
from shapeflow.pool_core.logging_setup import get_logger
from shapeflow.pool_core.scheduler import ISOLATION, ROTATION, PoolScheduler

logger = get_logger("modes")


class RotationMode:
    """Rotation flow with a side activity between levels."""

    id = ROTATION

    def __init__(
        self,
        scheduler: PoolScheduler,
        bus: Optional[EventSink] = None,
        side_activity: str = "SimonSays",
        activities: Iterable[SideActivityDescriptor] = ()
    ):
        """
        Args:
            scheduler: Scheduler driving the shape pools.
            bus: Event sink for mini:launch and level:advance.
            side_activity: Name launched when no registered activity is eligible.
            activities: Registered side activities, launched in turn. Entries
                that fail verification are never launched.
        """
        self._scheduler = scheduler
        self._bus = bus if bus is not None else NullBus()
        self._side_activity = side_activity
        self._activities: List[str] = [
            a.name for a in activities
            if a.active and scheduler.verifier.verify_side_activity(a).ok
        ]
        self._next_activity = 0
        self.current_level = 1
        self.in_side_activity = False

    def start_level(self, level: int):
        self.current_level = level
        self.in_side_activity = False
        return self._scheduler.reset_sequence(level)

    def on_shape_completed(self):
        """
        Record the finished shape and pick what comes next.

        Returns:
            The next unit, or None when a side activity was launched.
        """
        self._scheduler.mark_current_complete()

        if self._scheduler.is_pool_completed() and self.current_level < self._scheduler.infinite_level:
            self._scheduler.prewarm(self.current_level + 1)
            self.start_side_activity()
            return None

        return self._scheduler.reset_sequence(self.current_level)

    def start_side_activity(self, name: Optional[str] = None) -> str:
        chosen = name or self._pick_activity()
        self.in_side_activity = True
        logger.info("Level %d complete, launching %s", self.current_level, chosen)
        safe_emit(self._bus, "mini:launch", {"name": chosen, "level": self.current_level})
        return chosen

    def _pick_activity(self) -> str:
        if not self._activities:
            return self._side_activity
        chosen = self._activities[self._next_activity % len(self._activities)]
        self._next_activity += 1
        return chosen

    def on_side_activity_completed(self):
        """Advance one level (up to the infinite level) and start its pool."""
        self.in_side_activity = False
        if self.current_level < self._scheduler.infinite_level:
            self.current_level += 1
        unit = self._scheduler.reset_sequence(self.current_level)
        safe_emit(self._bus, "level:advance", {"level": self.current_level})
        return unit

    def force_go(self, shape_name: str):
        """Restart the current level with shape_name first."""
        self.in_side_activity = False
        return self._scheduler.force_rotation(self.current_level, shape_name)


class IsolationMode:
    """Replays the chosen shape at the current level."""

    id = ISOLATION

    def __init__(self, scheduler: PoolScheduler):
        self._scheduler = scheduler
        self.current_level = 1

    def start_level(self, level: int):
        self.current_level = level
        return self._scheduler.reset_sequence(level)

    def on_shape_completed(self):
        self._scheduler.mark_current_complete()
        return self._scheduler.reset_sequence(self.current_level)


class ModeRegistry:
    """
    Holds both modes and delegates to the active one.

    Switching modes also switches the scheduler's mode so pools are rebuilt
    for the new flow on the next start_level().
    """

    def __init__(
        self,
        scheduler: PoolScheduler,
        bus: Optional[EventSink] = None,
        side_activity: str = "SimonSays",
        activities: Iterable[SideActivityDescriptor] = ()
    ):
        self._scheduler = scheduler
        self.rotation = RotationMode(scheduler, bus, side_activity, activities)
        self.isolation = IsolationMode(scheduler)
        self.active_id = scheduler.mode

    @property
    def active(self):
        return self.isolation if self.active_id == ISOLATION else self.rotation

    def set_active(self, mode: str) -> None:
        if mode not in (ROTATION, ISOLATION):
            raise ValueError(f"Unknown mode: {mode}")
        self.active_id = mode
        self._scheduler.set_mode(mode, restart=False)

    def start_level(self, level: int):
        return self.active.start_level(level)

    def on_shape_completed(self):
        return self.active.on_shape_completed()

    def on_side_activity_completed(self):
        if self.active_id != ROTATION:
            return None
        return self.rotation.on_side_activity_completed()

    def force_rotation_go(self, shape_name: str):
        self.set_active(ROTATION)
        return self.rotation.force_go(shape_name)
