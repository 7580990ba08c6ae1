"""
Shape Base
==========

Base class for direct-factory shapes. Subclasses override behavior_type,
draw_base_path() and update() to implement their gameplay.
"""

from __future__ import annotations

import math
from typing import Any, List, Optional, Tuple

from shapeflow.pool_core.behavior import BehaviorType
from shapeflow.pool_core.events import EventSink, NullBus, safe_emit


class Shape:
    """
    Survival shape with an intro phase.

    Lifecycle:
    - Intro plays for intro_duration + glint_duration ms, then is_ready()
    - Sequence shapes flip sequence_done from their own logic
    - Objective shapes flip objective_completed
    - Survival shapes complete through force_complete() when the timer ends
    """

    intro_duration: float = 2500.0
    glint_duration: float = 600.0

    def __init__(self, x: float, y: float, size: float, color: str, name: str = "Unnamed"):
        self.x = x
        self.y = y
        self.size = size
        self.color = color
        self.name = name
        self.rotation = 0.0
        self.current_level = 1
        self.bus: EventSink = NullBus()

        self.play_intro = True
        self.intro_timer = 0.0

        self.sequence_done = False
        self.objective_completed = False
        self.forced_complete = False

    @property
    def behavior_type(self) -> str:
        return BehaviorType.SURVIVAL.value

    def attach_bus(self, bus: EventSink) -> None:
        self.bus = bus

    def emit(self, event: str, payload: Any = None) -> None:
        safe_emit(self.bus, event, payload)

    def update(self, delta_time: float, level: Optional[int] = None) -> None:
        if self.play_intro:
            self.intro_timer += delta_time
            if self.intro_timer >= self.intro_duration + self.glint_duration:
                self.play_intro = False

    def draw(self, surface: Any) -> None:
        self.draw_base_path(surface)

    def draw_base_path(self, surface: Any) -> None:
        surface.fill_circle(self.x, self.y, self.size, self.color)

    def polygon_points(self, sides: int, radius: Optional[float] = None) -> List[Tuple[float, float]]:
        """Vertices of a regular polygon centered on the shape, honoring rotation."""
        r = self.size if radius is None else radius
        offset = math.radians(self.rotation) - math.pi / 2
        return [
            (self.x + r * math.cos(offset + 2 * math.pi * i / sides),
             self.y + r * math.sin(offset + 2 * math.pi * i / sides))
            for i in range(sides)
        ]

    def handle_click(self, x: float, y: float) -> bool:
        return False

    def check_boundary(self, area_x: float, area_y: float, area_size: float) -> bool:
        return False

    def set_rotation(self, degrees: float) -> None:
        self.rotation = degrees % 360

    def reset(self) -> None:
        self.play_intro = True
        self.intro_timer = 0.0
        self.sequence_done = False
        self.objective_completed = False
        self.forced_complete = False

    def reset_sequence(self, level: int) -> None:
        self.current_level = level
        self.reset()

    def is_ready(self) -> bool:
        return not self.play_intro

    def is_sequence_completed(self) -> bool:
        if self.behavior_type == BehaviorType.SEQUENCE.value:
            return self.sequence_done
        if self.behavior_type == BehaviorType.OBJECTIVE.value:
            return self.objective_completed or self.forced_complete
        return self.forced_complete

    def force_complete(self) -> None:
        self.forced_complete = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}, {self.behavior_type})"
