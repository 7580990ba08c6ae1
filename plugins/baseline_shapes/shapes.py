"""
Baseline Shapes
===============

The stock shape set. Each class is a direct factory:
Shape(x, y, size, color, name) builds a ready-to-reset unit.

Survival shapes finish when the level timer calls force_complete().
Sequence and objective shapes finish through their own gameplay.
"""

import math
from typing import List, Optional, Tuple

import numpy as np

from shapeflow.pool_core.behavior import BehaviorType
from shapeflow.pool_core.shape import Shape


def _inside_circle(x: float, y: float, cx: float, cy: float, r: float) -> bool:
    return (x - cx) ** 2 + (y - cy) ** 2 <= r * r


class Circle(Shape):
    """Breathing circle. Pure survival."""

    def __init__(self, x, y, size, color, name="Circle"):
        super().__init__(x, y, size, color, name)
        self.pulse_timer = 0.0

    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        self.pulse_timer += delta_time

    def draw_base_path(self, surface):
        scale = 1.0 + 0.05 * math.sin(self.pulse_timer / 300.0)
        surface.fill_circle(self.x, self.y, self.size * scale, self.color)


class Square(Shape):
    """Tap the square until it has shrunk away (2 + level taps)."""

    def __init__(self, x, y, size, color, name="Square"):
        super().__init__(x, y, size, color, name)
        self.base_size = size
        self.taps = 0

    @property
    def behavior_type(self):
        return BehaviorType.SEQUENCE.value

    @property
    def taps_required(self) -> int:
        return 2 + self.current_level

    def reset(self):
        super().reset()
        self.taps = 0
        self.size = self.base_size

    def handle_click(self, x, y):
        if not self.is_ready() or self.sequence_done:
            return False
        half = self.size
        if abs(x - self.x) > half or abs(y - self.y) > half:
            return False

        self.taps += 1
        self.size = self.base_size * (1.0 - self.taps / (self.taps_required + 1))
        self.emit("audio:sfx", {"name": "tap"})
        if self.taps >= self.taps_required:
            self.sequence_done = True
        return True

    def draw_base_path(self, surface):
        surface.fill_polygon(self.polygon_points(4, self.size * math.sqrt(2)), self.color)

    def on_start(self):
        self.taps = 0

    def on_complete(self):
        self.emit("fx:confetti", {"color": self.color})


class Triangle(Shape):
    """Slowly spinning triangle. Survival."""

    spin_speed = 0.03  # degrees per ms

    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        if not self.play_intro:
            self.set_rotation(self.rotation + self.spin_speed * delta_time)

    def draw_base_path(self, surface):
        surface.fill_polygon(self.polygon_points(3), self.color)


class Pentagon(Shape):
    """Survival shape that veils the top and bottom play-area edges."""

    def reset_sequence(self, level):
        super().reset_sequence(level)
        self.emit("playArea/clearEdgeMasks", {"animate": False})
        self.emit("playArea/hideTopEdge")
        self.emit("playArea/hideBottomEdge")

    def draw_base_path(self, surface):
        surface.fill_polygon(self.polygon_points(5), self.color)

    def on_start(self):
        pass

    def on_complete(self):
        self.emit("playArea/finishEdgeMasks")


class Octagon(Shape):
    """
    Lights its eight facets one after another once the intro is over.

    The sequence is done after a full lap; higher levels light faster.
    """

    facets = 8

    def __init__(self, x, y, size, color, name="Octagon"):
        super().__init__(x, y, size, color, name)
        self.lit = 0
        self.facet_timer = 0.0

    @property
    def behavior_type(self):
        return BehaviorType.SEQUENCE.value

    @property
    def facet_interval(self) -> float:
        return max(120.0, 400.0 - 60.0 * (self.current_level - 1))

    def reset(self):
        super().reset()
        self.lit = 0
        self.facet_timer = 0.0

    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        if self.play_intro or self.sequence_done:
            return
        self.facet_timer += delta_time
        while self.facet_timer >= self.facet_interval and self.lit < self.facets:
            self.facet_timer -= self.facet_interval
            self.lit += 1
        if self.lit >= self.facets:
            self.sequence_done = True

    def draw_base_path(self, surface):
        points = self.polygon_points(self.facets)
        surface.fill_polygon(points, self.color)
        for px, py in points[:self.lit]:
            surface.fill_circle(px, py, self.size * 0.08, "#FFFFFF")

    def on_start(self):
        pass

    def on_complete(self):
        pass


class Ellipse(Shape):
    """Hops between three lanes during the intro; tap it to win."""

    hop_duration = 400.0
    hop_sequence = (1, 0, 1, 2, 0, 1)

    def __init__(self, x, y, size, color, name="Ellipse"):
        super().__init__(x, y, size * 0.78, color, name)
        self.home_x = x
        self.radius_x = self.size * 1.15
        self.radius_y = self.size * 1.35
        self.lanes = (-self.size * 2.2, 0.0, self.size * 2.2)

    @property
    def behavior_type(self):
        return BehaviorType.OBJECTIVE.value

    def reset(self):
        super().reset()
        self.x = self.home_x

    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        if not self.play_intro:
            self.x = self.home_x
            return
        hop = int(self.intro_timer // self.hop_duration)
        if hop < len(self.hop_sequence) - 1:
            t = (self.intro_timer % self.hop_duration) / self.hop_duration
            start = self.lanes[self.hop_sequence[hop]]
            end = self.lanes[self.hop_sequence[hop + 1]]
            self.x = self.home_x + start + (end - start) * t
        else:
            self.x = self.home_x + self.lanes[self.hop_sequence[-1]]

    def handle_click(self, x, y):
        if not self.is_ready() or self.objective_completed:
            return False
        nx = (x - self.x) / self.radius_x
        ny = (y - self.y) / self.radius_y
        if nx * nx + ny * ny > 1.0:
            return False
        self.objective_completed = True
        self.emit("score:add", {"points": 10})
        return True

    def draw_base_path(self, surface):
        surface.fill_ellipse(self.x, self.y, self.radius_x, self.radius_y, self.color)


class Kite(Shape):
    """Survival kite that also veils the top and bottom edges."""

    def reset_sequence(self, level):
        super().reset_sequence(level)
        self.emit("playArea/clearEdgeMasks", {"animate": False})
        self.emit("playArea/hideTopEdge")
        self.emit("playArea/hideBottomEdge")

    def force_complete(self):
        super().force_complete()
        self.sequence_done = True
        self.emit("playArea/finishEdgeMasks")

    def draw_base_path(self, surface):
        s = self.size
        points = [
            (self.x, self.y - s * 1.2),
            (self.x + s * 0.7, self.y - s * 0.2),
            (self.x, self.y + s * 1.4),
            (self.x - s * 0.7, self.y - s * 0.2),
        ]
        surface.fill_polygon(points, self.color)


class Star(Shape):
    """Collect twinkles by tapping the star (3 + level taps)."""

    def __init__(self, x, y, size, color, name="Star"):
        super().__init__(x, y, size, color, name)
        self.collected = 0

    @property
    def behavior_type(self):
        return BehaviorType.OBJECTIVE.value

    @property
    def target(self) -> int:
        return 3 + self.current_level

    def reset(self):
        super().reset()
        self.collected = 0

    def handle_click(self, x, y):
        if not self.is_ready() or self.objective_completed:
            return False
        if not _inside_circle(x, y, self.x, self.y, self.size):
            return False
        self.collected += 1
        self.emit("score:add", {"points": 1})
        if self.collected >= self.target:
            self.objective_completed = True
        return True

    def star_points(self, spikes: int = 5, inner_ratio: float = 0.45) -> List[Tuple[float, float]]:
        offset = math.radians(self.rotation) - math.pi / 2
        points = []
        for i in range(spikes * 2):
            r = self.size if i % 2 == 0 else self.size * inner_ratio
            angle = offset + math.pi * i / spikes
            points.append((self.x + r * math.cos(angle), self.y + r * math.sin(angle)))
        return points

    def draw_base_path(self, surface):
        surface.fill_polygon(self.star_points(), self.color)

    def on_start(self):
        pass

    def on_complete(self):
        self.emit("fx:glowPulse", {"color": self.color})


class Shapeless(Shape):
    """Wobbling blob with no fixed outline."""

    num_points = 30

    def __init__(self, x, y, size, color, name="Shapeless", seed: Optional[int] = None):
        super().__init__(x, y, size * 1.1, color, name)
        self._rng = np.random.default_rng(seed)
        self.angles = np.linspace(0.0, 2 * np.pi, self.num_points, endpoint=False)
        self.phases = self._rng.uniform(0.0, 2 * np.pi, self.num_points)
        self.wobble_timer = 0.0

    def reset(self):
        super().reset()
        self.phases = self._rng.uniform(0.0, 2 * np.pi, self.num_points)
        self.wobble_timer = 0.0

    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        self.wobble_timer += delta_time

    def outline(self) -> List[Tuple[float, float]]:
        radii = self.size * (1.0 + 0.15 * np.sin(self.phases + self.wobble_timer / 250.0))
        xs = self.x + radii * np.cos(self.angles)
        ys = self.y + radii * np.sin(self.angles)
        return list(zip(xs.tolist(), ys.tolist()))

    def draw_base_path(self, surface):
        surface.fill_polygon(self.outline(), self.color)
