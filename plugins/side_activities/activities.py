"""
Side Activities
===============

Mini-games played between levels. The outer game calls on_start() when the
activity is launched, feeds update()/handle_click(), and calls on_complete()
once is_sequence_completed() turns true.
"""

import math
from typing import List


class SideActivity:
    """Intro timer plus a completion flag."""

    name = "SideActivity"
    intro_duration: float = 2500.0

    def __init__(self, x: float, y: float, size: float):
        self.x = x
        self.y = y
        self.size = size
        self.intro_timer = 0.0
        self.complete = False
        self.won = False

    def on_start(self) -> None:
        self.intro_timer = 0.0
        self.complete = False
        self.won = False

    def update(self, delta_time: float) -> None:
        self.intro_timer += delta_time

    def is_ready(self) -> bool:
        return self.intro_timer >= self.intro_duration

    def draw(self, surface) -> None:
        surface.fill_circle(self.x, self.y, self.size, "#FFFFFF")

    def handle_click(self, x: float, y: float) -> bool:
        return False

    def is_sequence_completed(self) -> bool:
        return self.complete

    def on_complete(self) -> bool:
        """Returns whether the player won."""
        return self.won


class SimonSays(SideActivity):
    """Repeat a four-pad sequence; one mistake ends the round."""

    name = "SimonSays"
    pads = 4

    def __init__(self, x, y, size, length: int = 4):
        super().__init__(x, y, size)
        self.length = length
        self.sequence: List[int] = [(i * 3 + 1) % self.pads for i in range(length)]
        self.position = 0

    def on_start(self) -> None:
        super().on_start()
        self.position = 0

    def pad_at(self, x: float, y: float) -> int:
        angle = math.atan2(y - self.y, x - self.x) % (2 * math.pi)
        return int(angle / (2 * math.pi / self.pads)) % self.pads

    def handle_click(self, x, y):
        if not self.is_ready() or self.complete:
            return False
        if self.pad_at(x, y) != self.sequence[self.position]:
            self.complete = True
            return True
        self.position += 1
        if self.position >= self.length:
            self.won = True
            self.complete = True
        return True


class TargetPractice(SideActivity):
    """Hit the target a fixed number of times before time runs out."""

    name = "TargetPractice"
    time_limit = 15000.0

    def __init__(self, x, y, size, hits_required: int = 5):
        super().__init__(x, y, size)
        self.hits_required = hits_required
        self.hits = 0
        self.elapsed = 0.0

    def on_start(self) -> None:
        super().on_start()
        self.hits = 0
        self.elapsed = 0.0

    def update(self, delta_time):
        was_ready = self.is_ready()
        super().update(delta_time)
        if not was_ready or self.complete:
            return
        self.elapsed += delta_time
        if self.elapsed >= self.time_limit:
            self.complete = True

    def handle_click(self, x, y):
        if not self.is_ready() or self.complete:
            return False
        if (x - self.x) ** 2 + (y - self.y) ** 2 > (self.size * 0.3) ** 2:
            return False
        self.hits += 1
        if self.hits >= self.hits_required:
            self.won = True
            self.complete = True
        return True
