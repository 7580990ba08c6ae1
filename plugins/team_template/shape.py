"""
Team Template Shape
===================

Your shape module must export:
1. `meta`: a dict declaring id, display_name, color, behavior_type,
   flags, timings and version (2)
2. `create(ctx) -> instance` returning an object with on_start(), update(dt),
   draw(surface), is_ready_to_play() and on_complete()

All side effects go through ctx (timer, veils, fx, audio, score). Signal the
end of the turn with ctx.complete() or ctx.fail().

This example pulses on a beat; tap while it is swollen three times to win.
"""

from __future__ import annotations

import math
from typing import Any

meta = {
    "id": "Pulse",
    "display_name": "Pulse",
    "color": "#FF69B4",
    "behavior_type": "objective",
    "flags": {
        "uses_edge_veils": False,
        "needs_timer": True,
        "reduced_motion_ok": True,
    },
    "timings": {
        "intro_ms": 600,
        "glint_ms": 300,
        "expected_ms": 20000,
    },
    "version": 2,
}

BEAT_MS = 800.0
HITS_TO_WIN = 3


class PulseShape:
    """
    Swells on every beat.

    Replace the tap rule in `handle_click()` with your own gameplay.
    """

    def __init__(self, ctx: Any):
        self.ctx = ctx
        self.ready = False
        self.done = False
        self.phase = 0.0
        self.hits = 0

    def on_start(self) -> None:
        ctx = self.ctx
        if meta["flags"]["needs_timer"]:
            ctx.timer.pause()
        ctx.fx.glow_pulse(meta["color"], {"ms": 220})
        ctx.defer(meta["timings"]["intro_ms"], self._intro_done)

    def _intro_done(self) -> None:
        self.ready = True
        if meta["flags"]["needs_timer"]:
            self.ctx.timer.resume()

    def update(self, dt: float) -> None:
        if not self.ready or self.done:
            return
        previous = self.phase
        self.phase = (self.phase + dt) % BEAT_MS
        if self.phase < previous:
            self.ctx.audio.beat()

    @property
    def swell(self) -> float:
        """0 at rest, 1 at the peak of the beat."""
        if self.ctx.reduced_motion:
            return 0.0
        return 0.5 - 0.5 * math.cos(2 * math.pi * self.phase / BEAT_MS)

    def handle_click(self, x: float, y: float) -> bool:
        if not self.ready or self.done:
            return False
        if self.swell < 0.6:
            self.ctx.audio.sfx("miss")
            return False
        self.hits += 1
        self.ctx.score.add(5)
        if self.hits >= HITS_TO_WIN:
            self.done = True
            self.ctx.complete()
        return True

    def is_ready_to_play(self) -> bool:
        return self.ready

    def on_complete(self) -> None:
        self.ctx.veils.finish()
        self.ctx.fx.confetti(meta["color"], {"ms": 220})

    def draw(self, surface: Any) -> None:
        area = self.ctx.play_area
        radius = min(area.width, area.height) * (0.12 + 0.04 * self.swell)
        surface.fill_circle(area.width / 2, area.height / 2, radius, meta["color"])


def create(ctx: Any) -> PulseShape:
    """Build a fresh instance for one turn."""
    return PulseShape(ctx)
