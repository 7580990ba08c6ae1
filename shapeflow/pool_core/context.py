"""
Shape Context
=============

Capability context injected into context-factory (v2) plugins, and the
ContextUnit adapter that lets the scheduler treat a v2 plugin like any other
behavior unit.

Every side effect a v2 plugin can have goes through the context: veil, FX,
audio and score hooks turn into bus events, so the verifier sees them.
"""

from __future__ import annotations

import heapq
import itertools
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from shapeflow.pool_core.behavior import BehaviorType, has_capability
from shapeflow.pool_core.events import EventSink, NullBus, safe_emit


@dataclass(frozen=True)
class ShapeMeta:
    """Static declaration exported by a v2 plugin module as ``meta``."""
    id: str
    display_name: str
    color: Optional[str]
    behavior_type: str
    flags: Mapping[str, Any] = field(default_factory=dict)
    timings: Mapping[str, Any] = field(default_factory=dict)
    version: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ShapeMeta":
        """Build from a plain dict; missing keys become empty values for the verifier to flag."""
        return cls(
            id=str(data.get("id") or ""),
            display_name=str(data.get("display_name") or ""),
            color=data.get("color"),
            behavior_type=str(data.get("behavior_type") or ""),
            flags=dict(data.get("flags") or {}),
            timings=dict(data.get("timings") or {}),
            version=data.get("version")
        )

    @property
    def uses_edge_veils(self) -> Optional[bool]:
        value = self.flags.get("uses_edge_veils")
        return value if isinstance(value, bool) else None


class TimerControl:
    """Level timer hooks; the outer game owns the real timer."""

    def __init__(self, bus: EventSink):
        self._bus = bus
        self.paused = False
        self.ms_left_value = 0.0

    def pause(self) -> None:
        self.paused = True
        safe_emit(self._bus, "timer:pause")

    def resume(self) -> None:
        self.paused = False
        safe_emit(self._bus, "timer:resume")

    def ms_left(self) -> float:
        return self.ms_left_value

    def set(self, ms: float) -> None:
        self.ms_left_value = float(ms)
        safe_emit(self._bus, "timer:set", {"ms": float(ms)})


class EdgeVeilControl:
    """Hides play-area borders. Only allow-listed shapes should use this."""

    def __init__(self, bus: EventSink):
        self._bus = bus

    def _hide(self, edge: str, options: Optional[dict]) -> None:
        safe_emit(self._bus, f"playArea/hide{edge}", dict(options or {}))

    def hide_top(self, options: Optional[dict] = None) -> None:
        self._hide("Top", options)

    def hide_bottom(self, options: Optional[dict] = None) -> None:
        self._hide("Bottom", options)

    def hide_left(self, options: Optional[dict] = None) -> None:
        self._hide("Left", options)

    def hide_right(self, options: Optional[dict] = None) -> None:
        self._hide("Right", options)

    def finish(self) -> None:
        safe_emit(self._bus, "playArea/clearEdgeMasks", {"animate": True})


class FxHooks:
    def __init__(self, bus: EventSink):
        self._bus = bus

    def glow_pulse(self, color: Any, options: Optional[dict] = None) -> None:
        safe_emit(self._bus, "fx:glowPulse", {"color": color, **(options or {})})

    def confetti(self, color: Any, options: Optional[dict] = None) -> None:
        safe_emit(self._bus, "fx:confetti", {"color": color, **(options or {})})

    def shake(self, options: Optional[dict] = None) -> None:
        safe_emit(self._bus, "fx:shake", dict(options or {}))


class AudioHooks:
    def __init__(self, bus: EventSink):
        self._bus = bus

    def sfx(self, name: str) -> None:
        safe_emit(self._bus, "audio:sfx", {"name": name})

    def beat(self) -> None:
        safe_emit(self._bus, "audio:beat")


class SeededRandom:
    """Deterministic RNG handed to plugins."""

    def __init__(self, seed: int):
        self.seed = seed
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()

    def range(self, low: float, high: float) -> float:
        return self._rng.uniform(low, high)


@dataclass
class InputSnapshot:
    pointer_down: bool = False
    pointer_pos: Tuple[float, float] = (0.0, 0.0)
    tapped: bool = False

    def just_tapped(self) -> bool:
        return self.tapped


class ScoreHooks:
    def __init__(self, bus: EventSink):
        self._bus = bus
        self._streak = 0

    def add(self, points: int) -> None:
        self._streak += 1
        safe_emit(self._bus, "score:add", {"points": int(points)})

    def streak(self) -> int:
        return self._streak


class DeferredScheduler:
    """
    Callbacks scheduled against simulated time.

    Time only moves when advance() is called, so a plugin's deferred work runs
    inside the same update loop that drives it.
    """

    def __init__(self):
        self._now = 0.0
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return len(self._queue)

    def defer(self, ms: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self._now + max(0.0, float(ms)), next(self._counter), callback))

    def advance(self, delta_ms: float) -> int:
        """Advance time and run every callback that came due. Returns the count run."""
        self._now += delta_ms
        ran = 0
        while self._queue and self._queue[0][0] <= self._now:
            _, _, callback = heapq.heappop(self._queue)
            callback()
            ran += 1
        return ran


@dataclass(frozen=True)
class PlayAreaBounds:
    width: float
    height: float

    def clamp(self, x: float, y: float) -> Tuple[float, float]:
        return (min(max(x, 0.0), self.width), min(max(y, 0.0), self.height))


@dataclass
class ShapeContext:
    """Everything a v2 plugin may touch."""
    bus: EventSink
    timer: TimerControl
    veils: EdgeVeilControl
    fx: FxHooks
    audio: AudioHooks
    rand: SeededRandom
    input: InputSnapshot
    score: ScoreHooks
    scheduler: DeferredScheduler
    play_area: PlayAreaBounds
    reduced_motion: bool = False
    outcome: Optional[str] = None  # "complete" or "fail" once signalled

    def defer(self, ms: float, callback: Callable[[], None]) -> None:
        self.scheduler.defer(ms, callback)

    def complete(self) -> None:
        if self.outcome is None:
            self.outcome = "complete"
            safe_emit(self.bus, "shape:complete")

    def fail(self) -> None:
        if self.outcome is None:
            self.outcome = "fail"
            safe_emit(self.bus, "shape:fail")

    @property
    def flags(self) -> Dict[str, Any]:
        return {"reduced_motion": self.reduced_motion}


def build_context(
    bus: Optional[EventSink] = None,
    seed: int = 1,
    width: float = 512,
    height: float = 512,
    reduced_motion: bool = False
) -> ShapeContext:
    """Create a fresh context wired to bus."""
    sink = bus if bus is not None else NullBus()
    return ShapeContext(
        bus=sink,
        timer=TimerControl(sink),
        veils=EdgeVeilControl(sink),
        fx=FxHooks(sink),
        audio=AudioHooks(sink),
        rand=SeededRandom(seed),
        input=InputSnapshot(),
        score=ScoreHooks(sink),
        scheduler=DeferredScheduler(),
        play_area=PlayAreaBounds(float(width), float(height)),
        reduced_motion=reduced_motion
    )


class ContextUnit:
    """
    Adapts a v2 plugin instance to the behavior unit contract.

    - update() advances deferred callbacks, then the plugin
    - is_sequence_completed() reflects the context's complete/fail signal
    - force_complete() signals completion through the context
    """

    def __init__(self, name: str, meta: ShapeMeta, instance: Any, context: ShapeContext):
        self.name = name
        self.meta = meta
        self.instance = instance
        self.context = context
        self.color = meta.color
        self._started = False

    @property
    def behavior_type(self) -> str:
        parsed = BehaviorType.parse(self.meta.behavior_type)
        return parsed.value if parsed is not None else self.meta.behavior_type

    def attach_bus(self, bus: EventSink) -> None:
        ctx = self.context
        ctx.bus = bus
        ctx.timer = TimerControl(bus)
        ctx.veils = EdgeVeilControl(bus)
        ctx.fx = FxHooks(bus)
        ctx.audio = AudioHooks(bus)
        ctx.score = ScoreHooks(bus)

    def on_start(self) -> None:
        if not self._started:
            self._started = True
            self.instance.on_start()

    def update(self, delta_time: float, level: Optional[int] = None) -> None:
        self.context.scheduler.advance(delta_time)
        self.instance.update(delta_time)

    def draw(self, surface: Any) -> None:
        self.instance.draw(surface)

    def is_ready(self) -> bool:
        return bool(self.instance.is_ready_to_play())

    def is_sequence_completed(self) -> bool:
        return self.context.outcome is not None

    def force_complete(self) -> None:
        self.context.complete()

    def on_complete(self) -> None:
        self.instance.on_complete()

    def handle_click(self, x: float, y: float) -> bool:
        self.context.input = InputSnapshot(pointer_down=True, pointer_pos=(x, y), tapped=True)
        if has_capability(self.instance, "handle_click"):
            return bool(self.instance.handle_click(x, y))
        return False

    def __repr__(self) -> str:
        return f"ContextUnit({self.name}, {self.behavior_type})"
