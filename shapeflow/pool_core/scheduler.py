"""
Pool Scheduler
==============

Decides which shape runs next.

Owns the mode (rotation or isolation), the level, the active pool and the
prewarm slot. Levels below the infinite level draw a capped pool once per
level entry; the infinite level reshuffles every eligible shape into a new
cycle whenever the previous one runs out. Shapes are popped from the tail of
the remaining stack and built fresh for every turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Union

from shapeflow.pool_core.behavior import BehaviorUnit, has_capability
from shapeflow.pool_core.catalog import (
    CandidateDescriptor,
    ContextFactory,
    ShapeCatalog,
    get_catalog,
)
from shapeflow.pool_core.config_loader import PoolSettings, get_config
from shapeflow.pool_core.context import ContextUnit, ShapeContext, build_context
from shapeflow.pool_core.errors import (
    ConstructionError,
    ConsumptionMismatchError,
    PoolExhaustionError,
)
from shapeflow.pool_core.events import EventSink, NullBus, safe_emit
from shapeflow.pool_core.logging_setup import get_logger
from shapeflow.pool_core.pool import Pool, PrewarmSlot
from shapeflow.pool_core.profile import PlayerProfile
from shapeflow.pool_core.sampler import BiasProfile, WeightedSampler
from shapeflow.pool_core.verifier import ContractVerifier

logger = get_logger("scheduler")

ROTATION = "rotation"
ISOLATION = "isolation"
MODES = (ROTATION, ISOLATION)

RegistrySource = Union[ShapeCatalog, Callable[[], Iterable[CandidateDescriptor]], Iterable[CandidateDescriptor]]


@dataclass(frozen=True)
class NextShape:
    """What the next pop would produce."""
    name: str
    level: int


def _registry_callable(source: Optional[RegistrySource], config: PoolSettings) -> Callable[[], Iterable[CandidateDescriptor]]:
    if source is None:
        catalog = get_catalog(config)
        return catalog.descriptors
    if isinstance(source, ShapeCatalog):
        return source.descriptors
    if callable(source):
        return source
    fixed = tuple(source)
    return lambda: fixed


class PoolScheduler:
    """
    Stateful shape scheduler.

    Typical turn:
        unit = scheduler.reset_sequence(level)   # pop the next shape
        ... caller drives unit.update()/unit.draw() ...
        if scheduler.is_sequence_completed():
            scheduler.mark_current_complete()
            if scheduler.is_pool_completed():
                ... advance level / launch a side activity ...

    Collaborators are injected; every provider is called fresh on each pool
    build.
    """

    def __init__(
        self,
        config: Optional[PoolSettings] = None,
        registry: Optional[RegistrySource] = None,
        verifier: Optional[ContractVerifier] = None,
        unlock_provider: Optional[Callable[[], Iterable[str]]] = None,
        bias_provider: Optional[Callable[[], BiasProfile]] = None,
        bus: Optional[EventSink] = None,
        seed: Optional[int] = None,
        context_factory: Optional[Callable[[CandidateDescriptor], ShapeContext]] = None,
        mode: str = ROTATION,
        isolation_shape: Optional[str] = None
    ):
        """
        Initialize scheduler.

        Args:
            config: Pool configuration. Uses default if None.
            registry: Catalog, provider callable, or fixed descriptor list.
            verifier: Contract verifier. A new one sharing the bus if None.
            unlock_provider: Returns unlocked shape names. Profile defaults if None.
            bias_provider: Returns the BiasProfile. Profile defaults if None.
            bus: Event sink for lifecycle notifications.
            seed: Random seed for sampling, shuffling and rotations.
            context_factory: Builds the ShapeContext for context-factory shapes.
            mode: Initial mode, "rotation" or "isolation".
            isolation_shape: Shape replayed in isolation mode.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._bus = bus if bus is not None else NullBus()
        self._registry = _registry_callable(registry, config)
        self._verifier = verifier if verifier is not None else ContractVerifier(config, bus=self._bus)

        if unlock_provider is None or bias_provider is None:
            profile = PlayerProfile.from_config(config)
            unlock_provider = unlock_provider or profile.unlock_provider()
            bias_provider = bias_provider or profile.bias_provider()
        self._unlocks = unlock_provider
        self._bias = bias_provider

        self._sampler = WeightedSampler(config.sampling, seed)
        self._context_factory = context_factory or self._default_context

        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got '{mode}'")
        self._mode = mode
        self._isolation_name = isolation_shape or ""
        self._level = 1
        self._pool = Pool()
        self._prewarm = PrewarmSlot()
        self._infinite_cycle_index = 0

        self._current_unit: Optional[Any] = None
        self._current_descriptor: Optional[CandidateDescriptor] = None
        self._current_completed = False
        self._total_completed = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> PoolSettings:
        return self._config

    @property
    def verifier(self) -> ContractVerifier:
        return self._verifier

    @property
    def sampler(self) -> WeightedSampler:
        return self._sampler

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def level(self) -> int:
        return self._level

    @property
    def infinite_level(self) -> int:
        return self._config.pool.infinite_level

    @property
    def infinite_cycle_index(self) -> int:
        return self._infinite_cycle_index

    @property
    def isolation_shape(self) -> str:
        return self._isolation_name

    @property
    def pool(self) -> Pool:
        return self._pool

    @property
    def pick_set(self) -> List[str]:
        return self._pool.names

    @property
    def remaining_names(self) -> List[str]:
        return self._pool.remaining.names()

    @property
    def in_progress_names(self) -> List[str]:
        return list(self._pool.in_progress)

    @property
    def completed_names(self) -> List[str]:
        return list(self._pool.completed)

    @property
    def total_completed(self) -> int:
        return self._total_completed

    @property
    def current_unit(self) -> Optional[BehaviorUnit]:
        return self._current_unit

    @property
    def current_name(self) -> str:
        return self._current_descriptor.name if self._current_descriptor else ""

    @property
    def current_behavior_type(self) -> str:
        """Behavior type of the current shape; survival when nothing is running."""
        if self._current_unit is not None:
            return str(self._current_unit.behavior_type)
        if self._current_descriptor is not None:
            return self._current_descriptor.declared_type.value
        return "survival"

    @property
    def has_prewarm(self) -> bool:
        return not self._prewarm.is_empty

    @property
    def prewarmed_level(self) -> Optional[int]:
        return self._prewarm.level

    @property
    def prewarmed_pool(self) -> Optional[Pool]:
        return self._prewarm.pool

    def _check_level(self, level: int) -> int:
        if not 1 <= level <= self.infinite_level:
            raise ValueError(f"level must be in [1, {self.infinite_level}], got {level}")
        return level

    # ------------------------------------------------------------------
    # Candidates and pool building
    # ------------------------------------------------------------------

    def eligible_candidates(self, gated: bool = True) -> List[CandidateDescriptor]:
        """
        Active, verified descriptors, one per name.

        Among same-named descriptors the first eligible one wins.

        Args:
            gated: Keep only unlocked shapes. Falls back to every eligible
                shape when nothing unlocked is eligible.
        """
        valid: List[CandidateDescriptor] = []
        seen = set()
        for descriptor in self._registry():
            if not descriptor.active or descriptor.name in seen:
                continue
            if not self._verifier.is_eligible(descriptor):
                continue
            seen.add(descriptor.name)
            valid.append(descriptor)

        if not gated:
            return valid

        owned = set(self._unlocks())
        available = [d for d in valid if d.name in owned]
        if not available and valid:
            logger.warning(
                "No unlocked shape is eligible; falling back to all %d eligible shapes", len(valid)
            )
            available = valid
        return available

    def build_pool(self, level: int) -> Pool:
        """
        Draw a fresh rotation pool for level without touching current state.

        Sizes follow the level caps; the infinite level takes every eligible
        unlocked shape. The draw order is shuffled, and pops run in reverse
        of the shuffled order.
        """
        self._check_level(level)
        available = self.eligible_candidates(gated=True)
        size = self._config.pool.size_for_level(level, len(available))
        selected = self._sampler.sample(available, size, self._bias())
        pool = Pool.from_order(self._sampler.shuffle(selected))
        logger.debug("Built level %d pool: %s", level, pool.names)
        safe_emit(self._bus, "pool:built", {"level": level, "shapes": pool.names})
        return pool

    def _take_prewarm_or_build(self, level: int) -> Pool:
        try:
            pool = self._prewarm.consume(level)
        except ConsumptionMismatchError as e:
            if not self._prewarm.is_empty:
                logger.debug("Prewarm miss: %s", e)
            return self.build_pool(level)
        logger.debug("Consumed prewarmed pool for level %d", level)
        return pool

    def _isolation_descriptor(self) -> Optional[CandidateDescriptor]:
        found = False
        for descriptor in self._registry():
            if descriptor.name != self._isolation_name or not descriptor.active:
                continue
            found = True
            if self._verifier.is_eligible(descriptor):
                return descriptor
        if found:
            logger.error("Isolation shape %s failed verification", self._isolation_name)
        else:
            logger.error("Isolation shape not found: %s", self._isolation_name)
        return None

    # ------------------------------------------------------------------
    # Turn flow
    # ------------------------------------------------------------------

    def reset_sequence(self, level: Optional[int] = None) -> BehaviorUnit:
        """
        Enter level (rebuilding the pool if needed) and pop the next shape.

        Returns:
            The freshly built unit, also available as current_unit.

        Raises:
            PoolExhaustionError: If no shape can be produced.
            ValueError: If level is out of range.
        """
        level = self._level if level is None else self._check_level(level)
        self._current_completed = False

        safe_emit(self._bus, "level:start", {"level": level, "mode": self._mode})

        if level == 1:
            self._infinite_cycle_index = 0

        if self._mode == ISOLATION:
            self._level = level
            descriptor = self._isolation_descriptor()
            self._pool = Pool.from_order([descriptor] if descriptor is not None else [])
            return self._pop(level)

        if level != self._level:
            self._level = level
            self._pool = Pool()

        if level == self.infinite_level:
            if self._pool.is_exhausted or self._infinite_cycle_index == 0:
                self._pool = self._take_prewarm_or_build(level)
                if self._pool.size > 0:
                    self._infinite_cycle_index += 1
                    logger.info(
                        "Infinite cycle %d: %d shapes", self._infinite_cycle_index, self._pool.size
                    )
                    safe_emit(self._bus, "cycle:increment", {"cycle": self._infinite_cycle_index})
        elif self._pool.is_exhausted:
            self._pool = self._take_prewarm_or_build(level)

        return self._pop(level)

    def next_unit(self) -> BehaviorUnit:
        """Pop the next shape at the current level."""
        return self.reset_sequence(self._level)

    def _pop(self, level: int) -> BehaviorUnit:
        while True:
            descriptor = self._pool.pop_next()
            if descriptor is None:
                self._current_unit = None
                self._current_descriptor = None
                logger.error("No shapes available (mode=%s, level=%d)", self._mode, level)
                safe_emit(self._bus, "pool:unavailable", {"level": level, "mode": self._mode})
                raise PoolExhaustionError(level, self._mode)

            try:
                unit = self._instantiate(descriptor, level)
            except Exception as e:
                self._verifier.exclude(descriptor, ConstructionError(descriptor.name, e))
                self._pool.discard(descriptor.name)
                continue

            self._current_unit = unit
            self._current_descriptor = descriptor
            logger.debug("[LEVEL %d] Shape: %s", level, descriptor.name)
            return unit

    def _default_context(self, descriptor: CandidateDescriptor) -> ShapeContext:
        area = self._config.play_area
        return build_context(
            bus=self._bus,
            seed=int(self._sampler.random() * 2**31),
            width=area.width,
            height=area.height
        )

    def _instantiate(self, descriptor: CandidateDescriptor, level: int) -> Any:
        kind = descriptor.kind
        if isinstance(kind, ContextFactory):
            context = self._context_factory(descriptor)
            unit: Any = ContextUnit(descriptor.name, kind.meta, kind.create(context), context)
        else:
            area = self._config.play_area
            unit = kind.factory(area.x, area.y, area.size, descriptor.color, descriptor.name)

        if has_capability(unit, "attach_bus"):
            unit.attach_bus(self._bus)
        if has_capability(unit, "reset"):
            unit.reset()
        if has_capability(unit, "reset_sequence"):
            unit.reset_sequence(level)
        if has_capability(unit, "set_rotation"):
            unit.set_rotation(self._sampler.random() * 360)
        if has_capability(unit, "on_start"):
            unit.on_start()
        return unit

    def is_sequence_completed(self) -> bool:
        """Ask the current shape whether it is done. False with no shape."""
        if self._current_unit is None:
            return False
        return bool(self._current_unit.is_sequence_completed())

    def mark_current_complete(self) -> None:
        """Move the current shape from in progress to completed."""
        self._current_completed = True
        if self._current_descriptor is None:
            logger.error("mark_current_complete called with no current shape")
            return

        name = self._current_descriptor.name
        if name not in self._pool.names:
            logger.debug("Shape %s is not part of the current pool", name)
            return

        already, stale = self._pool.mark_complete(name)
        if already:
            logger.warning("Shape %s was already marked complete", name)
        else:
            self._total_completed += 1
        if stale:
            logger.warning("Shape %s was still in remaining; removed inconsistent entry", name)

        if self._pool.is_exhausted:
            logger.info("All shapes in level %d complete", self._level)
            safe_emit(self._bus, "pool:exhausted", {
                "level": self._level,
                "mode": self._mode,
                "cycle": self._infinite_cycle_index,
            })

    def is_pool_completed(self) -> bool:
        """True once remaining is empty and the last popped shape is complete."""
        return self._pool.is_exhausted and self._current_completed

    def peek_next(self) -> NextShape:
        """Name and level of the next pop, without popping."""
        if self._mode == ISOLATION:
            next_level = 1 if self._level == self.infinite_level else self._level + 1
            return NextShape(self._isolation_name, next_level)
        top = self._pool.remaining.peek()
        return NextShape(top.name if top is not None else "", self._level)

    # ------------------------------------------------------------------
    # Prewarm
    # ------------------------------------------------------------------

    def prewarm(self, level: int) -> Pool:
        """
        Build the pool for a future level and cache it.

        Current state is untouched. A previous prewarm is discarded.

        Returns:
            The cached pool (reorder its remaining stack to change pop order).
        """
        self._check_level(level)
        pool = self.build_pool(level)
        discarded = self._prewarm.store(level, pool)
        if discarded is not None:
            logger.debug("Prewarm for level %d superseded by level %d", discarded, level)
        return pool

    def force_rotation(self, level: int, shape_name: str) -> BehaviorUnit:
        """
        Jump to a fresh rotation pool for level whose first shape is shape_name.

        An eligible shape that was not drawn is appended to the pool.
        """
        self._check_level(level)
        pool = self.prewarm(level)
        if not pool.remaining.move_to_top(shape_name):
            descriptor = next(
                (d for d in self.eligible_candidates(gated=False) if d.name == shape_name),
                None
            )
            if descriptor is None:
                logger.warning("Forced shape %s is not eligible; keeping drawn order", shape_name)
            else:
                pool.push_extra(descriptor)

        self._mode = ROTATION
        self._pool = Pool()
        unit = self.reset_sequence(level)
        safe_emit(self._bus, "rotation:forced", {"level": level, "shape": shape_name})
        return unit

    def clear_prewarm(self) -> None:
        self._prewarm.clear()

    # ------------------------------------------------------------------
    # Mode and level controls
    # ------------------------------------------------------------------

    def set_mode(self, mode: str, restart: bool = True) -> Optional[BehaviorUnit]:
        """
        Switch between rotation and isolation.

        Args:
            mode: "rotation" or "isolation".
            restart: Pop a shape in the new mode right away.
        """
        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got '{mode}'")
        if mode != self._mode:
            self._pool = Pool()
        self._mode = mode
        if mode == ISOLATION and not self._isolation_name:
            candidates = self.eligible_candidates(gated=False)
            if candidates:
                self._isolation_name = candidates[int(self._sampler.random() * len(candidates))].name
        return self.reset_sequence(self._level) if restart else None

    def set_isolation_shape(self, name: str) -> Optional[BehaviorUnit]:
        self._isolation_name = name
        if self._mode == ISOLATION:
            return self.reset_sequence(self._level)
        return None

    def set_level(self, level: int, full_reset: bool = False) -> Optional[BehaviorUnit]:
        """
        Change level without popping, or with a full pool reset.

        Args:
            level: Target level.
            full_reset: Rebuild the pool (consuming a matching prewarm) and pop.
        """
        self._level = self._check_level(level)
        if full_reset:
            return self.reset_pick_set()
        self._pool = Pool()
        return None

    def reset_pick_set(self) -> BehaviorUnit:
        """Discard the current pool and start the level over."""
        self._pool = Pool()
        if self._level == self.infinite_level:
            self._infinite_cycle_index = 0
        return self.reset_sequence(self._level)

    def cycle_isolation_level(self) -> Optional[BehaviorUnit]:
        """In isolation, step to the next level (wrapping after the infinite level)."""
        if self._mode != ISOLATION:
            return None
        self._level = 1 if self._level == self.infinite_level else self._level + 1
        return self.reset_sequence(self._level)

    def set_shape(self, name: str) -> Optional[BehaviorUnit]:
        """Debug override: run name now without touching any pool."""
        descriptor = next((d for d in self._registry() if d.name == name), None)
        if descriptor is None:
            logger.error("Shape not found: %s", name)
            return None
        unit = self._instantiate(descriptor, self._level)
        self._current_unit = unit
        self._current_descriptor = descriptor
        self._current_completed = False
        logger.info("Debug shape override: %s", name)
        return unit
