"""
Tests for rotation and isolation progression.
"""

import pytest

from shapeflow.pool_core.catalog import CandidateDescriptor, SideActivityDescriptor
from shapeflow.pool_core.config_loader import load_config
from shapeflow.pool_core.events import EventBus
from shapeflow.pool_core.modes import ModeRegistry
from shapeflow.pool_core.sampler import BiasProfile
from shapeflow.pool_core.scheduler import ISOLATION, ROTATION, PoolScheduler
from shapeflow.pool_core.shape import Shape
from plugins.side_activities import SimonSays, TargetPractice


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    seen = []
    for event in ("mini:launch", "level:advance", "rotation:forced"):
        bus.on(event, lambda payload, event=event: seen.append((event, payload)))
    return seen


def make_modes(config, bus, names=("A", "B", "C"), activities=()):
    registry = [CandidateDescriptor.direct(n, Shape) for n in names]
    scheduler = PoolScheduler(
        config=config,
        registry=registry,
        unlock_provider=lambda: set(names),
        bias_provider=BiasProfile.empty,
        bus=bus,
        seed=4
    )
    return scheduler, ModeRegistry(scheduler, bus, side_activity="Memory", activities=activities)


class TestRotationMode:
    """Test level progression through the rotation flow."""

    def test_side_activity_after_pool(self, config, bus, events):
        scheduler, modes = make_modes(config, bus)
        assert modes.start_level(1) is not None

        assert modes.on_shape_completed() is not None
        assert modes.on_shape_completed() is not None
        assert modes.on_shape_completed() is None

        assert modes.rotation.in_side_activity
        assert events[-1] == ("mini:launch", {"name": "Memory", "level": 1})
        assert scheduler.has_prewarm
        assert scheduler.prewarmed_level == 2

    def test_advance_consumes_prewarm(self, config, bus, events):
        scheduler, modes = make_modes(config, bus)
        modes.start_level(1)
        for _ in range(3):
            modes.on_shape_completed()
        prewarmed = scheduler.prewarmed_pool.names

        unit = modes.on_side_activity_completed()

        assert unit is not None
        assert scheduler.level == 2
        assert modes.rotation.current_level == 2
        assert scheduler.pick_set == prewarmed
        assert not scheduler.has_prewarm
        assert ("level:advance", {"level": 2}) in events

    def test_full_run_reaches_infinite(self, config, bus):
        scheduler, modes = make_modes(config, bus)
        unit = modes.start_level(1)

        for _ in range(40):
            if unit is None:
                unit = modes.on_side_activity_completed()
            unit = modes.on_shape_completed()

        assert scheduler.level == scheduler.infinite_level
        assert scheduler.infinite_cycle_index >= 2

    def test_infinite_level_never_launches_side_activity(self, config, bus, events):
        scheduler, modes = make_modes(config, bus)
        modes.start_level(4)

        for _ in range(10):
            assert modes.on_shape_completed() is not None

        assert not any(name == "mini:launch" for name, _ in events)

    def test_registered_activities_rotate(self, config, bus, events):
        activities = [
            SideActivityDescriptor("SimonSays", SimonSays),
            SideActivityDescriptor("Broken", object),
            SideActivityDescriptor("Off", TargetPractice, active=False),
            SideActivityDescriptor("TargetPractice", TargetPractice),
        ]
        scheduler, modes = make_modes(config, bus, activities=activities)

        launched = [modes.rotation.start_side_activity() for _ in range(3)]

        assert launched == ["SimonSays", "TargetPractice", "SimonSays"]
        assert events[0] == ("mini:launch", {"name": "SimonSays", "level": 1})

    def test_no_eligible_activity_uses_fallback(self, config, bus):
        scheduler, modes = make_modes(config, bus, activities=[SideActivityDescriptor("Broken", object)])

        assert modes.rotation.start_side_activity() == "Memory"

    def test_force_go(self, config, bus, events):
        scheduler, modes = make_modes(config, bus)
        modes.start_level(2)

        modes.force_rotation_go("C")

        assert scheduler.current_name == "C"
        assert ("rotation:forced", {"level": 2, "shape": "C"}) in events


class TestIsolationMode:
    """Test single-shape replay."""

    def test_replays_chosen_shape(self, config, bus):
        scheduler, modes = make_modes(config, bus)
        scheduler.set_isolation_shape("B")
        modes.set_active(ISOLATION)

        modes.start_level(3)
        for _ in range(5):
            assert scheduler.current_name == "B"
            modes.on_shape_completed()

        assert scheduler.level == 3

    def test_side_activity_ignored(self, config, bus):
        scheduler, modes = make_modes(config, bus)
        modes.set_active(ISOLATION)
        modes.start_level(1)

        assert modes.on_side_activity_completed() is None

    def test_unknown_mode(self, config, bus):
        _, modes = make_modes(config, bus)

        with pytest.raises(ValueError):
            modes.set_active("arcade")

    def test_force_go_returns_to_rotation(self, config, bus):
        scheduler, modes = make_modes(config, bus)
        modes.set_active(ISOLATION)
        modes.start_level(1)

        modes.force_rotation_go("A")

        assert modes.active_id == ROTATION
        assert scheduler.mode == ROTATION
        assert scheduler.current_name == "A"
