"""
Tests for the shape contract verifier.
"""

import pytest

from shapeflow.pool_core.catalog import CandidateDescriptor, ShapeCatalog, SideActivityDescriptor, load_side_activities
from shapeflow.pool_core.config_loader import load_config
from shapeflow.pool_core.errors import (
    ConstructionError,
    ContractViolation,
    OptionalCapabilityWarning,
    PolicyWarning,
    SandboxError,
)
from shapeflow.pool_core.events import EventBus
from shapeflow.pool_core.shape import Shape
from shapeflow.pool_core.verifier import ContractVerifier


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def verifier(config):
    return ContractVerifier(config)


class NoDraw:
    """Has everything except draw()."""

    behavior_type = "survival"

    def __init__(self, x, y, size, color, name):
        self.name = name

    def update(self, delta_time, level=None):
        pass

    def is_ready(self):
        return True

    def is_sequence_completed(self):
        return False

    def force_complete(self):
        pass


class NoForceComplete(NoDraw):
    """Survival shape that cannot be ended by the timer."""

    force_complete = None

    def draw(self, surface):
        pass


class SequenceNoForceComplete(NoForceComplete):
    behavior_type = "sequence"


class BadType(Shape):
    @property
    def behavior_type(self):
        return "dance"


class CrashOnUpdate(Shape):
    def update(self, delta_time, level=None):
        raise RuntimeError("update exploded")


class RogueVeil(Shape):
    def reset_sequence(self, level):
        super().reset_sequence(level)
        self.emit("playArea/hideTop")


class HudWriter(Shape):
    def update(self, delta_time, level=None):
        super().update(delta_time, level)
        self.emit("hud:score", {"value": 1})


def exploding_factory(x, y, size, color, name):
    raise ValueError("cannot build")


def pulse_meta(**overrides):
    meta = {
        "id": "Blip",
        "display_name": "Blip",
        "color": "#FFFFFF",
        "behavior_type": "objective",
        "flags": {"uses_edge_veils": False},
        "timings": {"intro_ms": 100, "glint_ms": 50},
        "version": 2,
    }
    meta.update(overrides)
    return meta


class BlipInstance:
    def __init__(self, ctx, hide=False):
        self.ctx = ctx
        self.hide = hide

    def on_start(self):
        if self.hide:
            self.ctx.veils.hide_bottom({"fade_ms": 200})

    def update(self, dt):
        pass

    def draw(self, surface):
        surface.fill_circle(10, 10, 5, "#FFFFFF")

    def is_ready_to_play(self):
        return True

    def on_complete(self):
        self.ctx.veils.finish()


class TestDirectVerification:
    """Test verification of direct-factory shapes."""

    def test_conforming_shape_is_eligible(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Plain", Shape))

        assert report.ok
        assert report.format == "v1"
        assert not any(isinstance(w, PolicyWarning) for w in report.warnings)

    def test_missing_draw_excluded(self, verifier):
        """A shape without draw() is ineligible with a reason naming draw."""
        report = verifier.verify(CandidateDescriptor.direct("NoDraw", NoDraw))

        assert not report.ok
        assert any("draw" in reason for reason in report.reasons)
        assert any(isinstance(e, ContractViolation) and e.capability == "draw" for e in report.errors)

    def test_construction_failure(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Boom", exploding_factory))

        assert not report.ok
        assert isinstance(report.errors[0], ConstructionError)
        assert "ValueError" in report.reasons[0]

    def test_invalid_behavior_type(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Bad", BadType))

        assert not report.ok
        assert any("behavior_type" in reason for reason in report.reasons)

    def test_force_complete_required_unless_sequence(self, verifier):
        survival = verifier.verify(CandidateDescriptor.direct("S", NoForceComplete))
        sequence = verifier.verify(CandidateDescriptor.direct("Q", SequenceNoForceComplete))

        assert not survival.ok
        assert any("force_complete" in reason for reason in survival.reasons)
        assert sequence.ok

    def test_sandbox_error_records_stage(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Crash", CrashOnUpdate))

        assert not report.ok
        error = report.errors[-1]
        assert isinstance(error, SandboxError)
        assert error.stage == "update"

    def test_missing_optional_capability_warns(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Plain", Shape))

        assert report.ok
        assert any(isinstance(w, OptionalCapabilityWarning) and "on_start" in w.message for w in report.warnings)


class TestPolicy:
    """Test event policy checks."""

    def test_unauthorized_veil_warns(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Rogue", RogueVeil))

        assert report.ok
        policy = [w for w in report.warnings if isinstance(w, PolicyWarning)]
        assert policy
        assert "playArea/hideTop" in policy[0].events

    def test_allowlisted_veil_silent(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Pentagon", RogueVeil))

        assert report.ok
        assert not any(isinstance(w, PolicyWarning) for w in report.warnings)

    def test_hud_events_warn(self, verifier):
        report = verifier.verify(CandidateDescriptor.direct("Circle", HudWriter))

        assert report.ok
        assert any(isinstance(w, PolicyWarning) and "hud:score" in w.events for w in report.warnings)

    def test_captured_events_forwarded(self, config):
        bus = EventBus()
        seen = []
        bus.on("playArea/hideTop", seen.append)
        verifier = ContractVerifier(config, bus=bus)

        report = verifier.verify(CandidateDescriptor.direct("Rogue", RogueVeil))

        assert len(seen) == 1
        assert "playArea/hideTop" in [e.event for e in report.emits]

    def test_forwarding_can_be_disabled(self, config):
        bus = EventBus()
        seen = []
        bus.on("playArea/hideTop", seen.append)
        verifier = ContractVerifier(config, bus=bus, forward_events=False)

        report = verifier.verify(CandidateDescriptor.direct("Rogue", RogueVeil))

        assert seen == []
        assert "playArea/hideTop" in [e.event for e in report.emits]


class TestContextVerification:
    """Test verification of context-factory shapes."""

    def test_conforming_context_shape(self, verifier):
        report = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(), BlipInstance))

        assert report.ok
        assert report.format == "v2"
        assert report.warnings == []

    def test_missing_id_is_error(self, verifier):
        report = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(id=""), BlipInstance))

        assert not report.ok
        assert any("meta.id" in reason for reason in report.reasons)

    def test_invalid_behavior_type_is_error(self, verifier):
        report = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(behavior_type="trace"), BlipInstance))

        assert not report.ok

    def test_incomplete_meta_warns(self, verifier):
        meta = pulse_meta(version=None, timings={}, flags={})
        report = verifier.verify(CandidateDescriptor.context("Blip", meta, BlipInstance))

        assert report.ok
        messages = " ".join(report.warning_messages)
        assert "version" in messages
        assert "timings" in messages
        assert "flags" in messages

    def test_missing_capability(self, verifier):
        class NoComplete(BlipInstance):
            on_complete = None

        report = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(), NoComplete))

        assert not report.ok
        assert any("on_complete" in reason for reason in report.reasons)

    def test_create_raises(self, verifier):
        def create(ctx):
            raise RuntimeError("no")

        report = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(), create))

        assert isinstance(report.errors[0], ConstructionError)

    def test_veils_authorized_by_flag(self, verifier):
        def create(ctx):
            return BlipInstance(ctx, hide=True)

        declared = verifier.verify(CandidateDescriptor.context(
            "Blip", pulse_meta(flags={"uses_edge_veils": True}), create
        ))
        undeclared = verifier.verify(CandidateDescriptor.context("Blip", pulse_meta(), create))

        assert not any(isinstance(w, PolicyWarning) for w in declared.warnings)
        assert any(isinstance(w, PolicyWarning) for w in undeclared.warnings)


class TestRegistryVerification:
    """Test batch verification and caching."""

    def test_baseline_registry_all_eligible(self, config):
        verifier = ContractVerifier(config, forward_events=False)
        summary = verifier.verify_registry(ShapeCatalog.from_config(config))

        assert summary.total == len(config.shapes)
        assert summary.eligible_count == summary.total
        assert summary.ineligible == {}
        assert summary.duplicates == []
        for report in summary.reports:
            assert not any(isinstance(w, PolicyWarning) for w in report.warnings), report.name

    def test_construction_error_excluded_from_summary(self, verifier):
        descriptors = [
            CandidateDescriptor.direct("A", Shape),
            CandidateDescriptor.direct("B", Shape),
            CandidateDescriptor.direct("Boom", exploding_factory),
        ]
        summary = verifier.verify_registry(descriptors)

        assert summary.eligible_count == 2
        assert "Boom" in summary.ineligible
        assert "factory raised" in summary.ineligible["Boom"][0]

    def test_duplicates_and_inactive(self, verifier):
        descriptors = [
            CandidateDescriptor.direct("A", Shape),
            CandidateDescriptor.direct("A", Shape),
            CandidateDescriptor.direct("Off", Shape, active=False),
        ]
        summary = verifier.verify_registry(descriptors)

        assert summary.duplicates == ["A"]
        assert summary.total == 2
        assert "Off" not in summary.eligible

    def test_emits_report(self, config):
        bus = EventBus()
        reports = []
        bus.on("verify:report", reports.append)
        ContractVerifier(config, bus=bus).verify_registry([CandidateDescriptor.direct("A", Shape)])

        assert len(reports) == 1
        assert reports[0].eligible == ["A"]

    def test_report_cached(self, verifier):
        calls = []

        def counting(x, y, size, color, name):
            calls.append(name)
            return Shape(x, y, size, color, name)

        descriptor = CandidateDescriptor.direct("Counted", counting)
        verifier.is_eligible(descriptor)
        verifier.is_eligible(descriptor)
        assert len(calls) == 1

        verifier.reverify(descriptor)
        assert len(calls) == 2

    def test_same_named_copies_cached_separately(self, verifier):
        broken = CandidateDescriptor.direct("Dup", NoDraw)
        good = CandidateDescriptor.direct("Dup", Shape)

        summary = verifier.verify_registry([broken, good])

        assert summary.duplicates == ["Dup"]
        assert not verifier.cached_report(broken).ok
        assert verifier.cached_report(good).ok
        assert verifier.is_eligible(good)
        assert not verifier.is_eligible(broken)

    def test_reverify_touches_one_copy(self, verifier):
        first = CandidateDescriptor.direct("Dup", Shape)
        second = CandidateDescriptor.direct("Dup", Shape)
        verifier.verify_registry([first, second])

        verifier.exclude(first, ConstructionError("Dup", RuntimeError("late")))

        assert not verifier.is_eligible(first)
        assert verifier.is_eligible(second)

    def test_exclude_marks_ineligible(self, verifier):
        descriptor = CandidateDescriptor.direct("A", Shape)
        assert verifier.is_eligible(descriptor)

        verifier.exclude(descriptor, ConstructionError("A", RuntimeError("late")))

        assert not verifier.is_eligible(descriptor)

    def test_to_dict_serializable(self, verifier):
        import json

        summary = verifier.verify_registry([CandidateDescriptor.direct("Boom", exploding_factory)])
        data = json.loads(json.dumps(summary.to_dict()))

        assert data["ineligible"]["Boom"]
        assert data["reports"][0]["errors"][0]["kind"] == "ConstructionError"


class Activity:
    name = "Activity"

    def on_start(self):
        pass

    def update(self, delta_time):
        pass

    def is_ready(self):
        return True

    def on_complete(self):
        return True


class ShortNames:
    """Older spelling: start()/complete()/ready()."""

    def start(self):
        pass

    def update(self, delta_time):
        pass

    def ready(self):
        return True

    def complete(self):
        return True


class NoStart:
    def update(self, delta_time):
        pass

    def is_ready(self):
        return True

    def on_complete(self):
        return True


class Bare:
    def on_start(self):
        pass

    def on_complete(self):
        return True


class TestSideActivityVerification:
    """Test presence checks on side activities."""

    def test_conforming_activity(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("Activity", Activity))

        assert report.ok
        assert report.format == "activity"
        assert report.warnings == []

    def test_short_names_accepted(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("Short", ShortNames))

        assert report.ok
        assert report.warnings == []

    def test_missing_start_is_error(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("NoStart", NoStart))

        assert not report.ok
        assert report.reasons == ["missing on_start()"]
        assert isinstance(report.errors[0], ContractViolation)

    def test_missing_update_and_ready_warn(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("Bare", Bare))

        assert report.ok
        assert report.warning_messages == ["legacy: missing update()", "legacy: missing is_ready()"]
        assert all(isinstance(w, OptionalCapabilityWarning) for w in report.warnings)

    def test_name_falls_back_to_factory(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("", Activity))

        assert report.name == "Activity"
        assert report.ok

    def test_missing_name_is_error(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("", Bare))

        assert report.name == "unknown"
        assert "missing name/id" in report.reasons

    def test_missing_factory_is_error(self, verifier):
        report = verifier.verify_side_activity(SideActivityDescriptor("Ghost", None))

        assert report.reasons == ["missing factory"]

    def test_summary_counts(self, verifier):
        import json

        activities = [
            SideActivityDescriptor("Activity", Activity),
            SideActivityDescriptor("NoStart", NoStart),
            SideActivityDescriptor("Off", NoStart, active=False),
        ]
        summary = verifier.verify_registry([CandidateDescriptor.direct("A", Shape)], activities)

        assert summary.total == 1
        assert summary.activities_total == 2
        assert summary.activities_eligible == ["Activity"]
        assert summary.activities_eligible_count == 1
        assert summary.activities_ineligible == {"NoStart": ["missing on_start()"]}

        data = json.loads(json.dumps(summary.to_dict()))
        assert data["activities_total"] == 2
        assert data["activity_reports"][1]["format"] == "activity"

    def test_registered_activities_pass(self, config):
        verifier = ContractVerifier(config, forward_events=False)
        summary = verifier.verify_registry([], load_side_activities(config))

        assert summary.activities_total == len(config.side_activities)
        assert summary.activities_ineligible == {}
        for report in summary.activity_reports:
            assert report.warnings == [], report.name
