"""
Contract Verifier
=================

Decides whether a candidate shape may enter any pool.

Each descriptor is built in a throwaway sandbox, checked for its required
capabilities, and run through a short synthetic lifecycle while a capturing
bus records what it emits. Findings are recorded per descriptor; nothing
raised by a shape escapes the verifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from shapeflow.pool_core.behavior import (
    BehaviorType,
    CONTEXT_REQUIRED_CAPABILITIES,
    OPTIONAL_CAPABILITIES,
    REQUIRED_CAPABILITIES,
    SIDE_ACTIVITY_LEGACY,
    SIDE_ACTIVITY_REQUIRED,
    has_capability,
    requires_force_complete,
)
from shapeflow.pool_core.catalog import (
    CandidateDescriptor,
    ContextFactory,
    DirectFactory,
    SideActivityDescriptor,
)
from shapeflow.pool_core.config_loader import PoolSettings, VerifierConfig, get_config
from shapeflow.pool_core.context import ShapeMeta, build_context
from shapeflow.pool_core.errors import (
    ConstructionError,
    ContractViolation,
    OptionalCapabilityWarning,
    PolicyWarning,
    SandboxError,
    ShapeContractError,
    ShapeWarning,
)
from shapeflow.pool_core.events import CapturedEvent, CapturingSink, EventSink, NullBus, safe_emit
from shapeflow.pool_core.logging_setup import get_logger
from shapeflow.pool_core.surface import OffscreenSurface

logger = get_logger("verifier")


@dataclass
class VerificationReport:
    """Outcome for a single descriptor."""
    name: str
    format: str                      # "v1", "v2" or "activity"
    errors: List[ShapeContractError] = field(default_factory=list)
    warnings: List[ShapeWarning] = field(default_factory=list)
    emits: List[CapturedEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def reasons(self) -> List[str]:
        return [e.message for e in self.errors]

    @property
    def warning_messages(self) -> List[str]:
        return [w.message for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "format": self.format,
            "ok": self.ok,
            "errors": [{"kind": type(e).__name__, "message": e.message} for e in self.errors],
            "warnings": [{"kind": type(w).__name__, "message": w.message} for w in self.warnings],
            "emits": [e.event for e in self.emits],
        }


@dataclass
class VerificationSummary:
    """Batch outcome over a whole registry."""
    total: int
    eligible: List[str]
    ineligible: Dict[str, List[str]]
    warnings: Dict[str, List[str]]
    duplicates: List[str]
    reports: List[VerificationReport]
    activities_total: int = 0
    activities_eligible: List[str] = field(default_factory=list)
    activities_ineligible: Dict[str, List[str]] = field(default_factory=dict)
    activity_reports: List[VerificationReport] = field(default_factory=list)

    @property
    def eligible_count(self) -> int:
        return len(self.eligible)

    @property
    def activities_eligible_count(self) -> int:
        return len(self.activities_eligible)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "eligible": list(self.eligible),
            "ineligible": {k: list(v) for k, v in self.ineligible.items()},
            "warnings": {k: list(v) for k, v in self.warnings.items()},
            "duplicates": list(self.duplicates),
            "reports": [r.to_dict() for r in self.reports],
            "activities_total": self.activities_total,
            "activities_eligible": list(self.activities_eligible),
            "activities_ineligible": {k: list(v) for k, v in self.activities_ineligible.items()},
            "activity_reports": [r.to_dict() for r in self.activity_reports],
        }


class ContractVerifier:
    """
    Verifies shapes against the behavior unit contract.

    Reports are cached per descriptor object for the process lifetime, so
    two descriptors sharing a name keep separate verdicts. Use reverify()
    or clear_cache() after changing a plugin.
    """

    def __init__(
        self,
        config: Optional[PoolSettings] = None,
        bus: Optional[EventSink] = None,
        forward_events: bool = True,
        surface_factory: Optional[Callable[[], Any]] = None
    ):
        """
        Initialize verifier.

        Args:
            config: Pool configuration. Uses default if None.
            bus: Bus that captured shape events are forwarded to.
            forward_events: If False, sandbox emissions reach no subscriber.
            surface_factory: Builds the throwaway draw target.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._settings: VerifierConfig = config.verifier
        self._bus = bus if bus is not None else NullBus()
        self._forward = forward_events
        self._surface_factory = surface_factory or (
            lambda: OffscreenSurface(self._settings.surface_width, self._settings.surface_height)
        )
        # id(descriptor) -> (descriptor, report); holding the descriptor keeps the id stable
        self._cache: Dict[int, Tuple[CandidateDescriptor, VerificationReport]] = {}

    @property
    def settings(self) -> VerifierConfig:
        return self._settings

    # ------------------------------------------------------------------
    # Single descriptor
    # ------------------------------------------------------------------

    def verify(self, descriptor: CandidateDescriptor) -> VerificationReport:
        """Verify one descriptor, bypassing the cache."""
        if isinstance(descriptor.kind, ContextFactory):
            report = self._verify_context(descriptor)
        else:
            report = self._verify_direct(descriptor)
        self._log_report(report)
        return report

    def is_eligible(self, descriptor: CandidateDescriptor) -> bool:
        """True if the descriptor passed verification (verified on first use)."""
        return self.report_for(descriptor).ok

    def cached_report(self, descriptor: CandidateDescriptor) -> Optional[VerificationReport]:
        """Report already on file for this exact descriptor, or None."""
        entry = self._cache.get(id(descriptor))
        return entry[1] if entry is not None else None

    def _store(self, descriptor: CandidateDescriptor, report: VerificationReport) -> None:
        self._cache[id(descriptor)] = (descriptor, report)

    def report_for(self, descriptor: CandidateDescriptor) -> VerificationReport:
        report = self.cached_report(descriptor)
        if report is None:
            report = self.verify(descriptor)
            self._store(descriptor, report)
        return report

    def filter_eligible(self, descriptors: Iterable[CandidateDescriptor]) -> List[CandidateDescriptor]:
        return [d for d in descriptors if self.is_eligible(d)]

    def reverify(self, descriptor: CandidateDescriptor) -> VerificationReport:
        self._cache.pop(id(descriptor), None)
        return self.report_for(descriptor)

    def exclude(self, descriptor: CandidateDescriptor, error: ShapeContractError) -> VerificationReport:
        """Mark a descriptor ineligible after it failed outside the sandbox."""
        report = self.cached_report(descriptor) or VerificationReport(descriptor.name, descriptor.format)
        report.errors.append(error)
        self._store(descriptor, report)
        logger.warning("%s excluded: %s", descriptor.name, error.message)
        return report

    def clear_cache(self) -> None:
        self._cache.clear()

    def _verify_direct(self, descriptor: CandidateDescriptor) -> VerificationReport:
        name = descriptor.name
        report = VerificationReport(name=name, format="v1")
        kind = descriptor.kind

        if not isinstance(kind, DirectFactory) or not callable(kind.factory):
            report.errors.append(ContractViolation(name, "missing factory (callable)", "factory"))
            return report

        s = self._settings
        try:
            unit = kind.factory(s.probe_x, s.probe_y, s.probe_size, descriptor.color, name)
        except Exception as e:
            report.errors.append(ConstructionError(name, e))
            return report

        for capability in REQUIRED_CAPABILITIES:
            if not has_capability(unit, capability):
                report.errors.append(ContractViolation(name, f"missing {capability}()", capability))

        try:
            behavior = getattr(unit, "behavior_type", None)
        except Exception as e:
            report.errors.append(SandboxError(name, "behavior_type", e))
            return report

        if BehaviorType.parse(behavior) is None:
            report.errors.append(ContractViolation(
                name, f"invalid or missing behavior_type: {behavior!r}", "behavior_type"
            ))
        elif requires_force_complete(behavior) and not has_capability(unit, "force_complete"):
            report.errors.append(ContractViolation(
                name, f"missing force_complete() required for {behavior} shapes", "force_complete"
            ))

        for capability in OPTIONAL_CAPABILITIES:
            if capability == "force_complete" and requires_force_complete(behavior):
                continue
            if not has_capability(unit, capability):
                report.warnings.append(OptionalCapabilityWarning(name, f"optional {capability}() missing"))

        sink = CapturingSink(self._bus, forward=self._forward)
        if has_capability(unit, "attach_bus"):
            try:
                unit.attach_bus(sink)
            except Exception as e:
                report.errors.append(SandboxError(name, "attach_bus", e))
                return report

        self._exercise(report, unit, sink, reset=True)
        self._apply_policy(report, sink, veils_authorized=name in s.veil_allowlist)
        return report

    def _verify_context(self, descriptor: CandidateDescriptor) -> VerificationReport:
        kind = descriptor.kind
        meta: ShapeMeta = kind.meta
        name = descriptor.name
        report = VerificationReport(name=name, format="v2")

        if meta is None or not callable(kind.create):
            report.errors.append(ContractViolation(name, "missing meta and/or create()", "create"))
            return report

        if not meta.id:
            report.errors.append(ContractViolation(name, "meta.id missing", "meta.id"))
        if not meta.display_name:
            report.errors.append(ContractViolation(name, "meta.display_name missing", "meta.display_name"))
        if BehaviorType.parse(meta.behavior_type) is None:
            report.errors.append(ContractViolation(
                name, f"meta.behavior_type invalid: {meta.behavior_type!r}", "behavior_type"
            ))
        if not meta.color:
            report.warnings.append(OptionalCapabilityWarning(name, "meta.color missing"))
        if meta.uses_edge_veils is None:
            report.warnings.append(OptionalCapabilityWarning(name, "meta.flags incomplete"))
        timings = meta.timings
        if not all(isinstance(timings.get(k), (int, float)) for k in ("intro_ms", "glint_ms")):
            report.warnings.append(OptionalCapabilityWarning(name, "meta.timings incomplete"))
        if meta.version != 2:
            report.warnings.append(OptionalCapabilityWarning(name, "meta.version should be 2"))

        s = self._settings
        sink = CapturingSink(self._bus, forward=self._forward)
        context = build_context(
            bus=sink,
            seed=s.sandbox_seed,
            width=s.surface_width,
            height=s.surface_height
        )
        try:
            instance = kind.create(context)
        except Exception as e:
            report.errors.append(ConstructionError(name, e))
            return report

        for capability in CONTEXT_REQUIRED_CAPABILITIES:
            if not has_capability(instance, capability):
                report.errors.append(ContractViolation(name, f"missing {capability}()", capability))

        self._exercise(report, instance, sink, reset=False, advance=context.scheduler.advance)
        authorized = name in s.veil_allowlist or meta.uses_edge_veils is True
        self._apply_policy(report, sink, veils_authorized=authorized)
        return report

    # ------------------------------------------------------------------
    # Sandbox
    # ------------------------------------------------------------------

    def _exercise(
        self,
        report: VerificationReport,
        unit: Any,
        sink: CapturingSink,
        reset: bool,
        advance: Optional[Callable[[float], Any]] = None
    ) -> None:
        """Run the bounded synthetic lifecycle, recording the first failure."""
        s = self._settings
        stage = "on_start"
        try:
            if has_capability(unit, "on_start"):
                unit.on_start()
            if reset and has_capability(unit, "reset_sequence"):
                stage = "reset_sequence"
                unit.reset_sequence(s.reset_level)
            if has_capability(unit, "update"):
                stage = "update"
                for _ in range(s.update_steps):
                    if advance is not None:
                        advance(s.timestep_ms)
                    unit.update(s.timestep_ms)
            if has_capability(unit, "draw"):
                stage = "draw"
                unit.draw(self._surface_factory())
            if has_capability(unit, "on_complete"):
                stage = "on_complete"
                unit.on_complete()
        except Exception as e:
            report.errors.append(SandboxError(report.name, stage, e))
        finally:
            report.emits = list(sink.captured)

    def _apply_policy(self, report: VerificationReport, sink: CapturingSink, veils_authorized: bool) -> None:
        s = self._settings
        veils = sink.with_prefix(s.veil_event_prefix)
        if veils and not veils_authorized:
            names = tuple(e.event for e in veils)
            report.warnings.append(PolicyWarning(
                report.name,
                f"emits veil events ({', '.join(names)}) but is not allowed to own the play-area border",
                names
            ))
        huds = sink.with_prefix(s.hud_event_prefix)
        if huds:
            names = tuple(e.event for e in huds)
            report.warnings.append(PolicyWarning(
                report.name, f"emitted HUD events ({', '.join(names)})", names
            ))

    def _log_report(self, report: VerificationReport) -> None:
        for error in report.errors:
            logger.warning("%s excluded: %s", report.name, error.message)
        for warning in report.warnings:
            if isinstance(warning, PolicyWarning):
                logger.warning("%s policy: %s", report.name, warning.message)
            else:
                logger.debug("%s: %s", report.name, warning.message)

    # ------------------------------------------------------------------
    # Side activities
    # ------------------------------------------------------------------

    def verify_side_activity(self, activity: SideActivityDescriptor) -> VerificationReport:
        """
        Presence-check a side activity without building it.

        on_start/start and on_complete/complete are required; a missing
        update() or is_ready() is only a legacy warning.
        """
        name = activity.name or getattr(activity.factory, "name", None) or "unknown"
        report = VerificationReport(name=name, format="activity")
        target = activity.factory

        if name == "unknown":
            report.errors.append(ContractViolation(name, "missing name/id", "name"))
        if target is None:
            report.errors.append(ContractViolation(name, "missing factory", "factory"))
            self._log_report(report)
            return report

        for group in SIDE_ACTIVITY_REQUIRED:
            if not any(has_capability(target, capability) for capability in group):
                report.errors.append(ContractViolation(name, f"missing {group[0]}()", group[0]))
        for group in SIDE_ACTIVITY_LEGACY:
            if not any(has_capability(target, capability) for capability in group):
                report.warnings.append(OptionalCapabilityWarning(name, f"legacy: missing {group[0]}()"))

        self._log_report(report)
        return report

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def verify_registry(
        self,
        descriptors: Iterable[CandidateDescriptor],
        side_activities: Iterable[SideActivityDescriptor] = ()
    ) -> VerificationSummary:
        """
        Verify every active descriptor and side activity, and summarize.

        Inactive entries are skipped. Duplicate names are reported; every copy
        is verified and keeps its own cached report.

        Returns:
            VerificationSummary for diagnostics.
        """
        reports: List[VerificationReport] = []
        seen = set()
        duplicates: List[str] = []

        for descriptor in descriptors:
            if not descriptor.active:
                continue
            if descriptor.name in seen and descriptor.name not in duplicates:
                duplicates.append(descriptor.name)
                logger.warning("Duplicate shape name detected: %s", descriptor.name)
            seen.add(descriptor.name)

            report = self.verify(descriptor)
            self._store(descriptor, report)
            reports.append(report)

        activity_reports = [self.verify_side_activity(a) for a in side_activities if a.active]

        summary = VerificationSummary(
            total=len(reports),
            eligible=[r.name for r in reports if r.ok],
            ineligible={r.name: r.reasons for r in reports if not r.ok},
            warnings={r.name: r.warning_messages for r in reports if r.warnings},
            duplicates=duplicates,
            reports=reports,
            activities_total=len(activity_reports),
            activities_eligible=[r.name for r in activity_reports if r.ok],
            activities_ineligible={r.name: r.reasons for r in activity_reports if not r.ok},
            activity_reports=activity_reports
        )
        logger.info(
            "Verified %d shapes: %d eligible, %d excluded; %d/%d side activities ok",
            summary.total, summary.eligible_count, len(summary.ineligible),
            summary.activities_eligible_count, summary.activities_total
        )
        safe_emit(self._bus, "verify:report", summary)
        return summary
