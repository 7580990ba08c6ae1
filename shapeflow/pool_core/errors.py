"""
Errors
======

Exception taxonomy for the shape pool.

Verifier errors are recorded on a VerificationReport and never raised to the
caller. PoolExhaustionError is the one condition the scheduler raises.
"""

from __future__ import annotations

from typing import Optional


class ShapeFlowError(Exception):
    """Base class for all shape pool errors."""


class ConfigError(ShapeFlowError, ValueError):
    """Configuration file content is invalid."""


class ShapeContractError(ShapeFlowError):
    """A candidate shape failed verification; excludes it from every pool."""

    def __init__(self, shape_name: str, message: str):
        super().__init__(f"{shape_name}: {message}")
        self.shape_name = shape_name
        self.message = message


class ConstructionError(ShapeContractError):
    """The shape factory raised while building an instance."""

    def __init__(self, shape_name: str, cause: BaseException):
        super().__init__(shape_name, f"factory raised {type(cause).__name__}: {cause}")
        self.cause = cause


class ContractViolation(ShapeContractError):
    """A required capability is missing or behavior_type is invalid."""

    def __init__(self, shape_name: str, message: str, capability: Optional[str] = None):
        super().__init__(shape_name, message)
        self.capability = capability


class SandboxError(ContractViolation):
    """The synthetic update/draw run raised."""

    def __init__(self, shape_name: str, stage: str, cause: BaseException):
        super().__init__(
            shape_name,
            f"sandbox raised during {stage}: {type(cause).__name__}: {cause}",
            capability=stage
        )
        self.stage = stage
        self.cause = cause


class ShapeWarning(UserWarning):
    """Non-fatal verifier finding; the shape stays eligible."""

    def __init__(self, shape_name: str, message: str):
        super().__init__(f"{shape_name}: {message}")
        self.shape_name = shape_name
        self.message = message


class OptionalCapabilityWarning(ShapeWarning):
    """A nice-to-have capability or metadata field is missing."""


class PolicyWarning(ShapeWarning):
    """The shape emitted an event class it does not own."""

    def __init__(self, shape_name: str, message: str, events: tuple = ()):
        super().__init__(shape_name, message)
        self.events = tuple(events)


class PoolExhaustionError(ShapeFlowError):
    """No shape could be popped: remaining is empty and rebuilding produced nothing."""

    def __init__(self, level: int, mode: str):
        super().__init__(f"No eligible shapes available (mode={mode}, level={level})")
        self.level = level
        self.mode = mode


class ConsumptionMismatchError(ShapeFlowError):
    """A prewarmed pool was requested for a different level than it was built for."""

    def __init__(self, cached_level: Optional[int], requested_level: int):
        super().__init__(
            f"Prewarmed level {cached_level} does not match requested level {requested_level}"
        )
        self.cached_level = cached_level
        self.requested_level = requested_level
