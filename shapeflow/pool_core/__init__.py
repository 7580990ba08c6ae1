"""
Pool Core - Shape pool scheduling.

This module provides weighted pool sampling, the shape contract verifier,
and the stateful scheduler that turns verified candidates into a stream of
behavior units.

Main exports:
- PoolScheduler: Level pools, prewarming, infinite cycles and isolation
- ContractVerifier: Sandbox verification of candidate shapes
- WeightedSampler: Biased sampling without replacement
- ShapeCatalog: Candidate descriptors loaded from pool_config.yaml
- load_side_activities: Side activities launched between levels
- PoolSettings: Configuration loaded from pool_config.yaml
"""

from shapeflow.pool_core.config_loader import PoolSettings, load_config, get_config
from shapeflow.pool_core.behavior import BehaviorType, BehaviorUnit
from shapeflow.pool_core.catalog import (
    CandidateDescriptor,
    ContextFactory,
    DirectFactory,
    ShapeCatalog,
    SideActivityDescriptor,
    get_catalog,
    load_side_activities,
)
from shapeflow.pool_core.errors import (
    ConsumptionMismatchError,
    PoolExhaustionError,
    ShapeContractError,
    ShapeWarning,
)
from shapeflow.pool_core.events import CapturingSink, EventBus
from shapeflow.pool_core.sampler import BiasProfile, WeightedSampler
from shapeflow.pool_core.profile import PlayerProfile
from shapeflow.pool_core.pool import Pool, PrewarmSlot, ShapeStack
from shapeflow.pool_core.verifier import ContractVerifier, VerificationReport, VerificationSummary
from shapeflow.pool_core.scheduler import PoolScheduler
from shapeflow.pool_core.modes import ModeRegistry

__all__ = [
    "PoolSettings",
    "load_config",
    "get_config",
    "BehaviorType",
    "BehaviorUnit",
    "CandidateDescriptor",
    "ContextFactory",
    "DirectFactory",
    "ShapeCatalog",
    "SideActivityDescriptor",
    "get_catalog",
    "load_side_activities",
    "ConsumptionMismatchError",
    "PoolExhaustionError",
    "ShapeContractError",
    "ShapeWarning",
    "CapturingSink",
    "EventBus",
    "BiasProfile",
    "WeightedSampler",
    "PlayerProfile",
    "Pool",
    "PrewarmSlot",
    "ShapeStack",
    "ContractVerifier",
    "VerificationReport",
    "VerificationSummary",
    "PoolScheduler",
    "ModeRegistry",
]
