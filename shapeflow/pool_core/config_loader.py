"""
Configuration Loader
====================

Loads and validates pool_config.yaml, providing typed access to all parameters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from shapeflow.pool_core.errors import ConfigError


VALID_KINDS = ("direct", "context")
VALID_TYPES = ("survival", "sequence", "objective")


@dataclass(frozen=True)
class PlayAreaConfig:
    """Construction parameters and bounds handed to shape factories."""
    x: float
    y: float
    size: float
    width: int    # Bounds exposed to context plugins
    height: int


@dataclass(frozen=True)
class PoolConfig:
    """Pick-set size policy."""
    level_sizes: Tuple[int, ...]  # Caps for levels 1..len(level_sizes)
    infinite_level: int           # Level that cycles through every eligible shape

    @property
    def max_level(self) -> int:
        return self.infinite_level

    def size_for_level(self, level: int, available: int) -> int:
        """Pool size for a level given how many candidates are available."""
        if level >= self.infinite_level:
            return available
        if 1 <= level <= len(self.level_sizes):
            return min(self.level_sizes[level - 1], available)
        return available


@dataclass(frozen=True)
class SamplingConfig:
    """Weighted sampling constants."""
    base_weight: float
    nerf_pattern: Optional[str]
    nerf_weight: float
    favorite_multiplier: float


@dataclass(frozen=True)
class VerifierConfig:
    """Contract verifier sandbox parameters."""
    probe_x: float
    probe_y: float
    probe_size: float
    update_steps: int
    timestep_ms: float
    reset_level: int
    surface_width: int
    surface_height: int
    veil_event_prefix: str
    hud_event_prefix: str
    veil_allowlist: Tuple[str, ...]
    sandbox_seed: int


@dataclass(frozen=True)
class ProfileConfig:
    """Seed values for a fresh player profile."""
    default_unlocks: Tuple[str, ...]
    favorites: Tuple[str, ...]


@dataclass(frozen=True)
class ShapeEntryConfig:
    """A registry entry as written in YAML (factory still unresolved)."""
    name: str
    kind: str        # "direct" or "context"
    factory: str     # "module:Attr" for direct, "module" for context
    type: str
    color: str
    active: bool = True


@dataclass(frozen=True)
class SideActivityEntryConfig:
    """A side activity (mini-game) registry entry."""
    name: str
    factory: str     # "module:Attr"
    active: bool = True


@dataclass(frozen=True)
class PoolSettings:
    """
    Complete configuration loaded from YAML.

    All values are immutable to prevent accidental modification during runtime.
    """
    play_area: PlayAreaConfig
    pool: PoolConfig
    sampling: SamplingConfig
    verifier: VerifierConfig
    profile: ProfileConfig
    shapes: Tuple[ShapeEntryConfig, ...]
    side_activities: Tuple[SideActivityEntryConfig, ...] = ()

    @property
    def shape_names(self) -> Tuple[str, ...]:
        return tuple(entry.name for entry in self.shapes)

    def get_shape(self, name: str) -> ShapeEntryConfig:
        """Get a registry entry by name."""
        for entry in self.shapes:
            if entry.name == name:
                return entry
        raise ConfigError(f"Unknown shape: {name}")


def _parse_shape(shape_data: dict) -> ShapeEntryConfig:
    """Parse a single registry entry from YAML."""
    try:
        return ShapeEntryConfig(
            name=str(shape_data["name"]),
            kind=str(shape_data.get("kind", "direct")),
            factory=str(shape_data["factory"]),
            type=str(shape_data.get("type", "survival")),
            color=str(shape_data.get("color", "#FFFFFF")),
            active=bool(shape_data.get("active", True))
        )
    except KeyError as e:
        raise ConfigError(f"Shape entry missing field {e}: {shape_data}") from e


def _parse_side_activity(data: dict) -> SideActivityEntryConfig:
    try:
        return SideActivityEntryConfig(
            name=str(data["name"]),
            factory=str(data["factory"]),
            active=bool(data.get("active", True))
        )
    except KeyError as e:
        raise ConfigError(f"Side activity entry missing field {e}: {data}") from e


def _validate_config(config: PoolSettings) -> None:
    """Validate configuration consistency."""
    # Level caps must be positive and non-decreasing
    sizes = config.pool.level_sizes
    if any(size <= 0 for size in sizes):
        raise ConfigError(f"pool.level_sizes must be positive, got {list(sizes)}")
    if list(sizes) != sorted(sizes):
        raise ConfigError(f"pool.level_sizes must be non-decreasing, got {list(sizes)}")

    # The infinite level sits right after the capped levels
    if config.pool.infinite_level != len(sizes) + 1:
        raise ConfigError(
            f"pool.infinite_level ({config.pool.infinite_level}) must follow the "
            f"{len(sizes)} capped levels"
        )

    if config.sampling.nerf_weight < 0 or config.sampling.base_weight < 0:
        raise ConfigError("sampling weights must be non-negative")
    if config.sampling.favorite_multiplier < 1.0:
        raise ConfigError(
            f"sampling.favorite_multiplier must be >= 1.0, "
            f"got {config.sampling.favorite_multiplier}"
        )

    if config.verifier.update_steps <= 0:
        raise ConfigError("verifier.update_steps must be positive")

    for entry in config.shapes:
        if entry.kind not in VALID_KINDS:
            raise ConfigError(f"Shape {entry.name}: kind must be one of {VALID_KINDS}, got '{entry.kind}'")
        if entry.type not in VALID_TYPES:
            raise ConfigError(f"Shape {entry.name}: type must be one of {VALID_TYPES}, got '{entry.type}'")


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = raw.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{key}' must be a mapping")
    return section


def load_config(config_path: Optional[str] = None) -> PoolSettings:
    """
    Load and validate pool configuration from YAML.

    Args:
        config_path: Path to pool_config.yaml. If None, uses default location.

    Returns:
        Validated PoolSettings instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigError: If config validation fails.
    """
    if config_path is None:
        config_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "pool_config.yaml"
        )

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f) or {}

    area_data = _section(raw, "play_area")
    play_area = PlayAreaConfig(
        x=float(area_data.get("x", 256)),
        y=float(area_data.get("y", 256)),
        size=float(area_data.get("size", 120)),
        width=int(area_data.get("width", 512)),
        height=int(area_data.get("height", 512))
    )

    pool_data = _section(raw, "pool")
    pool = PoolConfig(
        level_sizes=tuple(int(s) for s in pool_data.get("level_sizes", (5, 8, 10))),
        infinite_level=int(pool_data.get("infinite_level", 4))
    )

    sampling_data = _section(raw, "sampling")
    nerf_pattern = sampling_data.get("nerf_pattern", "shapeless")
    sampling = SamplingConfig(
        base_weight=float(sampling_data.get("base_weight", 1.0)),
        nerf_pattern=str(nerf_pattern) if nerf_pattern else None,
        nerf_weight=float(sampling_data.get("nerf_weight", 0.3)),
        favorite_multiplier=float(sampling_data.get("favorite_multiplier", 2.0))
    )

    verifier_data = _section(raw, "verifier")
    verifier = VerifierConfig(
        probe_x=float(verifier_data.get("probe_x", 128)),
        probe_y=float(verifier_data.get("probe_y", 128)),
        probe_size=float(verifier_data.get("probe_size", 64)),
        update_steps=int(verifier_data.get("update_steps", 30)),
        timestep_ms=float(verifier_data.get("timestep_ms", 16)),
        reset_level=int(verifier_data.get("reset_level", 1)),
        surface_width=int(verifier_data.get("surface_width", 512)),
        surface_height=int(verifier_data.get("surface_height", 512)),
        veil_event_prefix=str(verifier_data.get("veil_event_prefix", "playArea/hide")),
        hud_event_prefix=str(verifier_data.get("hud_event_prefix", "hud:")),
        veil_allowlist=tuple(str(n) for n in verifier_data.get("veil_allowlist", ())),
        sandbox_seed=int(verifier_data.get("sandbox_seed", 1))
    )

    profile_data = _section(raw, "profile")
    profile = ProfileConfig(
        default_unlocks=tuple(str(n) for n in profile_data.get("default_unlocks") or ()),
        favorites=tuple(str(n) for n in profile_data.get("favorites") or ())
    )

    shapes: List[ShapeEntryConfig] = [_parse_shape(s) for s in raw.get("shapes") or []]
    side_activities = [_parse_side_activity(a) for a in raw.get("side_activities") or []]

    config = PoolSettings(
        play_area=play_area,
        pool=pool,
        sampling=sampling,
        verifier=verifier,
        profile=profile,
        shapes=tuple(shapes),
        side_activities=tuple(side_activities)
    )

    _validate_config(config)
    return config


# Module-level singleton for convenience
_cached_config: Optional[PoolSettings] = None


def get_config() -> PoolSettings:
    """Get the cached pool configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> PoolSettings:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
