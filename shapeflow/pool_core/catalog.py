"""
Shape Catalog
=============

Candidate descriptors resolved from the registry in pool_config.yaml.
"""

from __future__ import annotations

import importlib
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Union

from shapeflow.pool_core.behavior import BehaviorType
from shapeflow.pool_core.config_loader import (
    PoolSettings,
    ShapeEntryConfig,
    SideActivityEntryConfig,
    get_config,
)
from shapeflow.pool_core.context import ShapeContext, ShapeMeta
from shapeflow.pool_core.errors import ConfigError


@dataclass(frozen=True)
class DirectFactory:
    """v1: ``factory(x, y, size, color, name)`` returns a behavior unit."""
    factory: Callable[..., Any]

    format = "v1"


@dataclass(frozen=True)
class ContextFactory:
    """v2: ``create(context)`` returns a plugin instance described by ``meta``."""
    meta: ShapeMeta
    create: Callable[[ShapeContext], Any]

    format = "v2"


DescriptorKind = Union[DirectFactory, ContextFactory]


@dataclass(frozen=True)
class CandidateDescriptor:
    """
    Static catalog entry for one shape.

    Never mutated by the scheduler; build a new descriptor to change a field.
    """
    name: str
    kind: DescriptorKind
    declared_type: BehaviorType = BehaviorType.SURVIVAL
    color: str = "#FFFFFF"
    active: bool = True

    @property
    def is_context(self) -> bool:
        return isinstance(self.kind, ContextFactory)

    @property
    def format(self) -> str:
        return self.kind.format

    @classmethod
    def direct(
        cls,
        name: str,
        factory: Callable[..., Any],
        declared_type: Union[str, BehaviorType] = BehaviorType.SURVIVAL,
        color: str = "#FFFFFF",
        active: bool = True
    ) -> "CandidateDescriptor":
        """Convenience constructor for a direct-factory shape."""
        return cls(name, DirectFactory(factory), _coerce_type(declared_type), color, active)

    @classmethod
    def context(
        cls,
        name: str,
        meta: Union[ShapeMeta, dict],
        create: Callable[[ShapeContext], Any],
        declared_type: Union[str, BehaviorType, None] = None,
        color: Optional[str] = None,
        active: bool = True
    ) -> "CandidateDescriptor":
        """Convenience constructor for a context-factory shape."""
        if not isinstance(meta, ShapeMeta):
            meta = ShapeMeta.from_mapping(meta)
        declared = declared_type if declared_type is not None else meta.behavior_type
        return cls(
            name,
            ContextFactory(meta, create),
            _coerce_type(declared),
            color or meta.color or "#FFFFFF",
            active
        )

    def __repr__(self) -> str:
        return f"CandidateDescriptor({self.name}, {self.format}, {self.declared_type.value})"


def _coerce_type(value: Union[str, BehaviorType]) -> BehaviorType:
    # Declared type is informational; unknown values fall back to survival
    return BehaviorType.parse(value) or BehaviorType.SURVIVAL


def _import_ref(ref: str) -> Any:
    """Resolve "package.module:attr" or "package.module"."""
    module_name, _, attr = ref.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import shape module '{module_name}': {e}") from e
    if not attr:
        return module
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigError(f"Module '{module_name}' has no attribute '{attr}'") from e


def resolve_entry(entry: ShapeEntryConfig) -> CandidateDescriptor:
    """Turn a YAML registry entry into a descriptor."""
    target = _import_ref(entry.factory)
    if entry.kind == "context":
        meta = getattr(target, "meta", None)
        create = getattr(target, "create", None)
        if meta is None or create is None:
            raise ConfigError(f"Context plugin '{entry.factory}' must export 'meta' and 'create'")
        return CandidateDescriptor.context(
            entry.name, meta, create,
            declared_type=entry.type, color=entry.color, active=entry.active
        )
    return CandidateDescriptor.direct(
        entry.name, target,
        declared_type=entry.type, color=entry.color, active=entry.active
    )


class ShapeCatalog:
    """
    Collection of every registered shape.

    The scheduler reads it through descriptors() on every pool build so
    tooling can toggle entries at runtime.
    """

    def __init__(self, descriptors: Iterable[CandidateDescriptor] = ()):
        self._descriptors: Tuple[CandidateDescriptor, ...] = tuple(descriptors)

    @classmethod
    def from_config(cls, config: Optional[PoolSettings] = None) -> "ShapeCatalog":
        """
        Build a catalog from the registry section of the config.

        Args:
            config: PoolSettings instance. If None, loads from default location.
        """
        if config is None:
            config = get_config()
        return cls(resolve_entry(entry) for entry in config.shapes)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[CandidateDescriptor]:
        return iter(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return any(d.name == name for d in self._descriptors)

    def __getitem__(self, name: str) -> CandidateDescriptor:
        found = self.get(name)
        if found is None:
            raise KeyError(name)
        return found

    def get(self, name: str) -> Optional[CandidateDescriptor]:
        """First descriptor with this name, or None."""
        for descriptor in self._descriptors:
            if descriptor.name == name:
                return descriptor
        return None

    def get_by_name(self, name: str) -> Optional[CandidateDescriptor]:
        """Get descriptor by name (case-insensitive)."""
        name_lower = name.lower()
        for descriptor in self._descriptors:
            if descriptor.name.lower() == name_lower:
                return descriptor
        return None

    def descriptors(self) -> Tuple[CandidateDescriptor, ...]:
        return self._descriptors

    @property
    def active(self) -> Tuple[CandidateDescriptor, ...]:
        return tuple(d for d in self._descriptors if d.active)

    @property
    def names(self) -> List[str]:
        return [d.name for d in self._descriptors]

    def duplicates(self) -> List[str]:
        """Names registered more than once among active entries."""
        counts = Counter(d.name for d in self._descriptors if d.active)
        return [name for name, count in counts.items() if count > 1]

    def set_active(self, name: str, active: bool) -> None:
        """Replace the named entries with copies carrying a new active flag."""
        if name not in self:
            raise KeyError(name)
        self._descriptors = tuple(
            CandidateDescriptor(d.name, d.kind, d.declared_type, d.color, active) if d.name == name else d
            for d in self._descriptors
        )


# Module-level singleton
_cached_catalog: Optional[ShapeCatalog] = None


def get_catalog(config: Optional[PoolSettings] = None) -> ShapeCatalog:
    """
    Get the shape catalog singleton.

    Args:
        config: Optional config to use. If None, uses cached or default config.

    Returns:
        ShapeCatalog instance.
    """
    global _cached_catalog
    if _cached_catalog is None or config is not None:
        _cached_catalog = ShapeCatalog.from_config(config)
    return _cached_catalog


@dataclass(frozen=True)
class SideActivityDescriptor:
    """Registry entry for a mini-game launched between levels."""
    name: str
    factory: Callable[..., Any]
    active: bool = True


def resolve_side_activity(entry: SideActivityEntryConfig) -> SideActivityDescriptor:
    return SideActivityDescriptor(entry.name, _import_ref(entry.factory), entry.active)


def load_side_activities(config: Optional[PoolSettings] = None) -> Tuple[SideActivityDescriptor, ...]:
    """Resolve the side_activities section of the config, in registry order."""
    if config is None:
        config = get_config()
    return tuple(resolve_side_activity(entry) for entry in config.side_activities)
