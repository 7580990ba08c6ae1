"""
Weighted Sampler
================

Turns a candidate list and a bias profile into a probability table, and
draws pools without replacement.

Weights are recomputed after every removal so favorites and the nerfed shape
keep the same relative bias as the field narrows.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence, TypeVar

from shapeflow.pool_core.config_loader import SamplingConfig, get_config

T = TypeVar("T")


@dataclass(frozen=True)
class BiasProfile:
    """Player preferences that skew sampling."""
    favorite_ids: FrozenSet[str] = field(default_factory=frozenset)
    nerf_pattern: Optional[str] = "shapeless"

    @classmethod
    def empty(cls) -> "BiasProfile":
        return cls(frozenset(), None)


@dataclass(frozen=True)
class WeightEntry:
    id: str
    weight: float
    probability: float


def candidate_id(candidate: Any) -> Optional[str]:
    """Identifier of a candidate: its name, its id, or the string itself."""
    if isinstance(candidate, str):
        return candidate or None
    return getattr(candidate, "name", None) or getattr(candidate, "id", None)


def compute_weights(
    candidates: Iterable[Any],
    bias: Optional[BiasProfile] = None,
    sampling: Optional[SamplingConfig] = None
) -> List[WeightEntry]:
    """
    Build a normalized probability table.

    Args:
        candidates: Descriptors, or anything with a name/id, or plain strings.
        bias: Favorites and nerf pattern. Empty profile if None.
        sampling: Weight constants. Uses config defaults if None.

    Returns:
        One entry per identifiable candidate, probabilities summing to 1.
    """
    if bias is None:
        bias = BiasProfile.empty()
    if sampling is None:
        sampling = get_config().sampling

    nerf = re.compile(bias.nerf_pattern, re.IGNORECASE) if bias.nerf_pattern else None

    raw = []
    for candidate in candidates:
        cid = candidate_id(candidate)
        if not cid:
            continue
        weight = sampling.base_weight
        if nerf is not None and nerf.search(cid):
            weight = sampling.nerf_weight
        if cid in bias.favorite_ids:
            weight *= sampling.favorite_multiplier
        raw.append((cid, weight))

    total = sum(w for _, w in raw) or 1.0
    return [WeightEntry(cid, w, w / total) for cid, w in raw]


def pick_weighted(
    table: Sequence[WeightEntry],
    random_source: Callable[[], float] = random.random
) -> Optional[str]:
    """
    Draw one id from a probability table.

    Falls back to the last entry if floating-point drift exhausts the walk.
    Returns None only for an empty table.
    """
    if not table:
        return None
    t = random_source()
    for entry in table:
        t -= entry.probability
        if t <= 0:
            return entry.id
    return table[-1].id


class WeightedSampler:
    """
    Seedable sampler used by the scheduler for every pool build.

    Owns its own random.Random so a session is reproducible from one seed.
    """

    def __init__(
        self,
        sampling: Optional[SamplingConfig] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize sampler.

        Args:
            sampling: Weight constants. Uses config defaults if None.
            seed: Random seed for reproducibility. Random if None.
        """
        if sampling is None:
            sampling = get_config().sampling

        self._sampling = sampling
        self._rng = random.Random(seed)

    @property
    def sampling(self) -> SamplingConfig:
        return self._sampling

    def random(self) -> float:
        return self._rng.random()

    def weights(self, candidates: Iterable[Any], bias: Optional[BiasProfile] = None) -> List[WeightEntry]:
        return compute_weights(candidates, bias, self._sampling)

    def pick(self, candidates: Sequence[Any], bias: Optional[BiasProfile] = None) -> Optional[str]:
        """Draw a single id, with replacement."""
        return pick_weighted(self.weights(candidates, bias), self._rng.random)

    def sample(
        self,
        candidates: Sequence[T],
        size: int,
        bias: Optional[BiasProfile] = None
    ) -> List[T]:
        """
        Draw up to size candidates without replacement.

        Args:
            candidates: Pool to draw from. Not modified.
            size: Target number of draws.
            bias: Favorites and nerf pattern.

        Returns:
            Drawn candidates in draw order, no duplicates.
        """
        available = list(candidates)
        selected: List[T] = []
        while len(selected) < size and available:
            chosen_id = pick_weighted(self.weights(available, bias), self._rng.random)
            index = next(
                (i for i, c in enumerate(available) if candidate_id(c) == chosen_id),
                0
            )
            selected.append(available.pop(index))
        return selected

    def shuffle(self, items: List[T]) -> List[T]:
        """Shuffle in place and return the same list."""
        self._rng.shuffle(items)
        return items

    def reset(self, seed: Optional[int] = None) -> None:
        """
        Reset the sampler with optional new seed.

        Args:
            seed: New random seed. Keeps current state if None.
        """
        if seed is not None:
            self._rng = random.Random(seed)
