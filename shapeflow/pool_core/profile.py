"""
Player Profile
==============

In-memory stand-in for the profile/progression collaborator. Owns the
unlocked and favorite shape sets; persistence lives elsewhere.
"""

from __future__ import annotations

from typing import Callable, FrozenSet, Iterable, Optional, Set

from shapeflow.pool_core.config_loader import PoolSettings, get_config
from shapeflow.pool_core.sampler import BiasProfile


class PlayerProfile:
    """
    Unlock and favorite state for one player.

    The scheduler reads it through unlock_provider() and bias_provider() on
    every pool build, so changes apply from the next build on.
    """

    def __init__(
        self,
        unlocked: Iterable[str] = (),
        favorites: Iterable[str] = (),
        nerf_pattern: Optional[str] = None
    ):
        self._unlocked: Set[str] = set(unlocked)
        self._favorites: Set[str] = set(favorites)
        self._nerf_pattern = nerf_pattern

    @classmethod
    def from_config(cls, config: Optional[PoolSettings] = None) -> "PlayerProfile":
        """Fresh profile seeded with the configured default unlocks."""
        if config is None:
            config = get_config()
        return cls(
            unlocked=config.profile.default_unlocks,
            favorites=config.profile.favorites,
            nerf_pattern=config.sampling.nerf_pattern
        )

    @property
    def unlocked(self) -> FrozenSet[str]:
        return frozenset(self._unlocked)

    @property
    def favorites(self) -> FrozenSet[str]:
        return frozenset(self._favorites)

    def unlock(self, name: str) -> None:
        self._unlocked.add(name)

    def lock(self, name: str) -> None:
        self._unlocked.discard(name)

    def is_unlocked(self, name: str) -> bool:
        return name in self._unlocked

    def toggle_favorite(self, name: str) -> bool:
        """Flip favorite status. Returns the new status."""
        if name in self._favorites:
            self._favorites.discard(name)
            return False
        self._favorites.add(name)
        return True

    def bias(self) -> BiasProfile:
        return BiasProfile(frozenset(self._favorites), self._nerf_pattern)

    def unlock_provider(self) -> Callable[[], FrozenSet[str]]:
        return lambda: self.unlocked

    def bias_provider(self) -> Callable[[], BiasProfile]:
        return self.bias
