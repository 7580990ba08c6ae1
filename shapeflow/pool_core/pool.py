"""
Pool
====

Pick-set bookkeeping: the LIFO stack of remaining shapes, the in-progress and
completed partitions, and the one-slot prewarm cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from shapeflow.pool_core.catalog import CandidateDescriptor
from shapeflow.pool_core.errors import ConsumptionMismatchError


class ShapeStack:
    """
    Stack of descriptors. The tail is the top: pop() and peek() read the last
    element, so pop order is the reverse of insertion order.
    """

    def __init__(self, items: Iterable[CandidateDescriptor] = ()):
        self._items: List[CandidateDescriptor] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[CandidateDescriptor]:
        """Bottom to top."""
        return iter(self._items)

    def __contains__(self, name: object) -> bool:
        return any(d.name == name for d in self._items)

    def push(self, descriptor: CandidateDescriptor) -> None:
        self._items.append(descriptor)

    def pop(self) -> Optional[CandidateDescriptor]:
        """Remove and return the top, or None when empty."""
        return self._items.pop() if self._items else None

    def peek(self) -> Optional[CandidateDescriptor]:
        return self._items[-1] if self._items else None

    def remove(self, name: str) -> bool:
        """Remove the first entry with this name. Returns True if one was removed."""
        for i, descriptor in enumerate(self._items):
            if descriptor.name == name:
                del self._items[i]
                return True
        return False

    def move_to_top(self, name: str) -> bool:
        """Move the named entry to the top so it pops next."""
        for i, descriptor in enumerate(self._items):
            if descriptor.name == name:
                self._items.append(self._items.pop(i))
                return True
        return False

    def names(self) -> List[str]:
        return [d.name for d in self._items]

    def copy(self) -> "ShapeStack":
        return ShapeStack(self._items)

    def clear(self) -> None:
        self._items.clear()


@dataclass
class Pool:
    """
    One pick set and its partitions.

    remaining + in_progress + completed always reconstructs pick_set.
    """
    pick_set: Tuple[CandidateDescriptor, ...] = ()
    remaining: ShapeStack = field(default_factory=ShapeStack)
    in_progress: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)

    @classmethod
    def from_order(cls, ordered: Iterable[CandidateDescriptor]) -> "Pool":
        """Pool whose pops come out in reverse of ordered."""
        items = tuple(ordered)
        return cls(pick_set=items, remaining=ShapeStack(items))

    @property
    def size(self) -> int:
        return len(self.pick_set)

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.pick_set]

    @property
    def is_exhausted(self) -> bool:
        return not self.remaining

    def pop_next(self) -> Optional[CandidateDescriptor]:
        """
        Pop the top of remaining and mark it in progress.

        A shape still in progress was played without being marked; it moves
        to completed so in_progress never holds more than one name.
        """
        descriptor = self.remaining.pop()
        if descriptor is not None:
            for name in self.in_progress:
                if name not in self.completed:
                    self.completed.append(name)
            self.in_progress = [descriptor.name]
        return descriptor

    def push_extra(self, descriptor: CandidateDescriptor) -> None:
        """Add a descriptor that was not drawn; it becomes the next pop."""
        self.pick_set = self.pick_set + (descriptor,)
        self.remaining.push(descriptor)

    def discard(self, name: str) -> None:
        """Drop a shape from every partition and from the pick set."""
        self.pick_set = tuple(d for d in self.pick_set if d.name != name)
        self.remaining.remove(name)
        self.in_progress = [n for n in self.in_progress if n != name]
        self.completed = [n for n in self.completed if n != name]

    def mark_complete(self, name: str) -> Tuple[bool, bool]:
        """
        Move name from in progress to completed.

        Returns:
            (already_completed, removed_stale) diagnostics flags.
        """
        already = name in self.completed
        if name in self.in_progress:
            self.in_progress.remove(name)
        if not already:
            self.completed.append(name)
        stale = self.remaining.remove(name)
        return already, stale

    def partition_names(self) -> Tuple[List[str], List[str], List[str]]:
        return self.remaining.names(), list(self.in_progress), list(self.completed)

    def is_consistent(self) -> bool:
        """True if the partitions are disjoint and rebuild the pick set exactly."""
        remaining, in_progress, completed = self.partition_names()
        combined = remaining + in_progress + completed
        return len(combined) == len(set(combined)) and sorted(combined) == sorted(self.names)

    def copy(self) -> "Pool":
        return Pool(
            pick_set=self.pick_set,
            remaining=self.remaining.copy(),
            in_progress=list(self.in_progress),
            completed=list(self.completed)
        )


class PrewarmSlot:
    """
    Holds at most one pool built ahead of time for a specific level.

    store() overwrites any previous entry. consume() hands the pool over and
    clears the slot only when the level matches.
    """

    def __init__(self):
        self._level: Optional[int] = None
        self._pool: Optional[Pool] = None

    @property
    def level(self) -> Optional[int]:
        return self._level

    @property
    def pool(self) -> Optional[Pool]:
        return self._pool

    @property
    def is_empty(self) -> bool:
        return self._pool is None

    def store(self, level: int, pool: Pool) -> Optional[int]:
        """Cache pool for level. Returns the level of a discarded entry, if any."""
        discarded = self._level
        self._level = level
        self._pool = pool
        return discarded

    def matches(self, level: int) -> bool:
        return self._pool is not None and self._level == level

    def consume(self, level: int) -> Pool:
        """
        Take the cached pool for level.

        Raises:
            ConsumptionMismatchError: If the slot is empty or holds another level.
        """
        if not self.matches(level):
            raise ConsumptionMismatchError(self._level, level)
        pool = self._pool
        self.clear()
        return pool.copy()

    def clear(self) -> None:
        self._level = None
        self._pool = None
