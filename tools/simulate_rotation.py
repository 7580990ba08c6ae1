"""
Rotation Simulator
==================

Plays the rotation flow headlessly and prints what the player would see:
the pool drawn for each level, side-activity handovers, infinite cycles and
how often each shape came up.

Usage:
    python -m tools.simulate_rotation [--turns N] [--seed S] [--favorite NAME ...]
"""

from __future__ import annotations

import argparse
import sys
from collections import Counter
from typing import List, Optional

import numpy as np

from shapeflow.pool_core.catalog import load_side_activities
from shapeflow.pool_core.config_loader import load_config
from shapeflow.pool_core.events import EventBus
from shapeflow.pool_core.modes import ModeRegistry
from shapeflow.pool_core.profile import PlayerProfile
from shapeflow.pool_core.scheduler import PoolScheduler


def simulate(
    turns: int = 60,
    seed: Optional[int] = 42,
    favorites: Optional[List[str]] = None,
    verbose: bool = True
) -> dict:
    """
    Run the rotation flow for a number of turns.

    Every shape is completed as soon as it appears, and each side activity
    ends immediately.

    Args:
        turns: Number of shapes to play.
        seed: Random seed.
        favorites: Shapes to mark as favorites.
        verbose: If True, print the event log.

    Returns:
        Dict with per-shape counts and the level/cycle reached.
    """
    config = load_config()
    profile = PlayerProfile.from_config(config)
    for name in favorites or []:
        profile.toggle_favorite(name)

    bus = EventBus()
    log: List[str] = []
    for event in ("pool:built", "pool:exhausted", "cycle:increment", "mini:launch", "level:advance"):
        bus.on(event, lambda payload, event=event: log.append(f"{event} {payload}"))

    scheduler = PoolScheduler(
        config=config,
        unlock_provider=profile.unlock_provider(),
        bias_provider=profile.bias_provider(),
        bus=bus,
        seed=seed
    )
    modes = ModeRegistry(scheduler, bus, activities=load_side_activities(config))

    counts: Counter = Counter()
    unit = modes.start_level(1)
    for _ in range(turns):
        if unit is None:
            unit = modes.on_side_activity_completed()
        counts[scheduler.current_name] += 1
        unit.force_complete()
        unit = modes.on_shape_completed()

    if verbose:
        for line in log:
            print(f"  {line}")
        print()
        print("=" * 50)
        print("ROTATION SUMMARY")
        print("=" * 50)
        print(f"Turns played:    {turns}")
        print(f"Level reached:   {scheduler.level}")
        print(f"Infinite cycles: {scheduler.infinite_cycle_index}")
        values = np.array(list(counts.values()), dtype=float)
        if values.size:
            print(f"Mean per shape:  {values.mean():.2f} (std {values.std():.2f})")
        for name, count in counts.most_common():
            print(f"  {name:<12} {count:>4}")
        print("=" * 50)

    return {
        "counts": dict(counts),
        "level": scheduler.level,
        "cycles": scheduler.infinite_cycle_index,
    }


def main():
    parser = argparse.ArgumentParser(description="Simulate the shape rotation")
    parser.add_argument("--turns", type=int, default=60, help="Shapes to play")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--favorite", type=str, nargs="*", default=[], help="Favorite shapes")

    args = parser.parse_args()

    simulate(turns=args.turns, seed=args.seed, favorites=args.favorite)

    return 0


if __name__ == "__main__":
    sys.exit(main())
