"""
Performance Benchmark
=====================

Measures verification, pool build and turn throughput for performance tuning.

Usage:
    python -m tools.benchmark_speed [--steps S] [--quick]
"""

from __future__ import annotations

import argparse
import sys
import time

import numpy as np

from shapeflow.pool_core.catalog import ShapeCatalog
from shapeflow.pool_core.config_loader import load_config
from shapeflow.pool_core.scheduler import PoolScheduler
from shapeflow.pool_core.verifier import ContractVerifier


def _timings(samples: list) -> dict:
    arr = np.asarray(samples) * 1000
    return {
        "mean_ms": float(np.mean(arr)),
        "p50_ms": float(np.median(arr)),
        "p95_ms": float(np.percentile(arr, 95)),
        "max_ms": float(np.max(arr)),
    }


def benchmark_verification(repeats: int = 5) -> dict:
    """
    Benchmark a full registry verification pass.

    Args:
        repeats: Number of passes.

    Returns:
        Dict with timing results.
    """
    config = load_config()
    catalog = ShapeCatalog.from_config(config)
    samples = []

    for _ in range(repeats):
        verifier = ContractVerifier(config, forward_events=False)
        start = time.perf_counter()
        verifier.verify_registry(catalog)
        samples.append(time.perf_counter() - start)

    return {"mode": "verify_registry", "iterations": repeats, "shapes": len(catalog), **_timings(samples)}


def benchmark_pool_build(num_steps: int = 500, seed: int = 42) -> dict:
    """
    Benchmark building fresh pools versus consuming prewarmed ones.

    Args:
        num_steps: Number of builds of each kind.
        seed: Random seed.

    Returns:
        Dict with timing results for both paths.
    """
    scheduler = PoolScheduler(seed=seed)
    scheduler.verifier.verify_registry(scheduler.eligible_candidates(gated=False))

    build_samples = []
    for i in range(num_steps):
        level = 1 + i % 3
        start = time.perf_counter()
        scheduler.build_pool(level)
        build_samples.append(time.perf_counter() - start)

    consume_samples = []
    for i in range(num_steps):
        level = 1 + i % 3
        scheduler.prewarm(level)
        start = time.perf_counter()
        scheduler.reset_sequence(level)
        consume_samples.append(time.perf_counter() - start)
        scheduler.reset_pick_set()

    return {
        "mode": "pool_build",
        "iterations": num_steps,
        "build": _timings(build_samples),
        "prewarm_consume": _timings(consume_samples),
    }


def benchmark_turns(num_steps: int = 500, seed: int = 42) -> dict:
    """
    Benchmark complete turns: pop, force complete, mark complete.

    Args:
        num_steps: Number of turns.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    scheduler = PoolScheduler(seed=seed)
    scheduler.reset_sequence(scheduler.infinite_level)

    start = time.perf_counter()
    for _ in range(num_steps):
        unit = scheduler.current_unit
        unit.force_complete()
        scheduler.mark_current_complete()
        scheduler.next_unit()
    elapsed = time.perf_counter() - start

    return {
        "mode": "turns",
        "iterations": num_steps,
        "cycles": scheduler.infinite_cycle_index,
        "elapsed_seconds": elapsed,
        "turns_per_second": num_steps / elapsed,
        "ms_per_turn": (elapsed * 1000) / num_steps,
    }


def run_all_benchmarks(steps: int = 500) -> list:
    """Run comprehensive benchmarks."""
    results = []

    print("=" * 60)
    print("SHAPE POOL PERFORMANCE BENCHMARK")
    print("=" * 60)
    print()

    print("Benchmarking registry verification...")
    result = benchmark_verification()
    results.append(result)
    print(f"  Shapes:   {result['shapes']}")
    print(f"  mean ms:  {result['mean_ms']:.3f}")
    print(f"  p95 ms:   {result['p95_ms']:.3f}")
    print()

    print("Benchmarking pool build vs prewarm consume...")
    result = benchmark_pool_build(num_steps=steps)
    results.append(result)
    print(f"  build mean ms:   {result['build']['mean_ms']:.3f}")
    print(f"  consume mean ms: {result['prewarm_consume']['mean_ms']:.3f}")
    print()

    print("Benchmarking turns (infinite level)...")
    result = benchmark_turns(num_steps=steps)
    results.append(result)
    print(f"  Turns/sec: {result['turns_per_second']:.1f}")
    print(f"  ms/turn:   {result['ms_per_turn']:.3f}")
    print(f"  Cycles:    {result['cycles']}")
    print()

    return results


def main():
    parser = argparse.ArgumentParser(description="Benchmark shape pool performance")
    parser.add_argument("--steps", type=int, default=500, help="Iterations per benchmark")
    parser.add_argument("--quick", action="store_true", help="Quick benchmark (fewer steps)")

    args = parser.parse_args()

    steps = 100 if args.quick else args.steps

    run_all_benchmarks(steps=steps)

    return 0


if __name__ == "__main__":
    sys.exit(main())
