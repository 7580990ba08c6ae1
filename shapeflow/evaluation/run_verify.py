"""
Verification Harness
====================

Runs shape plugins through the contract verifier and reports eligibility.

Usage:
    python -m shapeflow.evaluation.run_verify
    python -m shapeflow.evaluation.run_verify --plugin plugins/team_template
    python -m shapeflow.evaluation.run_verify --plugin my_shapes.py --name Blob
"""

from __future__ import annotations

import argparse
import importlib.util
import json
import sys
import time
from pathlib import Path
from typing import Iterable, List, Optional

from shapeflow.pool_core.catalog import (
    CandidateDescriptor,
    ShapeCatalog,
    SideActivityDescriptor,
    load_side_activities,
)
from shapeflow.pool_core.config_loader import PoolSettings, load_config
from shapeflow.pool_core.events import EventBus
from shapeflow.pool_core.logging_setup import LoggerConfig, setup_logging
from shapeflow.pool_core.verifier import ContractVerifier, VerificationSummary


def load_plugin(plugin_path: str, name: Optional[str] = None) -> CandidateDescriptor:
    """
    Load a shape plugin from a path.

    Args:
        plugin_path: Path to plugin directory (containing shape.py) or a .py file.
        name: Shape name. For direct plugins, also the class or factory to use.

    Returns:
        Descriptor for the plugin.
    """
    plugin_path = Path(plugin_path)

    if plugin_path.is_dir():
        plugin_file = plugin_path / "shape.py"
    else:
        plugin_file = plugin_path

    if not plugin_file.exists():
        raise FileNotFoundError(f"Plugin file not found: {plugin_file}")

    spec = importlib.util.spec_from_file_location("shape_plugin", plugin_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Failed to load plugin module from {plugin_file}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["shape_plugin"] = module
    spec.loader.exec_module(module)

    # Context plugins export meta + create; direct plugins export a factory
    if hasattr(module, "meta") and hasattr(module, "create"):
        meta = getattr(module, "meta")
        meta_id = meta.get("id") if isinstance(meta, dict) else getattr(meta, "id", None)
        return CandidateDescriptor.context(name or meta_id or plugin_file.stem, meta, getattr(module, "create"))

    if name and hasattr(module, name):
        return CandidateDescriptor.direct(name, getattr(module, name))

    if hasattr(module, "factory"):
        return CandidateDescriptor.direct(name or plugin_file.stem, getattr(module, "factory"))

    raise AttributeError(
        "Plugin module must export 'meta' and 'create', a 'factory' callable, "
        "or a class matching --name"
    )


def verify_plugin(
    descriptors: List[CandidateDescriptor],
    config: Optional[PoolSettings] = None,
    verbose: bool = True,
    side_activities: Iterable[SideActivityDescriptor] = ()
) -> VerificationSummary:
    """
    Verify descriptors and print a summary.

    Args:
        descriptors: Descriptors to verify.
        config: Pool configuration. Uses default if None.
        verbose: If True, print per-shape results.
        side_activities: Side activities to presence-check alongside.

    Returns:
        VerificationSummary with every report.
    """
    bus = EventBus()
    verifier = ContractVerifier(config, bus=bus, forward_events=False)

    start_time = time.time()
    summary = verifier.verify_registry(descriptors, side_activities)
    total_time = time.time() - start_time

    if verbose:
        for report in summary.reports:
            status = "OK" if report.ok else "EXCLUDED"
            print(f"  {report.name} ({report.format}): {status}")
            for reason in report.reasons:
                print(f"    error:   {reason}")
            for message in report.warning_messages:
                print(f"    warning: {message}")
        for report in summary.activity_reports:
            status = "OK" if report.ok else "EXCLUDED"
            print(f"  {report.name} (side activity): {status}")
            for reason in report.reasons:
                print(f"    error:   {reason}")
            for message in report.warning_messages:
                print(f"    warning: {message}")

        print()
        print("=" * 50)
        print("VERIFICATION SUMMARY")
        print("=" * 50)
        print(f"Shapes verified: {summary.total}")
        print(f"Eligible:        {summary.eligible_count}")
        print(f"Excluded:        {len(summary.ineligible)}")
        print(f"With warnings:   {len(summary.warnings)}")
        if summary.duplicates:
            print(f"Duplicates:      {', '.join(summary.duplicates)}")
        if summary.activities_total:
            print(f"Side activities: {summary.activities_eligible_count}/{summary.activities_total} ok")
        print(f"Total time:      {total_time:.2f}s")
        print("=" * 50)

    return summary


def save_results(summary: VerificationSummary, source: str, output_path: str) -> None:
    """Save verification results to JSON."""
    data = {
        "source": source,
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        **summary.to_dict()
    }

    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)

    print(f"Results saved to {output_path}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Verify shape plugins")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to pool_config.yaml (uses default if not specified)"
    )
    parser.add_argument(
        "--plugin",
        type=str,
        default=None,
        help="Path to plugin directory or .py file (verifies the registry if omitted)"
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Shape name; for direct plugins, the class to load"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path to save results JSON"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce output verbosity"
    )

    args = parser.parse_args(argv)

    if not args.quiet:
        setup_logging(LoggerConfig())

    config = load_config(args.config)

    if args.plugin:
        print(f"Loading plugin from {args.plugin}...")
        try:
            descriptors = [load_plugin(args.plugin, args.name)]
        except (OSError, ImportError, AttributeError) as e:
            print(f"Error loading plugin: {e}")
            return 1
        source = args.plugin
        side_activities = ()
    else:
        descriptors = list(ShapeCatalog.from_config(config))
        side_activities = load_side_activities(config)
        source = "registry"

    summary = verify_plugin(
        descriptors, config=config, verbose=not args.quiet, side_activities=side_activities
    )

    if args.output:
        save_results(summary, source, args.output)

    return 0 if not summary.ineligible else 2


if __name__ == "__main__":
    sys.exit(main())
