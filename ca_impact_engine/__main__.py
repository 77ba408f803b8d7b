"""
Conditional Access Impact Engine — Main Orchestrator

Usage:
    python -m ca_impact_engine --input ./snapshot                 # directory of JSON files
    python -m ca_impact_engine --input tenant.json --include-report-only
    python -m ca_impact_engine --input ./snapshot --max-users 500 --workers 4
    python -m ca_impact_engine --input ./snapshot --config config.json --formats json csv

The snapshot holds already-fetched policies, groups, users and roles.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import EngineConfig
from .engine import EngineInputError, run_analysis
from .engine.runner import AnalysisResult, new_run_id
from .loaders import SnapshotError, load_snapshot
from .reporting import (
    export_json,
    export_csv,
    export_markdown,
    export_group_graph,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ca_impact_engine",
        description="Conditional Access policy simulation & impact analysis",
    )
    parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Snapshot directory (policies.json, groups.json, ...) or combined JSON file",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help="Output directory for reports (default: ./ca_impact_<timestamp>)",
    )
    parser.add_argument(
        "--tenant-name",
        type=str,
        default="Unknown Tenant",
        help="Display name for the tenant in reports",
    )
    parser.add_argument(
        "--include-report-only",
        action="store_true",
        default=None,
        help="Simulate report-only policies (scenarios are marked inverted)",
    )
    parser.add_argument(
        "--max-users", "-n",
        type=int,
        default=None,
        help="Limit the number of users in the impact matrix (0 = no limit)",
    )
    parser.add_argument(
        "--workers", "-p",
        type=int,
        default=None,
        help="Thread-pool size for matrix and persona evaluation",
    )
    parser.add_argument(
        "--transitive-inclusion",
        action="store_true",
        default=None,
        help="Expand nested groups when checking policy inclusion",
    )
    parser.add_argument(
        "--formats",
        nargs="+",
        choices=["json", "csv", "markdown", "graph"],
        default=None,
        help="Output formats to generate",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build engine configuration from a config file and CLI overrides."""
    if args.config and args.config.exists():
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    sim = config.simulation
    if args.include_report_only is not None:
        sim.include_report_only = args.include_report_only
    if args.max_users is not None:
        sim.max_users = args.max_users
    if args.workers is not None:
        sim.workers = args.workers
    if args.transitive_inclusion is not None:
        sim.transitive_inclusion = args.transitive_inclusion

    if args.output_dir:
        config.output.base_dir = str(args.output_dir)
    if args.formats:
        config.output.formats = list(args.formats)
    config.verbose = config.verbose or args.verbose
    return config


def generate_reports(
    result: AnalysisResult,
    config: EngineConfig,
    tenant_name: str,
) -> list[Path]:
    """Generate all requested report formats."""
    created = []
    formats = config.output.formats
    out = config.output

    if "json" in formats:
        path = export_json(result, out.json_dir)
        created.append(path)
        print(f"  📄 JSON:       {path}")

    if "csv" in formats:
        paths = export_csv(result, out.csv_dir)
        created.extend(paths)
        for p in paths:
            print(f"  📊 CSV:        {p}")

    if "markdown" in formats:
        path = export_markdown(result, out.reports_dir, tenant_name)
        created.append(path)
        print(f"  📝 Markdown:   {path}")

    if "graph" in formats:
        paths = export_group_graph(result, out.reports_dir)
        created.extend(paths)
        for p in paths:
            print(f"  🕸  Graph:      {p}")

    return created


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = build_config(args)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    print("=" * 70)
    print(f" Conditional Access Impact Engine v{__version__}")
    print("=" * 70)

    run_id = new_run_id()
    print(f"\n📋 Run ID:  {run_id}")
    print(f"📂 Output:  {config.output.run_dir.resolve()}")
    print(f"📥 Input:   {args.input}")

    # --- Load Phase ---
    print("\n" + "=" * 70)
    print(" PHASE 1: SNAPSHOT LOADING")
    print("=" * 70 + "\n")
    try:
        snapshot = load_snapshot(args.input)
    except SnapshotError as e:
        print(f"❌ {e}")
        return 1
    print(f"  ✅ {len(snapshot.policies)} policies, {len(snapshot.groups)} groups, "
          f"{len(snapshot.users)} users, {len(snapshot.roles)} roles")

    # --- Analysis Phase ---
    print("\n" + "=" * 70)
    print(" PHASE 2: SIMULATION & IMPACT ANALYSIS")
    print("=" * 70 + "\n")
    try:
        result = run_analysis(snapshot, config.simulation, run_id=run_id)
    except EngineInputError as e:
        print(f"❌ Cannot analyze snapshot: {e}")
        return 1

    summary = result.summary()
    print(f"  Scenarios:        {summary['scenarios']}")
    print(f"  Impact rows:      {summary['impact_rows']}")
    print(f"  Personas:         {summary['personas']}")
    print(f"  Nesting cycles:   {summary['cycles']}")
    print(f"  Diagnostics:      {summary['diagnostics']}")
    for d in result.diagnostics:
        print(f"      ⚠  [{d.category.value}] {d.subject_id}: {d.message}")

    # --- Reporting Phase ---
    print("\n" + "=" * 70)
    print(" PHASE 3: REPORT GENERATION")
    print("=" * 70 + "\n")
    created_files = generate_reports(result, config, args.tenant_name)

    print("\n" + "=" * 70)
    print(" RUN COMPLETE")
    print("=" * 70)
    print(f"\n  Files: {len(created_files)} reports generated")
    print(f"  Path:  {config.output.run_dir.resolve()}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
