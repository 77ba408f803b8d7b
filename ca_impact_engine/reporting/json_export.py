"""
JSON exporter — Produces the full machine-readable output of an analysis run.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from .. import __version__
from ..engine.runner import AnalysisResult
from ..engine.simulation import describe_conditions
from ..model.policy import Policy


def export_json(result: AnalysisResult, output_dir: Path) -> Path:
    """
    Write scenarios, impact matrix, personas and diagnostics to one JSON file.

    Returns:
        Path to the created JSON file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": {
            "engine": "Conditional Access Impact Engine",
            "version": __version__,
            "run_id": result.run_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
        },
        "summary": result.summary(),
        "policies": [_policy_to_dict(p) for p in result.policies],
        "scenarios": [s.to_dict() for s in result.scenarios],
        "impact_matrix": {
            "policies": [p.id for p in result.matrix_policies],
            "rows": [r.to_dict() for r in result.impact_rows],
        },
        "personas": [p.to_dict() for p in result.personas],
        "group_cycles": result.cycles,
        "resolver": result.resolver_stats,
        "diagnostics": result.diagnostics.to_list(),
    }

    filepath = output_dir / f"ca_impact_{result.run_id}.json"
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return filepath


def _policy_to_dict(policy: Policy) -> dict:
    return {
        "id": policy.id,
        "display_name": policy.display_name,
        "state": policy.state.value,
        "conditions": describe_conditions(policy.conditions),
        "grant": {
            "control": policy.grant.control,
            "controls": list(policy.grant.controls),
            "operator": policy.grant.operator,
            "inverted": policy.grant.inverted,
        } if policy.grant else None,
        "shape_errors": list(policy.shape_errors),
    }
