"""
CSV exporter — Tabular impact matrix and scenario listings.
"""

from __future__ import annotations

import csv
from pathlib import Path

from ..engine.runner import AnalysisResult


def export_csv(result: AnalysisResult, output_dir: Path) -> list[Path]:
    """
    Write the impact matrix (tri-state and flattened) and the scenario list.

    Returns:
        List of created CSV file paths.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    created = []

    policy_names = [p.display_name for p in result.matrix_policies]
    policy_ids = [p.id for p in result.matrix_policies]

    # --- Impact matrix, tri-state ---
    matrix_path = output_dir / f"impact_matrix_{result.run_id}.csv"
    with open(matrix_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.writer(fh)
        writer.writerow(["user_id", "display_name", "user_principal_name", *policy_names])
        for row in result.impact_rows:
            statuses = []
            for pid in policy_ids:
                cell = row.cell(pid)
                statuses.append(cell.status.value if cell else "")
            writer.writerow([row.user_id, row.display_name, row.user_principal_name, *statuses])
    created.append(matrix_path)

    # --- Impact matrix, flattened to included True/False ---
    flags_path = output_dir / f"impact_matrix_flags_{result.run_id}.csv"
    with open(flags_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.writer(fh)
        writer.writerow(["user_principal_name", *policy_names])
        for row in result.impact_rows:
            flags = row.as_flags()
            writer.writerow([
                row.user_principal_name or row.user_id,
                *[flags.get(pid, False) for pid in policy_ids],
            ])
    created.append(flags_path)

    # --- Scenarios ---
    scenarios_path = output_dir / f"scenarios_{result.run_id}.csv"
    SCENARIO_FIELDS = [
        "policy_id", "policy_name", "kind", "title", "expected_control",
        "inverted", "expect_applies", "negated_axis",
        "identity", "identity_type", "application", "platform", "location",
        "client_app_type", "user_risk", "sign_in_risk", "user_action",
    ]
    with open(scenarios_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(fh, fieldnames=SCENARIO_FIELDS)
        writer.writeheader()
        for s in result.scenarios:
            writer.writerow({
                "policy_id": s.policy_id,
                "policy_name": s.policy_name,
                "kind": s.kind.value,
                "title": s.title,
                "expected_control": s.expected_control,
                "inverted": s.inverted,
                "expect_applies": s.expect_applies,
                "negated_axis": s.negated_axis or "",
                **s.conditions.to_dict(),
            })
    created.append(scenarios_path)

    return created
