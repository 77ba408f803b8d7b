import csv
import json
from pathlib import Path

import pytest

from ca_impact_engine.__main__ import main
from ca_impact_engine.engine import run_analysis
from ca_impact_engine.reporting import (
    export_csv,
    export_group_graph,
    export_json,
    export_markdown,
)
from ca_impact_engine.reporting.graph_export import to_mermaid

from test_snapshot_loader import write_sections


@pytest.fixture
def result(sample_snapshot):
    return run_analysis(sample_snapshot, run_id="run1")


def test_export_json(tmp_path: Path, result) -> None:
    path = export_json(result, tmp_path)
    assert path.name == "ca_impact_run1.json"

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["metadata"]["run_id"] == "run1"
    assert payload["summary"]["scenarios"] == 5
    assert len(payload["scenarios"]) == 5
    assert payload["impact_matrix"]["policies"] == ["p-block-legacy", "p-finance", "p-mfa"]
    assert payload["group_cycles"] == [["G-loop-a", "G-loop-b"]]
    assert payload["diagnostics"][0]["category"] == "structuralAnomaly"

    mfa = next(p for p in payload["policies"] if p["id"] == "p-mfa")
    assert mfa["conditions"]["groups"] == {"included": [], "excluded": ["G-breakglass"]}
    assert mfa["grant"]["control"] == "mfa"


def test_export_csv(tmp_path: Path, result) -> None:
    matrix, flags, scenarios = export_csv(result, tmp_path)

    with open(matrix, newline="", encoding="utf-8-sig") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == [
        "user_id", "display_name", "user_principal_name",
        "Block legacy auth", "Finance compliant device", "Require MFA for all users",
    ]
    bg = next(r for r in rows if r[0] == "u4")
    assert bg[3:] == ["included", "notApplicable", "excluded"]

    with open(flags, newline="", encoding="utf-8-sig") as handle:
        flag_rows = list(csv.DictReader(handle))
    cleo = next(r for r in flag_rows if r["user_principal_name"] == "cleo@contoso.com")
    assert cleo["Finance compliant device"] == "True"

    with open(scenarios, newline="", encoding="utf-8-sig") as handle:
        scenario_rows = list(csv.DictReader(handle))
    assert len(scenario_rows) == 5
    assert {r["kind"] for r in scenario_rows} == {"positive", "negative"}


def test_export_markdown(tmp_path: Path, result) -> None:
    path = export_markdown(result, tmp_path, tenant_name="Contoso")
    text = path.read_text(encoding="utf-8")

    assert text.startswith("# Conditional Access Impact Report")
    assert "**Tenant:** Contoso" in text
    assert "Require MFA for all users should not apply to excluded members of group Break Glass" in text
    assert "### Finance compliant device (enabled)" in text
    assert "G-loop-a → G-loop-b" in text


def test_export_group_graph(tmp_path: Path, result) -> None:
    json_path, mermaid_path = export_group_graph(result, tmp_path)

    graph = json.loads(json_path.read_text(encoding="utf-8"))
    assert {n["id"] for n in graph["nodes"]} == {
        "G-all-staff", "G-finance", "G-breakglass", "G-loop-a", "G-loop-b",
    }
    assert {"source": "G-all-staff", "target": "G-finance", "relation": "contains"} in graph["edges"]

    mermaid = mermaid_path.read_text(encoding="utf-8")
    assert "```mermaid" in mermaid
    assert "flowchart LR" in mermaid


def test_mermaid_escapes_labels(result) -> None:
    graph = result.group_graph.copy()
    graph.nodes["G-finance"]["display_name"] = 'R&D "core" <team>'
    text = to_mermaid(graph)
    assert 'R#amp;D #quot;core#quot; #lt;team#gt;' in text


def test_cli_end_to_end(tmp_path: Path, sample_sections: dict) -> None:
    write_sections(tmp_path / "snap", sample_sections)
    out = tmp_path / "out"

    code = main([
        "--input", str(tmp_path / "snap"),
        "--output-dir", str(out),
        "--include-report-only",
        "--workers", "2",
    ])

    assert code == 0
    assert len(list((out / "json").glob("ca_impact_*.json"))) == 1
    assert len(list((out / "csv").glob("*.csv"))) == 3
    assert len(list((out / "reports").glob("*.md"))) == 2


def test_cli_formats_and_config(tmp_path: Path, sample_sections: dict) -> None:
    write_sections(tmp_path / "snap", sample_sections)
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"simulation": {"max_users": 2}}), encoding="utf-8")
    out = tmp_path / "out"

    code = main([
        "-i", str(tmp_path / "snap"),
        "-c", str(config_path),
        "-o", str(out),
        "--formats", "json",
    ])

    assert code == 0
    assert not (out / "csv").exists()
    (path,) = (out / "json").glob("*.json")
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert len(payload["impact_matrix"]["rows"]) == 2


def test_cli_bad_input(tmp_path: Path) -> None:
    assert main(["--input", str(tmp_path / "missing")]) == 1
