"""
Markdown report — scenarios, persona coverage and diagnostics rendered via Jinja2.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..engine.runner import AnalysisResult

TEMPLATE_DIR = Path(__file__).parent / "templates"

_KIND_ICONS = {
    "positive": "✅",
    "negative": "🚫",
}


def export_markdown(
    result: AnalysisResult,
    output_dir: Path,
    tenant_name: str = "Unknown Tenant",
) -> Path:
    """Generate the Markdown analysis report."""
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"ca_impact_report_{result.run_id}.md"

    with open(filepath, "w", encoding="utf-8") as fh:
        fh.write(render_markdown(result, tenant_name))

    return filepath


def render_markdown(result: AnalysisResult, tenant_name: str = "Unknown Tenant") -> str:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape([]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["md"] = _escape_cell
    template = env.get_template("ca_impact_report.md.j2")
    return template.render(
        run_id=result.run_id,
        tenant_name=tenant_name,
        generated_utc=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        summary=result.summary(),
        scenarios=result.scenarios,
        personas=result.personas,
        cycles=result.cycles,
        diagnostics=list(result.diagnostics),
        kind_icons=_KIND_ICONS,
    )


def _escape_cell(value) -> str:
    """Keep table cells on one row."""
    return str(value).replace("|", "\\|").replace("\n", " ")
