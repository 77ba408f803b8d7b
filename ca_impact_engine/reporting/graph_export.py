"""
Group graph exporter — node/edge JSON and a Mermaid flowchart of group nesting.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import networkx as nx

from ..engine.runner import AnalysisResult


def export_group_graph(result: AnalysisResult, output_dir: Path) -> list[Path]:
    """
    Write the resolved group nesting graph as JSON and as Markdown with Mermaid.

    Returns:
        List of created file paths.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    graph = result.group_graph

    json_path = output_dir / f"group_graph_{result.run_id}.json"
    with open(json_path, "w", encoding="utf-8") as fh:
        json.dump(graph_to_dict(graph, result.cycles), fh, indent=2, ensure_ascii=False)

    mermaid_path = output_dir / f"group_graph_{result.run_id}.md"
    mermaid_path.write_text(
        "# Group Nesting\n\n```mermaid\n" + to_mermaid(graph) + "```\n",
        encoding="utf-8",
    )

    return [json_path, mermaid_path]


def graph_to_dict(graph: nx.DiGraph, cycles: list[list[str]] = ()) -> dict:
    return {
        "nodes": [
            {"id": node_id, **attrs}
            for node_id, attrs in sorted(graph.nodes(data=True))
        ],
        "edges": [
            {"source": src, "target": dst, **attrs}
            for src, dst, attrs in sorted(graph.edges(data=True))
        ],
        "cycles": [list(c) for c in cycles],
    }


def to_mermaid(graph: nx.DiGraph) -> str:
    """Render groups as labelled nodes; unresolved references use a dashed style."""
    ids = {node_id: f"n{i}" for i, node_id in enumerate(sorted(graph.nodes))}
    lines = ["flowchart LR"]

    for node_id in sorted(graph.nodes):
        attrs = graph.nodes[node_id]
        label = _mm_text(f"{attrs.get('display_name', node_id)} ({attrs.get('member_count', 0)})")
        lines.append(f'    {ids[node_id]}["{label}"]')

    for src, dst in sorted(graph.edges):
        lines.append(f"    {ids[src]} --> {ids[dst]}")

    unresolved = [ids[n] for n, a in sorted(graph.nodes(data=True)) if a.get("kind") == "unresolved"]
    if unresolved:
        lines.append("    classDef unresolved stroke-dasharray: 5 5")
        lines.append(f"    class {','.join(unresolved)} unresolved")

    return "\n".join(lines) + "\n"


def _mm_text(text: str) -> str:
    normalized = re.sub(r"\s+", " ", str(text)).strip()
    return (
        normalized.replace("&", "#amp;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
        .replace('"', "#quot;")
    )
