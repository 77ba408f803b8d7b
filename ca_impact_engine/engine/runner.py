"""
Run orchestration — wires the engine components over one directory snapshot.

A run creates its own RunContext, so concurrent runs never share the
membership cache.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import networkx as nx

from ..config import SimulationConfig
from ..model.directory import DirectorySnapshot
from ..model.policy import Policy, PolicyState
from ..model.results import Diagnostics, ImpactRow, PersonaSummary, Scenario
from .context import RunContext, require_collection
from .impact_matrix import ImpactMatrixBuilder
from .persona import PersonaAggregator
from .simulation import SimulationGenerator

logger = logging.getLogger("ca_impact_engine.engine.runner")


@dataclass
class AnalysisResult:
    """Everything a run produces, ready for the reporting layer."""
    run_id: str
    policies: list[Policy] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)
    impact_rows: list[ImpactRow] = field(default_factory=list)
    matrix_policies: list[Policy] = field(default_factory=list)
    personas: list[PersonaSummary] = field(default_factory=list)
    group_graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    cycles: list[list[str]] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    resolver_stats: dict = field(default_factory=dict)

    def summary(self) -> dict:
        states = {s.value: 0 for s in PolicyState}
        for p in self.policies:
            states[p.state.value] += 1
        return {
            "run_id": self.run_id,
            "policies": len(self.policies),
            "policy_states": states,
            "scenarios": len(self.scenarios),
            "impact_rows": len(self.impact_rows),
            "personas": len(self.personas),
            "groups": self.group_graph.number_of_nodes(),
            "nesting_edges": self.group_graph.number_of_edges(),
            "cycles": len(self.cycles),
            "diagnostics": len(self.diagnostics),
        }


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]


def sort_policies(policies: list[Policy]) -> list[Policy]:
    """Stable display-name ordering used for every component's output."""
    return sorted(policies, key=lambda p: (p.display_name.lower(), p.id))


def run_analysis(
    snapshot: DirectorySnapshot,
    settings: Optional[SimulationConfig] = None,
    run_id: str = "",
) -> AnalysisResult:
    """
    Run simulation, impact matrix and persona aggregation over a snapshot.
    Raises EngineInputError only when the policy collection itself is empty
    or malformed; everything else is reported through diagnostics.
    """
    settings = settings or SimulationConfig()
    policies = sort_policies(require_collection(snapshot.policies, "policies"))
    context = RunContext.create(snapshot.groups, snapshot.roles, settings)
    result = AnalysisResult(
        run_id=run_id or new_run_id(),
        policies=policies,
        diagnostics=context.diagnostics,
    )

    result.cycles = context.resolver.report_cycles()
    if result.cycles:
        logger.info(f"Detected {len(result.cycles)} nesting cycle(s)")

    result.scenarios = SimulationGenerator(context).generate(policies)

    in_scope = [
        p for p in policies
        if p.state == PolicyState.ENABLED
        or (p.state == PolicyState.REPORT_ONLY and settings.include_report_only)
    ]
    result.matrix_policies = in_scope
    if snapshot.users and in_scope:
        result.impact_rows = ImpactMatrixBuilder(context).build(
            in_scope, snapshot.users, settings.max_users,
        )
    elif not snapshot.users:
        logger.info("No users supplied; impact matrix skipped")
    else:
        logger.info("No in-scope policies; impact matrix skipped")

    result.personas = PersonaAggregator(context).summarize(policies)
    result.group_graph = context.resolver.build_graph()
    result.resolver_stats = context.resolver.get_stats()

    logger.info(f"Run {result.run_id} complete: {result.summary()}")
    return result
