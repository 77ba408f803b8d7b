"""
Configuration module for the Conditional Access Impact Engine.
Defines tunable simulation parameters, well-known policy values, and output settings.
"""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from pathlib import Path
from datetime import datetime, timezone


# ─── Well-known Policy Values ───────────────────────────────────────────────

ALL_TARGET = "All"                          # Wildcard on any condition axis
NONE_TARGET = "None"                        # includeUsers=None targets nobody
GUESTS_TARGET = "GuestsOrExternalUsers"     # Special user value for B2B / guests
ANY_VALUE = "any"                           # Scenario sentinel for unconstrained axes

SPECIAL_USER_VALUES = frozenset({ALL_TARGET, NONE_TARGET, GUESTS_TARGET})

# Graph reports report-only state with this literal
GRAPH_REPORT_ONLY_STATE = "enabledForReportingButNotEnforced"

# Grant control precedence when a policy lists more than one control
CONTROL_PRIORITY = [
    "block",
    "mfa",
    "compliantDevice",
    "domainJoinedDevice",
    "approvedApplication",
    "compliantApplication",
    "passwordChange",
]

# Graph directory object types used for member edges
ODATA_USER = "#microsoft.graph.user"
ODATA_GROUP = "#microsoft.graph.group"


# ─── Simulation Settings ────────────────────────────────────────────────────

@dataclass
class SimulationConfig:
    """Controls for the simulation and impact analysis run."""
    include_report_only: bool = False     # Treat report-only policies as in scope
    max_users: int = 0                    # 0 = no bound on impact matrix rows
    workers: int = 1                      # >1 enables thread-pool evaluation
    transitive_inclusion: bool = False    # Expand nested groups on the include side


# ─── Output Configuration ───────────────────────────────────────────────────

@dataclass
class OutputConfig:
    """Output directory and format settings."""
    base_dir: str = ""
    timestamp: str = ""
    formats: list[str] = field(default_factory=lambda: [
        "json", "csv", "markdown", "graph"
    ])

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        if not self.base_dir:
            self.base_dir = os.path.join(
                os.getcwd(),
                f"ca_impact_{self.timestamp}"
            )

    @property
    def run_dir(self) -> Path:
        return Path(self.base_dir)

    @property
    def json_dir(self) -> Path:
        return self.run_dir / "json"

    @property
    def csv_dir(self) -> Path:
        return self.run_dir / "csv"

    @property
    def reports_dir(self) -> Path:
        return self.run_dir / "reports"

    def create_directories(self):
        for d in [self.json_dir, self.csv_dir, self.reports_dir]:
            d.mkdir(parents=True, exist_ok=True)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for the entire engine."""
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "simulation" in data:
            for k, v in data["simulation"].items():
                if hasattr(config.simulation, k):
                    setattr(config.simulation, k, v)
        if "output" in data:
            for k, v in data["output"].items():
                if hasattr(config.output, k):
                    setattr(config.output, k, v)
        config.verbose = data.get("verbose", False)
        return config
