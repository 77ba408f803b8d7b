"""
Run context — the explicit, run-scoped state shared by engine components.

A RunContext is created at the start of a run and discarded at its end.
It carries the Group Resolver (the only owner of the membership cache),
the diagnostics sink, and the simulation settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import SimulationConfig
from ..model.directory import DirectoryRole, GroupNode
from ..model.results import Diagnostics
from .group_resolver import GroupResolver


class EngineInputError(ValueError):
    """Raised when a whole input collection is empty or malformed."""


@dataclass
class RunContext:
    resolver: GroupResolver
    diagnostics: Diagnostics
    settings: SimulationConfig = field(default_factory=SimulationConfig)

    @classmethod
    def create(
        cls,
        groups: Iterable[GroupNode] = (),
        roles: Iterable[DirectoryRole] = (),
        settings: Optional[SimulationConfig] = None,
    ) -> "RunContext":
        diagnostics = Diagnostics()
        resolver = GroupResolver(groups, roles, diagnostics=diagnostics)
        return cls(
            resolver=resolver,
            diagnostics=diagnostics,
            settings=settings or SimulationConfig(),
        )


def require_collection(items, name: str) -> list:
    """Fatal precondition: the collection must be a non-empty list-like of records."""
    if items is None or isinstance(items, (str, bytes, dict)):
        raise EngineInputError(f"{name} must be a list, got {type(items).__name__}")
    items = list(items)
    if not items:
        raise EngineInputError(f"{name} is empty; nothing to analyze")
    return items
