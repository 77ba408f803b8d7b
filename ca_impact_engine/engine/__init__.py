from .context import EngineInputError, RunContext
from .group_resolver import GroupResolver
from .simulation import SimulationGenerator
from .impact_matrix import ImpactMatrixBuilder
from .persona import PersonaAggregator
from .runner import AnalysisResult, run_analysis

__all__ = [
    "EngineInputError",
    "RunContext",
    "GroupResolver",
    "SimulationGenerator",
    "ImpactMatrixBuilder",
    "PersonaAggregator",
    "AnalysisResult",
    "run_analysis",
]
