"""
Base engine component — shared contract for the simulation, impact matrix and
persona components. Provides failure isolation per record and optional
order-preserving parallel evaluation.
"""

from __future__ import annotations

import logging
from abc import ABC
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional, TypeVar

from ..model.results import DiagnosticCategory
from .context import RunContext

logger = logging.getLogger("ca_impact_engine.engine")

T = TypeVar("T")
R = TypeVar("R")


class BaseComponent(ABC):
    """
    Abstract base class for engine components.
    Components read the run context and never hold state across calls
    beyond what the context's resolver caches.
    """

    name: str = "base"
    description: str = "Base component"

    def __init__(self, context: Optional[RunContext] = None):
        self.context = context if context is not None else RunContext.create()

    @property
    def resolver(self):
        return self.context.resolver

    @property
    def diagnostics(self):
        return self.context.diagnostics

    @property
    def settings(self):
        return self.context.settings

    def isolate(
        self,
        subject_id: str,
        func: Callable[..., R],
        *args: Any,
        fallback: Any = None,
        category: DiagnosticCategory = DiagnosticCategory.INVALID_POLICY,
    ) -> R:
        """Run func for one record; a failure is recorded and replaced by fallback."""
        try:
            return func(*args)
        except Exception as e:
            logger.exception(f"[{self.name}] Evaluation failed for {subject_id}: {e}")
            self.diagnostics.add(
                category,
                subject_id,
                f"{self.name} failed: {type(e).__name__}: {e}",
            )
            return fallback

    def map_ordered(self, func: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Apply func to items, in parallel when configured, keeping input order."""
        items = list(items)
        workers = max(1, int(self.settings.workers or 1))
        if workers == 1 or len(items) < 2:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # Executor.map yields in submission order regardless of completion order
            return list(executor.map(func, items))
