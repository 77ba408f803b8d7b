"""
Persona Aggregator
Summarizes which groups (personas) each policy includes and excludes, with
resolved transitive member counts from the Group Resolver.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..model.policy import Policy
from ..model.results import GroupRef, PersonaSummary
from .base import BaseComponent
from .context import require_collection

logger = logging.getLogger("ca_impact_engine.engine.persona")


class PersonaAggregator(BaseComponent):
    name = "persona"
    description = "Included / excluded group coverage per policy"

    def summarize(self, policies: Iterable[Policy]) -> list[PersonaSummary]:
        """One summary per policy, in input order. Role and All targets carry no persona."""
        policies = require_collection(policies, "policies")
        summaries = self.map_ordered(self._summarize_one, policies)
        logger.info(f"[{self.name}] Summarized {len(summaries)} policies")
        return summaries

    def _summarize_one(self, policy: Policy) -> PersonaSummary:
        groups = policy.conditions.groups
        included = [self._ref(gid) for gid in groups.included]
        excluded = [self._ref(gid) for gid in groups.excluded]
        return PersonaSummary(
            policy_id=policy.id,
            policy_name=policy.display_name,
            state=policy.state.value,
            included_groups=tuple(included),
            excluded_groups=tuple(excluded),
            included_member_count=self._distinct(groups.included),
            excluded_member_count=self._distinct(groups.excluded),
        )

    def _ref(self, group_id: str) -> GroupRef:
        return GroupRef(
            group_id=group_id,
            display_name=self.resolver.display_name(group_id),
            member_count=self.resolver.resolve_member_count(group_id),
            resolved=self.resolver.has_group(group_id),
        )

    def _distinct(self, group_ids: tuple[str, ...]) -> int:
        users: set[str] = set()
        for gid in group_ids:
            users.update(self.resolver.resolve_members(gid))
        return len(users)
