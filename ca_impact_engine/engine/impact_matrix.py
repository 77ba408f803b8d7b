"""
Impact Matrix Builder
Cross-products a sample of directory users against policies and labels each
(user, policy) cell included, excluded or not-applicable. Target membership is
resolved once per policy through the Group Resolver, so each cell is a set
lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from ..config import ALL_TARGET, GUESTS_TARGET, SPECIAL_USER_VALUES
from ..model.directory import DirectoryUser
from ..model.policy import Policy
from ..model.results import DiagnosticCategory, ImpactCell, ImpactRow, ImpactStatus
from .base import BaseComponent
from .context import EngineInputError, require_collection

logger = logging.getLogger("ca_impact_engine.engine.impact_matrix")


@dataclass
class _TargetSide:
    """Resolved include or exclude side of one policy's identity conditions."""
    all_users: bool = False
    guests: bool = False
    users: frozenset[str] = frozenset()
    groups: list[tuple[str, frozenset[str]]] = field(default_factory=list)
    roles: list[tuple[str, frozenset[str]]] = field(default_factory=list)
    union: frozenset[str] = frozenset()   # users reachable via groups or roles


@dataclass
class _PolicyTargets:
    policy_id: str
    valid: bool = True
    reason: str = ""
    include: _TargetSide = field(default_factory=_TargetSide)
    exclude: _TargetSide = field(default_factory=_TargetSide)


class ImpactMatrixBuilder(BaseComponent):
    name = "impact_matrix"
    description = "Per-user, per-policy inclusion / exclusion matrix"

    def build(
        self,
        policies: Iterable[Policy],
        user_sample: Iterable[Union[DirectoryUser, dict[str, Any]]],
        max_users: Optional[int] = None,
    ) -> list[ImpactRow]:
        """
        Evaluate every (user, policy) pair and return rows in user-sample order.
        max_users of 0 or None means no bound. Nothing is emitted until the
        full row list is complete.
        """
        policies = require_collection(policies, "policies")
        users = require_collection(user_sample, "user sample")

        if max_users is None:
            max_users = self.settings.max_users
        if max_users and max_users < 0:
            raise EngineInputError(f"max_users must be >= 0, got {max_users}")
        if max_users:
            users = users[:max_users]

        valid_users = []
        for i, record in enumerate(users):
            u = _as_user(record)
            if u is None:
                self.diagnostics.add(
                    DiagnosticCategory.INPUT_GAP,
                    f"user[{i}]",
                    f"Unsupported user record type {type(record).__name__} excluded from impact matrix",
                )
                continue
            if not u.id:
                self.diagnostics.add(
                    DiagnosticCategory.INPUT_GAP,
                    u.display_name or "<unknown>",
                    "User record without id excluded from impact matrix",
                )
                continue
            valid_users.append(u)

        targets = [self._resolve_targets(p) for p in policies]
        rows = self.map_ordered(lambda user: self._row(user, targets), valid_users)

        logger.info(
            f"[{self.name}] Built {len(rows)} rows x {len(targets)} policies"
        )
        return rows

    # ── Per-policy target resolution ────────────────────────────────────────

    def _resolve_targets(self, policy: Policy) -> _PolicyTargets:
        if not policy.is_valid:
            self.diagnostics.add(
                DiagnosticCategory.INVALID_POLICY,
                policy.id or policy.display_name,
                f"Impact cells for {policy.display_name!r} marked not-applicable: "
                f"{'; '.join(policy.shape_errors)}",
            )
            return _PolicyTargets(
                policy_id=policy.id,
                valid=False,
                reason=f"invalid policy: {'; '.join(policy.shape_errors)}",
            )

        fallback = _PolicyTargets(
            policy_id=policy.id, valid=False, reason="policy could not be evaluated",
        )
        return self.isolate(policy.id, self._targets_for, policy, fallback=fallback)

    def _targets_for(self, policy: Policy) -> _PolicyTargets:
        c = policy.conditions
        transitive = self.settings.transitive_inclusion
        include = self._side(
            c.users.included, c.groups.included, c.roles.included,
            transitive_groups=transitive,
        )
        exclude = self._side(
            c.users.excluded, c.groups.excluded, c.roles.excluded,
            transitive_groups=True,
        )
        return _PolicyTargets(policy_id=policy.id, include=include, exclude=exclude)

    def _side(
        self,
        users: tuple[str, ...],
        groups: tuple[str, ...],
        roles: tuple[str, ...],
        transitive_groups: bool,
    ) -> _TargetSide:
        side = _TargetSide(
            all_users=ALL_TARGET in users,
            guests=GUESTS_TARGET in users,
            users=frozenset(u for u in users if u not in SPECIAL_USER_VALUES),
        )
        union: set[str] = set()
        for gid in groups:
            if transitive_groups:
                members = self.resolver.resolve_members(gid)
            else:
                members = self.resolver.direct_members(gid)
            side.groups.append((gid, members))
            union.update(members)
        for rid in roles:
            members = self.resolver.resolve_role_members(rid)
            side.roles.append((rid, members))
            union.update(members)
        side.union = frozenset(union)
        return side

    # ── Per-cell evaluation ─────────────────────────────────────────────────

    def _row(self, user: DirectoryUser, targets: list[_PolicyTargets]) -> ImpactRow:
        return ImpactRow(
            user_id=user.id,
            display_name=user.display_name,
            user_principal_name=user.user_principal_name,
            cells=tuple(self._cell(user, t) for t in targets),
        )

    def _cell(self, user: DirectoryUser, t: _PolicyTargets) -> ImpactCell:
        if not t.valid:
            return ImpactCell(t.policy_id, ImpactStatus.NOT_APPLICABLE, t.reason)

        excluded_by = self._match(user, t.exclude)
        if excluded_by:
            return ImpactCell(t.policy_id, ImpactStatus.EXCLUDED, f"excluded {excluded_by}")

        included_by = self._match(user, t.include)
        if included_by:
            return ImpactCell(t.policy_id, ImpactStatus.INCLUDED, f"included {included_by}")

        return ImpactCell(t.policy_id, ImpactStatus.NOT_APPLICABLE, "not targeted by policy")

    def _match(self, user: DirectoryUser, side: _TargetSide) -> str:
        """Describe how the user matches one side, or return an empty string."""
        if user.id in side.users:
            return "as named user"
        if side.guests and user.is_guest:
            return "as guest or external user"
        if user.id in side.union:
            for gid, members in side.groups:
                if user.id in members:
                    return f"via group {self.resolver.display_name(gid)}"
            for rid, members in side.roles:
                if user.id in members:
                    return f"via role {self.resolver.role_display_name(rid)}"
        if side.all_users:
            return "via All users"
        return ""


def _as_user(record: Any) -> Optional[DirectoryUser]:
    if isinstance(record, DirectoryUser):
        return record
    if isinstance(record, dict):
        return DirectoryUser.from_graph(record)
    return None
