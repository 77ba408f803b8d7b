"""
Simulation Generator
Derives concrete, assertable sign-in scenarios from Conditional Access policies:
one positive scenario per in-scope policy, plus one negative scenario for each
condition axis that carries both inclusions and exclusions.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from ..config import ANY_VALUE, ALL_TARGET, GUESTS_TARGET, SPECIAL_USER_VALUES
from ..model.policy import ConditionAxis, ConditionSet, Policy, PolicyState, SIGN_IN_AXES
from ..model.results import (
    DiagnosticCategory,
    IdentityType,
    Scenario,
    ScenarioKind,
    SignInConditions,
)
from .base import BaseComponent
from .context import require_collection

logger = logging.getLogger("ca_impact_engine.engine.simulation")

# SignInConditions field populated from each sign-in axis
_AXIS_FIELDS = {
    ConditionAxis.APPLICATIONS: "application",
    ConditionAxis.PLATFORMS: "platform",
    ConditionAxis.LOCATIONS: "location",
    ConditionAxis.CLIENT_APP_TYPES: "client_app_type",
    ConditionAxis.USER_RISK_LEVELS: "user_risk",
    ConditionAxis.SIGN_IN_RISK_LEVELS: "sign_in_risk",
    ConditionAxis.USER_ACTIONS: "user_action",
}

_AXIS_LABELS = {
    ConditionAxis.APPLICATIONS: "application",
    ConditionAxis.PLATFORMS: "platform",
    ConditionAxis.LOCATIONS: "location",
    ConditionAxis.CLIENT_APP_TYPES: "client app type",
    ConditionAxis.USER_RISK_LEVELS: "user risk level",
    ConditionAxis.SIGN_IN_RISK_LEVELS: "sign-in risk level",
    ConditionAxis.USER_ACTIONS: "user action",
}


class SimulationGenerator(BaseComponent):
    name = "simulation"
    description = "Representative sign-in scenarios per Conditional Access policy"

    def generate(
        self,
        policies: Iterable[Policy],
        include_report_only: Optional[bool] = None,
    ) -> list[Scenario]:
        """
        Generate scenarios in input policy order.
        Disabled policies are never simulated; report-only policies only when
        include_report_only (or the run settings) asks for them.
        """
        policies = require_collection(policies, "policies")
        if include_report_only is None:
            include_report_only = self.settings.include_report_only

        scenarios: list[Scenario] = []
        skipped = 0
        for policy in policies:
            if not _in_scope(policy, include_report_only):
                continue
            if not policy.is_valid:
                skipped += 1
                self.diagnostics.add(
                    DiagnosticCategory.INVALID_POLICY,
                    policy.id or policy.display_name,
                    f"Skipped policy {policy.display_name!r}: {'; '.join(policy.shape_errors)}",
                )
                continue
            scenarios.extend(
                self.isolate(policy.id, self._scenarios_for, policy, fallback=[])
            )

        logger.info(
            f"[{self.name}] Generated {len(scenarios)} scenarios "
            f"from {len(policies)} policies ({skipped} skipped)"
        )
        return scenarios

    def _scenarios_for(self, policy: Policy) -> list[Scenario]:
        c = policy.conditions
        grant = policy.grant
        identity, identity_type = _pick_identity(
            c.users.included, c.groups.included, c.roles.included,
        )
        base = SignInConditions(
            identity=identity,
            identity_type=identity_type,
            **{
                field_name: _pick_value(c.axis(axis).included)
                for axis, field_name in _AXIS_FIELDS.items()
            },
        )

        scenarios = [Scenario(
            policy_id=policy.id,
            policy_name=policy.display_name,
            title=self._positive_title(policy, base),
            kind=ScenarioKind.POSITIVE,
            conditions=base,
            expected_control=grant.control,
            inverted=grant.inverted,
            expect_applies=True,
        )]

        if c.has_identity_exclusions and c.targets_any_identity:
            value, value_type = _pick_identity(
                c.users.excluded, c.groups.excluded, c.roles.excluded,
            )
            negative = replace(base, identity=value, identity_type=value_type)
            scenarios.append(self._negative(policy, negative, "users", self._who(negative)))

        for axis in SIGN_IN_AXES:
            cond = c.axis(axis)
            if not (cond.has_inclusions and cond.has_exclusions):
                continue
            value = _first_excluded(cond.excluded)
            negative = replace(base, **{_AXIS_FIELDS[axis]: value})
            label = f"{_AXIS_LABELS[axis]} {value}"
            scenarios.append(self._negative(policy, negative, axis.value, label))

        return scenarios

    def _negative(
        self,
        policy: Policy,
        conditions: SignInConditions,
        axis_name: str,
        label: str,
    ) -> Scenario:
        return Scenario(
            policy_id=policy.id,
            policy_name=policy.display_name,
            title=f"{policy.display_name} should not apply to excluded {label}",
            kind=ScenarioKind.NEGATIVE,
            conditions=conditions,
            expected_control=policy.grant.control,
            inverted=policy.grant.inverted,
            expect_applies=False,
            negated_axis=axis_name,
        )

    def _positive_title(self, policy: Policy, conditions: SignInConditions) -> str:
        action = _describe_control(policy.grant.control)
        who = self._who(conditions)
        if conditions.user_action != ANY_VALUE:
            what = f"user action {conditions.user_action}"
        elif conditions.application != ANY_VALUE:
            what = f"application {conditions.application}"
        else:
            what = "any application"
        if policy.grant.inverted:
            return f"{policy.display_name} would {action} for {who} on {what} (report-only, not enforced)"
        return f"{policy.display_name} should {action} for {who} on {what}"

    def _who(self, conditions: SignInConditions) -> str:
        kind = conditions.identity_type
        if kind == IdentityType.USER:
            return f"user {conditions.identity}"
        if kind == IdentityType.GUEST:
            return "guest or external users"
        if kind == IdentityType.GROUP:
            return f"members of group {self.resolver.display_name(conditions.identity)}"
        if kind == IdentityType.ROLE:
            return f"holders of role {self.resolver.role_display_name(conditions.identity)}"
        return "any user"


def _in_scope(policy: Policy, include_report_only: bool) -> bool:
    if policy.state == PolicyState.ENABLED:
        return True
    return policy.state == PolicyState.REPORT_ONLY and include_report_only


def _pick_identity(
    users: tuple[str, ...],
    groups: tuple[str, ...],
    roles: tuple[str, ...],
) -> tuple[str, IdentityType]:
    """Named user > named group > role > guests > wildcard All."""
    named = [u for u in users if u not in SPECIAL_USER_VALUES]
    if named:
        return named[0], IdentityType.USER
    if groups:
        return groups[0], IdentityType.GROUP
    if roles:
        return roles[0], IdentityType.ROLE
    if GUESTS_TARGET in users:
        return GUESTS_TARGET, IdentityType.GUEST
    return ANY_VALUE, IdentityType.ANY


def _pick_value(included: tuple[str, ...]) -> str:
    """First concrete included value; the sentinel when unconstrained or wildcard."""
    if not included or ALL_TARGET in included:
        return ANY_VALUE
    return included[0]


def _first_excluded(excluded: tuple[str, ...]) -> str:
    concrete = [v for v in excluded if v != ALL_TARGET]
    return concrete[0] if concrete else ALL_TARGET


def _describe_control(control: str) -> str:
    if control == "block":
        return "block access"
    if control == "session":
        return "apply session controls"
    return f"require {control}"


def describe_conditions(conditions: ConditionSet) -> dict[str, dict[str, list[str]]]:
    """Plain-dict view of a condition set, used by report renderers."""
    return {
        axis.value: {
            "included": list(conditions.axis(axis).included),
            "excluded": list(conditions.axis(axis).excluded),
        }
        for axis in ConditionAxis
        if conditions.axis(axis).included or conditions.axis(axis).excluded
    }
