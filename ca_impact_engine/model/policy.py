"""
Policy model — typed, immutable representation of a Conditional Access policy.

A raw Graph `conditionalAccessPolicy` record is normalized once into a Policy
with an explicit ConditionSet (one AxisCondition per condition axis) and a
GrantDecision. Records that lack a required part are still normalized; the
problems are kept in `shape_errors` so downstream components can skip or
degrade that single policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..config import (
    ALL_TARGET,
    NONE_TARGET,
    CONTROL_PRIORITY,
    GRAPH_REPORT_ONLY_STATE,
)

logger = logging.getLogger("ca_impact_engine.model.policy")


class PolicyState(str, Enum):
    DISABLED = "disabled"
    ENABLED = "enabled"
    REPORT_ONLY = "reportOnly"

    @classmethod
    def parse(cls, raw: Any) -> "PolicyState":
        """Map a Graph state literal to a PolicyState. Raises ValueError if unknown."""
        if raw == GRAPH_REPORT_ONLY_STATE:
            return cls.REPORT_ONLY
        return cls(raw)


class ConditionAxis(str, Enum):
    USERS = "users"
    GROUPS = "groups"
    ROLES = "roles"
    APPLICATIONS = "applications"
    PLATFORMS = "platforms"
    LOCATIONS = "locations"
    CLIENT_APP_TYPES = "clientAppTypes"
    USER_RISK_LEVELS = "userRiskLevels"
    SIGN_IN_RISK_LEVELS = "signInRiskLevels"
    USER_ACTIONS = "userActions"


# Axes that together describe *who* a policy targets
IDENTITY_AXES = (ConditionAxis.USERS, ConditionAxis.GROUPS, ConditionAxis.ROLES)

# Axes that describe *how* the sign-in happens
SIGN_IN_AXES = (
    ConditionAxis.APPLICATIONS,
    ConditionAxis.PLATFORMS,
    ConditionAxis.LOCATIONS,
    ConditionAxis.CLIENT_APP_TYPES,
    ConditionAxis.USER_RISK_LEVELS,
    ConditionAxis.SIGN_IN_RISK_LEVELS,
    ConditionAxis.USER_ACTIONS,
)


@dataclass(frozen=True)
class AxisCondition:
    """Included and excluded values for one condition axis."""
    included: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()

    @property
    def is_wildcard(self) -> bool:
        return ALL_TARGET in self.included

    @property
    def is_constrained(self) -> bool:
        """True when the axis names concrete values rather than All / nothing."""
        return bool(self.included) and not self.is_wildcard

    @property
    def has_inclusions(self) -> bool:
        return bool(self.included)

    @property
    def has_exclusions(self) -> bool:
        return bool(self.excluded)


_AXIS_ATTRS = {
    ConditionAxis.USERS: "users",
    ConditionAxis.GROUPS: "groups",
    ConditionAxis.ROLES: "roles",
    ConditionAxis.APPLICATIONS: "applications",
    ConditionAxis.PLATFORMS: "platforms",
    ConditionAxis.LOCATIONS: "locations",
    ConditionAxis.CLIENT_APP_TYPES: "client_app_types",
    ConditionAxis.USER_RISK_LEVELS: "user_risk_levels",
    ConditionAxis.SIGN_IN_RISK_LEVELS: "sign_in_risk_levels",
    ConditionAxis.USER_ACTIONS: "user_actions",
}


@dataclass(frozen=True)
class ConditionSet:
    users: AxisCondition = field(default_factory=AxisCondition)
    groups: AxisCondition = field(default_factory=AxisCondition)
    roles: AxisCondition = field(default_factory=AxisCondition)
    applications: AxisCondition = field(default_factory=AxisCondition)
    platforms: AxisCondition = field(default_factory=AxisCondition)
    locations: AxisCondition = field(default_factory=AxisCondition)
    client_app_types: AxisCondition = field(default_factory=AxisCondition)
    user_risk_levels: AxisCondition = field(default_factory=AxisCondition)
    sign_in_risk_levels: AxisCondition = field(default_factory=AxisCondition)
    user_actions: AxisCondition = field(default_factory=AxisCondition)

    def axis(self, axis: ConditionAxis) -> AxisCondition:
        return getattr(self, _AXIS_ATTRS[axis])

    @property
    def targets_all_users(self) -> bool:
        return self.users.is_wildcard

    @property
    def targets_any_identity(self) -> bool:
        """False when nothing is included, or only the `None` placeholder."""
        included = [
            v for axis in IDENTITY_AXES
            for v in self.axis(axis).included
            if v != NONE_TARGET
        ]
        return bool(included)

    @property
    def has_identity_exclusions(self) -> bool:
        return any(self.axis(a).has_exclusions for a in IDENTITY_AXES)


@dataclass(frozen=True)
class GrantDecision:
    """The enforced control; `inverted` means the control is reported, not enforced."""
    control: str
    controls: tuple[str, ...] = ()
    operator: str = "OR"
    inverted: bool = False


@dataclass(frozen=True)
class Policy:
    id: str
    display_name: str
    state: PolicyState
    conditions: ConditionSet
    grant: Optional[GrantDecision] = None
    shape_errors: tuple[str, ...] = ()

    @property
    def is_enabled(self) -> bool:
        return self.state == PolicyState.ENABLED

    @property
    def is_report_only(self) -> bool:
        return self.state == PolicyState.REPORT_ONLY

    @property
    def is_valid(self) -> bool:
        return not self.shape_errors

    @classmethod
    def from_graph(cls, record: dict[str, Any]) -> "Policy":
        """Normalize one Graph conditionalAccessPolicy record."""
        errors: list[str] = []

        policy_id = str(record.get("id") or "")
        display_name = str(record.get("displayName") or policy_id)
        if not policy_id:
            errors.append("missing policy id")

        try:
            state = PolicyState.parse(record.get("state"))
        except ValueError:
            errors.append(f"unknown policy state {record.get('state')!r}")
            state = PolicyState.DISABLED

        raw_conditions = record.get("conditions")
        if not isinstance(raw_conditions, dict):
            errors.append("missing conditions")
            raw_conditions = {}

        users_cond = raw_conditions.get("users")
        has_users = isinstance(users_cond, dict)
        if not has_users:
            errors.append("missing users condition")
            users_cond = {}
        apps_cond = raw_conditions.get("applications")
        has_apps = isinstance(apps_cond, dict)
        if not has_apps:
            errors.append("missing applications condition")
            apps_cond = {}
        platforms = _section(raw_conditions, "platforms", "platforms condition", errors)
        locations = _section(raw_conditions, "locations", "locations condition", errors)

        conditions = ConditionSet(
            users=_axis(users_cond, "includeUsers", "excludeUsers"),
            groups=_axis(users_cond, "includeGroups", "excludeGroups"),
            roles=_axis(users_cond, "includeRoles", "excludeRoles"),
            applications=_axis(apps_cond, "includeApplications", "excludeApplications"),
            platforms=_axis(platforms, "includePlatforms", "excludePlatforms"),
            locations=_axis(locations, "includeLocations", "excludeLocations"),
            client_app_types=AxisCondition(
                included=_values(raw_conditions.get("clientAppTypes")),
            ),
            user_risk_levels=AxisCondition(
                included=_values(raw_conditions.get("userRiskLevels")),
            ),
            sign_in_risk_levels=AxisCondition(
                included=_values(raw_conditions.get("signInRiskLevels")),
            ),
            user_actions=AxisCondition(
                included=_values(apps_cond.get("includeUserActions")),
            ),
        )

        if has_users and not conditions.targets_any_identity:
            errors.append("users condition targets no identities")
        if has_apps and not (
            conditions.applications.has_inclusions
            or conditions.user_actions.has_inclusions
            or apps_cond.get("includeAuthenticationContextClassReferences")
        ):
            errors.append("applications condition targets no resources")

        grant = _parse_grant(
            _section(record, "grantControls", "grant controls", errors),
            _section(record, "sessionControls", "session controls", errors),
            inverted=state == PolicyState.REPORT_ONLY,
        )
        if grant is None:
            errors.append("missing grant decision")

        if errors:
            logger.debug(f"Policy {display_name!r} has shape errors: {errors}")

        return cls(
            id=policy_id,
            display_name=display_name,
            state=state,
            conditions=conditions,
            grant=grant,
            shape_errors=tuple(errors),
        )


def _section(container: dict, key: str, label: str, errors: list[str]) -> dict:
    """Optional object-valued section; null means absent, any other non-object is a shape error."""
    raw = container.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        errors.append(f"malformed {label}")
        return {}
    return raw


def _values(raw: Any) -> tuple[str, ...]:
    """Graph spells the wildcard `All` on identity axes and `all` on platforms / client apps."""
    if not raw:
        return ()
    if not isinstance(raw, (list, tuple)):
        raw = [raw]
    return tuple(ALL_TARGET if str(v).lower() == "all" else str(v) for v in raw)


def _axis(section: dict, include_key: str, exclude_key: str) -> AxisCondition:
    return AxisCondition(
        included=_values(section.get(include_key)),
        excluded=_values(section.get(exclude_key)),
    )


def _parse_grant(
    grant_controls: dict,
    session_controls: dict,
    inverted: bool,
) -> Optional[GrantDecision]:
    controls = list(_values(grant_controls.get("builtInControls")))
    if grant_controls.get("authenticationStrength"):
        controls.append("authenticationStrength")
    if grant_controls.get("termsOfUse"):
        controls.append("termsOfUse")
    controls.extend(_values(grant_controls.get("customAuthenticationFactors")))

    if not controls:
        # Session-control-only policies still carry an enforceable decision
        session = [
            k for k, v in session_controls.items()
            if v and not k.startswith("@")
        ]
        if not session:
            return None
        return GrantDecision(
            control="session",
            controls=tuple(session),
            operator="AND",
            inverted=inverted,
        )

    primary = next((c for c in CONTROL_PRIORITY if c in controls), controls[0])
    return GrantDecision(
        control=primary,
        controls=tuple(controls),
        operator=grant_controls.get("operator") or "OR",
        inverted=inverted,
    )
