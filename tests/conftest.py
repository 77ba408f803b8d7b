from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from ca_impact_engine.config import SimulationConfig
from ca_impact_engine.engine import RunContext
from ca_impact_engine.loaders import build_snapshot
from ca_impact_engine.model import DirectoryRole, GroupNode, Policy


def graph_policy(
    policy_id: str,
    name: Optional[str] = None,
    state: str = "enabled",
    include_users=("All",),
    exclude_users=(),
    include_groups=(),
    exclude_groups=(),
    include_roles=(),
    exclude_roles=(),
    include_apps=("All",),
    exclude_apps=(),
    include_platforms=None,
    exclude_platforms=None,
    include_locations=None,
    exclude_locations=None,
    client_app_types=None,
    controls=("mfa",),
    operator: str = "OR",
    session: Optional[dict] = None,
) -> dict[str, Any]:
    """A conditionalAccessPolicy record shaped the way Graph returns it."""
    conditions: dict[str, Any] = {
        "users": {
            "includeUsers": list(include_users),
            "excludeUsers": list(exclude_users),
            "includeGroups": list(include_groups),
            "excludeGroups": list(exclude_groups),
            "includeRoles": list(include_roles),
            "excludeRoles": list(exclude_roles),
        },
        "applications": {
            "includeApplications": list(include_apps),
            "excludeApplications": list(exclude_apps),
            "includeUserActions": [],
        },
        "platforms": None,
        "locations": None,
        "clientAppTypes": list(client_app_types or ["all"]),
        "userRiskLevels": [],
        "signInRiskLevels": [],
    }
    if include_platforms is not None or exclude_platforms is not None:
        conditions["platforms"] = {
            "includePlatforms": list(include_platforms or []),
            "excludePlatforms": list(exclude_platforms or []),
        }
    if include_locations is not None or exclude_locations is not None:
        conditions["locations"] = {
            "includeLocations": list(include_locations or []),
            "excludeLocations": list(exclude_locations or []),
        }
    return {
        "id": policy_id,
        "displayName": name or policy_id,
        "state": state,
        "conditions": conditions,
        "grantControls": {
            "operator": operator,
            "builtInControls": list(controls),
        } if controls else None,
        "sessionControls": session,
    }


@pytest.fixture
def make_policy() -> Callable[..., Policy]:
    def _make(policy_id: str, **kwargs) -> Policy:
        return Policy.from_graph(graph_policy(policy_id, **kwargs))
    return _make


@pytest.fixture
def make_context() -> Callable[..., RunContext]:
    def _make(groups=(), roles=(), **settings) -> RunContext:
        return RunContext.create(groups, roles, SimulationConfig(**settings))
    return _make


@pytest.fixture
def nested_groups() -> list[GroupNode]:
    """
    G1 holds U1 directly; G3 holds U1 and U3; G4 nests G3.
    G-outer nests G-inner, which holds U9.
    """
    return [
        GroupNode("G1", "Pilot Users", member_user_ids=("U1",)),
        GroupNode("G3", "Contractors", member_user_ids=("U1", "U3")),
        GroupNode("G4", "Exempt Accounts", member_group_ids=("G3",)),
        GroupNode("G-outer", "All Staff", member_user_ids=("U2",), member_group_ids=("G-inner",)),
        GroupNode("G-inner", "Finance", member_user_ids=("U9",)),
    ]


@pytest.fixture
def admin_role() -> DirectoryRole:
    return DirectoryRole(
        "role-ga",
        "Global Administrator",
        member_user_ids=("U1",),
        member_group_ids=("G-admins",),
    )


@pytest.fixture
def sample_sections() -> dict[str, Any]:
    """A small tenant with every policy state, a break-glass exclusion and a nesting loop."""
    return {
        "policies": {
            "value": [
                graph_policy(
                    "p-mfa", "Require MFA for all users",
                    exclude_groups=["G-breakglass"],
                ),
                graph_policy(
                    "p-block-legacy", "Block legacy auth",
                    client_app_types=["exchangeActiveSync", "other"],
                    controls=["block"],
                ),
                graph_policy(
                    "p-guests", "Guest MFA",
                    state="enabledForReportingButNotEnforced",
                    include_users=["GuestsOrExternalUsers"],
                    include_apps=["Office365"],
                ),
                graph_policy(
                    "p-finance", "Finance compliant device",
                    include_users=[],
                    include_groups=["G-finance"],
                    include_apps=["Office365"],
                    exclude_apps=["SharePoint"],
                    controls=["compliantDevice"],
                ),
                graph_policy("p-disabled", "Old policy", state="disabled"),
            ]
        },
        "groups": [
            {
                "id": "G-all-staff",
                "displayName": "All Staff",
                "members": [
                    {"@odata.type": "#microsoft.graph.user", "id": "u1"},
                    {"@odata.type": "#microsoft.graph.user", "id": "u2"},
                    {"@odata.type": "#microsoft.graph.group", "id": "G-finance"},
                ],
            },
            {"id": "G-finance", "displayName": "Finance", "members": ["u3"]},
            {"id": "G-breakglass", "displayName": "Break Glass", "members": ["u4"]},
            {"id": "G-loop-a", "displayName": "Loop A", "members": ["u5", "G-loop-b"]},
            {"id": "G-loop-b", "displayName": "Loop B", "members": ["G-loop-a"]},
        ],
        "users": [
            {"id": "u1", "displayName": "Ada", "userPrincipalName": "ada@contoso.com"},
            {"id": "u2", "displayName": "Ben", "userPrincipalName": "ben@contoso.com"},
            {"id": "u3", "displayName": "Cleo", "userPrincipalName": "cleo@contoso.com"},
            {"id": "u4", "displayName": "Break Glass 1", "userPrincipalName": "bg1@contoso.com"},
            {"id": "u5", "displayName": "Dev", "userPrincipalName": "dev@contoso.com"},
            {
                "id": "u6",
                "displayName": "Partner",
                "userPrincipalName": "partner_fabrikam.com#EXT#@contoso.com",
                "userType": "Guest",
            },
        ],
        "roles": [
            {
                "id": "dir-role-1",
                "roleTemplateId": "62e90394-69f5-4237-9190-012177145e10",
                "displayName": "Global Administrator",
                "members": [{"@odata.type": "#microsoft.graph.user", "id": "u4"}],
            },
        ],
    }


@pytest.fixture
def sample_snapshot(sample_sections):
    return build_snapshot(sample_sections, source="fixture")
