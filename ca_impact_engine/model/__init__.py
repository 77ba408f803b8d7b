"""Model package — typed policy, directory and result objects."""

from .policy import (
    AxisCondition,
    ConditionAxis,
    ConditionSet,
    GrantDecision,
    Policy,
    PolicyState,
    IDENTITY_AXES,
    SIGN_IN_AXES,
)
from .directory import DirectoryRole, DirectorySnapshot, DirectoryUser, GroupNode
from .results import (
    Diagnostic,
    DiagnosticCategory,
    Diagnostics,
    GroupRef,
    IdentityType,
    ImpactCell,
    ImpactRow,
    ImpactStatus,
    PersonaSummary,
    Scenario,
    ScenarioKind,
    SignInConditions,
)

__all__ = [
    "AxisCondition",
    "ConditionAxis",
    "ConditionSet",
    "GrantDecision",
    "Policy",
    "PolicyState",
    "IDENTITY_AXES",
    "SIGN_IN_AXES",
    "DirectoryRole",
    "DirectorySnapshot",
    "DirectoryUser",
    "GroupNode",
    "Diagnostic",
    "DiagnosticCategory",
    "Diagnostics",
    "GroupRef",
    "IdentityType",
    "ImpactCell",
    "ImpactRow",
    "ImpactStatus",
    "PersonaSummary",
    "Scenario",
    "ScenarioKind",
    "SignInConditions",
]
