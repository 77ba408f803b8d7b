"""
Result data models — structured types produced by the engine and handed to
the reporting layer: scenarios, impact rows, persona summaries, diagnostics.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from ..config import ANY_VALUE

logger = logging.getLogger("ca_impact_engine.diagnostics")


# ─── Diagnostics ────────────────────────────────────────────────────────────

class DiagnosticCategory(str, Enum):
    INPUT_GAP = "inputGap"
    STRUCTURAL_ANOMALY = "structuralAnomaly"
    INVALID_POLICY = "invalidPolicy"


@dataclass(frozen=True)
class Diagnostic:
    category: DiagnosticCategory
    subject_id: str
    message: str
    severity: str = "warning"   # warning, info

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "subject_id": self.subject_id,
            "message": self.message,
            "severity": self.severity,
        }


class Diagnostics:
    """
    Run-scoped sink for non-fatal problems.
    Identical entries are recorded once; appends are guarded for thread-pool use.
    """

    def __init__(self):
        self._entries: list[Diagnostic] = []
        self._seen: set[tuple] = set()
        self._lock = threading.Lock()

    def add(
        self,
        category: DiagnosticCategory,
        subject_id: str,
        message: str,
        severity: str = "warning",
    ) -> Optional[Diagnostic]:
        key = (category, subject_id, message)
        with self._lock:
            if key in self._seen:
                return None
            self._seen.add(key)
            entry = Diagnostic(category, subject_id, message, severity)
            self._entries.append(entry)

        if severity == "warning":
            logger.warning(f"[{category.value}] {subject_id}: {message}")
        else:
            logger.info(f"[{category.value}] {subject_id}: {message}")
        return entry

    def by_category(self, category: DiagnosticCategory) -> list[Diagnostic]:
        return [d for d in self._entries if d.category == category]

    def to_list(self) -> list[dict]:
        return [d.to_dict() for d in self._entries]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


# ─── Scenarios ──────────────────────────────────────────────────────────────

class ScenarioKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class IdentityType(str, Enum):
    USER = "user"
    GUEST = "guest"
    GROUP = "group"
    ROLE = "role"
    ANY = "any"


@dataclass(frozen=True)
class SignInConditions:
    """One concrete value per condition axis of a simulated sign-in."""
    identity: str = ANY_VALUE
    identity_type: IdentityType = IdentityType.ANY
    application: str = ANY_VALUE
    platform: str = ANY_VALUE
    location: str = ANY_VALUE
    client_app_type: str = ANY_VALUE
    user_risk: str = ANY_VALUE
    sign_in_risk: str = ANY_VALUE
    user_action: str = ANY_VALUE

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "identity_type": self.identity_type.value,
            "application": self.application,
            "platform": self.platform,
            "location": self.location,
            "client_app_type": self.client_app_type,
            "user_risk": self.user_risk,
            "sign_in_risk": self.sign_in_risk,
            "user_action": self.user_action,
        }


@dataclass(frozen=True)
class Scenario:
    """A simulated sign-in and the outcome the originating policy should produce."""
    policy_id: str
    policy_name: str
    title: str
    kind: ScenarioKind
    conditions: SignInConditions
    expected_control: str
    inverted: bool = False
    expect_applies: bool = True
    negated_axis: Optional[str] = None   # Axis whose excluded value a negative scenario uses

    @property
    def assertion(self) -> dict:
        """Reusable assertion consumed by test-code generators."""
        if not self.expect_applies:
            outcome = "notApplied"
        elif self.inverted:
            outcome = "reportOnly"
        else:
            outcome = "enforced"
        return {
            "policy_id": self.policy_id,
            "applies": self.expect_applies,
            "control": self.expected_control,
            "assert_absent": self.inverted,
            "outcome": outcome,
        }

    def to_dict(self) -> dict:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "title": self.title,
            "kind": self.kind.value,
            "conditions": self.conditions.to_dict(),
            "expected_control": self.expected_control,
            "inverted": self.inverted,
            "expect_applies": self.expect_applies,
            "negated_axis": self.negated_axis,
            "assertion": self.assertion,
        }


# ─── Impact Matrix ──────────────────────────────────────────────────────────

class ImpactStatus(str, Enum):
    INCLUDED = "included"
    EXCLUDED = "excluded"
    NOT_APPLICABLE = "notApplicable"


@dataclass(frozen=True)
class ImpactCell:
    policy_id: str
    status: ImpactStatus
    reason: str = ""

    @property
    def included(self) -> bool:
        return self.status == ImpactStatus.INCLUDED


@dataclass(frozen=True)
class ImpactRow:
    user_id: str
    display_name: str
    user_principal_name: str = ""
    cells: tuple[ImpactCell, ...] = ()

    def cell(self, policy_id: str) -> Optional[ImpactCell]:
        for c in self.cells:
            if c.policy_id == policy_id:
                return c
        return None

    def as_flags(self) -> dict[str, bool]:
        """Flatten to included / not included; excluded and not-applicable both map to False."""
        return {c.policy_id: c.included for c in self.cells}

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "user_principal_name": self.user_principal_name,
            "cells": {
                c.policy_id: {"status": c.status.value, "reason": c.reason}
                for c in self.cells
            },
        }


# ─── Personas ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GroupRef:
    group_id: str
    display_name: str
    member_count: int
    resolved: bool = True     # False when the group was not in the fetched set

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "display_name": self.display_name,
            "member_count": self.member_count,
            "resolved": self.resolved,
        }


@dataclass(frozen=True)
class PersonaSummary:
    policy_id: str
    policy_name: str
    state: str
    included_groups: tuple[GroupRef, ...] = ()
    excluded_groups: tuple[GroupRef, ...] = ()
    included_member_count: int = 0    # Distinct users across all included groups
    excluded_member_count: int = 0

    def to_dict(self) -> dict:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "state": self.state,
            "included_groups": [g.to_dict() for g in self.included_groups],
            "excluded_groups": [g.to_dict() for g in self.excluded_groups],
            "included_member_count": self.included_member_count,
            "excluded_member_count": self.excluded_member_count,
        }
