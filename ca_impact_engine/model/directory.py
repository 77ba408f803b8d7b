"""
Directory objects consumed by the engine: groups (with direct-member edges),
directory roles (with assignees), and users.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from ..config import ODATA_GROUP, ODATA_USER
from .policy import Policy


@dataclass(frozen=True)
class GroupNode:
    """A group and its direct members. Nested groups appear in member_group_ids."""
    id: str
    display_name: str = ""
    member_user_ids: tuple[str, ...] = ()
    member_group_ids: tuple[str, ...] = ()

    @property
    def direct_member_ids(self) -> tuple[str, ...]:
        return self.member_user_ids + self.member_group_ids

    @classmethod
    def from_graph(
        cls,
        record: dict[str, Any],
        known_group_ids: Iterable[str] = (),
    ) -> "GroupNode":
        users, groups = _split_members(record.get("members", []) or [], set(known_group_ids))
        return cls(
            id=record.get("id") or "",
            display_name=record.get("displayName") or record.get("id") or "",
            member_user_ids=users,
            member_group_ids=groups,
        )


@dataclass(frozen=True)
class DirectoryRole:
    """A directory role keyed by role template id, as referenced by includeRoles."""
    id: str
    display_name: str = ""
    member_user_ids: tuple[str, ...] = ()
    member_group_ids: tuple[str, ...] = ()

    @classmethod
    def from_graph(
        cls,
        record: dict[str, Any],
        known_group_ids: Iterable[str] = (),
    ) -> "DirectoryRole":
        users, groups = _split_members(record.get("members", []) or [], set(known_group_ids))
        role_id = record.get("roleTemplateId") or record.get("id") or ""
        return cls(
            id=role_id,
            display_name=record.get("displayName") or role_id,
            member_user_ids=users,
            member_group_ids=groups,
        )


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    display_name: str = ""
    user_principal_name: str = ""
    user_type: str = "Member"

    @property
    def is_guest(self) -> bool:
        return self.user_type == "Guest" or "#EXT#" in self.user_principal_name

    @classmethod
    def from_graph(cls, record: dict[str, Any]) -> "DirectoryUser":
        return cls(
            id=str(record.get("id") or ""),
            display_name=str(record.get("displayName") or ""),
            user_principal_name=str(record.get("userPrincipalName") or ""),
            user_type=str(record.get("userType") or "Member"),
        )


@dataclass
class DirectorySnapshot:
    """Already-fetched tenant data handed to the engine by the loader layer."""
    policies: list[Policy] = field(default_factory=list)
    groups: list[GroupNode] = field(default_factory=list)
    users: list[DirectoryUser] = field(default_factory=list)
    roles: list[DirectoryRole] = field(default_factory=list)
    source: str = ""


def _split_members(
    members: list,
    known_group_ids: set[str],
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """
    Split raw member entries into (user ids, group ids).
    Entries are either bare ids or Graph directory objects with @odata.type;
    bare ids are classified as groups when they match a known group id.
    Other object types (devices, service principals) are dropped.
    """
    users: list[str] = []
    groups: list[str] = []
    if not isinstance(members, list):
        return (), ()
    for m in members:
        if isinstance(m, dict):
            member_id = m.get("id")
            odata_type = m.get("@odata.type", "")
            if not member_id:
                continue
            if odata_type == ODATA_GROUP:
                groups.append(member_id)
            elif odata_type == ODATA_USER:
                users.append(member_id)
            elif not odata_type:
                (groups if member_id in known_group_ids else users).append(member_id)
        elif isinstance(m, str):
            (groups if m in known_group_ids else users).append(m)
    return tuple(dict.fromkeys(users)), tuple(dict.fromkeys(groups))
