"""
Group Resolver — transitive, cycle-safe group membership with a run-scoped cache.

The resolver owns the group adjacency built from the fetched groups and is the
single writer of the membership cache. Traversals are iterative depth-first
walks with their own visited set, so nested cycles terminate and every
reachable user is counted once. Unknown group ids resolve to no members and
are recorded as resolution gaps.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

import networkx as nx

from ..model.directory import DirectoryRole, GroupNode
from ..model.results import DiagnosticCategory, Diagnostics

logger = logging.getLogger("ca_impact_engine.engine.group_resolver")


class GroupResolver:
    """
    Resolves users reachable from a group or directory role.

    Results are memoized per id. Concurrent callers asking for the same id are
    serialized on a per-key lock so each id is traversed once; completed
    entries are read without locking.
    """

    def __init__(
        self,
        groups: Iterable[GroupNode],
        roles: Iterable[DirectoryRole] = (),
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._groups: dict[str, GroupNode] = {}
        for g in groups:
            if not g.id:
                continue
            if g.id in self._groups:
                logger.debug(f"Duplicate group record {g.id} ignored")
                continue
            self._groups[g.id] = g
        self._roles: dict[str, DirectoryRole] = {r.id: r for r in roles if r.id}

        self._cache: dict[str, frozenset[str]] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._gaps_lock = threading.Lock()
        self._traversals = 0

        self.resolution_gaps: set[str] = set()

    # ── Lookup ──────────────────────────────────────────────────────────────

    def has_group(self, group_id: str) -> bool:
        return group_id in self._groups

    def has_role(self, role_id: str) -> bool:
        return role_id in self._roles

    def group(self, group_id: str) -> Optional[GroupNode]:
        return self._groups.get(group_id)

    def display_name(self, group_id: str) -> str:
        node = self._groups.get(group_id)
        return node.display_name if node and node.display_name else group_id

    def role_display_name(self, role_id: str) -> str:
        role = self._roles.get(role_id)
        return role.display_name if role and role.display_name else role_id

    @property
    def group_ids(self) -> list[str]:
        return list(self._groups)

    # ── Membership ──────────────────────────────────────────────────────────

    def resolve_members(self, group_id: str) -> frozenset[str]:
        """All users reachable from group_id through nested groups."""
        if group_id not in self._groups:
            self._record_gap(group_id, f"Group {group_id} not found in fetched groups")
            return frozenset()
        return self._memoized(f"group:{group_id}", lambda: self._traverse(group_id))

    def resolve_member_count(self, group_id: str) -> int:
        return len(self.resolve_members(group_id))

    def direct_members(self, group_id: str) -> frozenset[str]:
        node = self._groups.get(group_id)
        if node is None:
            self._record_gap(group_id, f"Group {group_id} not found in fetched groups")
            return frozenset()
        return frozenset(node.member_user_ids)

    def is_member(self, user_id: str, group_id: str, transitive: bool = True) -> bool:
        if transitive:
            return user_id in self.resolve_members(group_id)
        return user_id in self.direct_members(group_id)

    def resolve_role_members(self, role_id: str) -> frozenset[str]:
        """Users holding a directory role directly or through a role-assignable group."""
        role = self._roles.get(role_id)
        if role is None:
            self._record_gap(role_id, f"Role {role_id} has no assignment data")
            return frozenset()

        def compute() -> frozenset[str]:
            users = set(role.member_user_ids)
            for gid in role.member_group_ids:
                users.update(self.resolve_members(gid))
            return frozenset(users)

        return self._memoized(f"role:{role_id}", compute)

    def _memoized(self, key: str, compute: Callable[[], frozenset[str]]) -> frozenset[str]:
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._locks_guard:
            lock = self._key_locks.setdefault(key, threading.Lock())

        with lock:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug(f"Membership cache hit after wait: {key}")
                return cached
            result = compute()
            self._cache[key] = result
            return result

    def _traverse(self, root: str) -> frozenset[str]:
        """Iterative DFS from root; already-visited groups are not re-entered."""
        visited = {root}
        stack = [root]
        users: set[str] = set()

        while stack:
            gid = stack.pop()
            node = self._groups[gid]
            users.update(node.member_user_ids)

            for child in node.member_group_ids:
                if child in visited:
                    continue
                visited.add(child)
                if child not in self._groups:
                    self._record_gap(
                        child,
                        f"Nested group {child} (member of {gid}) not found in fetched groups",
                    )
                    continue
                done = self._cache.get(f"group:{child}")
                if done is not None:
                    users.update(done)
                    continue
                stack.append(child)

        self._traversals += 1
        return frozenset(users)

    def _record_gap(self, subject_id: str, message: str):
        with self._gaps_lock:
            self.resolution_gaps.add(subject_id)
        self.diagnostics.add(DiagnosticCategory.INPUT_GAP, subject_id, message)

    # ── Graph export ────────────────────────────────────────────────────────

    def build_graph(self, include_users: bool = False) -> nx.DiGraph:
        """
        Build the group nesting graph for visualization export.

        Nodes carry display_name, kind (group / unresolved / user) and the
        resolved transitive member_count. Edges point from container to member.
        """
        graph = nx.DiGraph()
        for gid, node in self._groups.items():
            graph.add_node(
                gid,
                kind="group",
                display_name=node.display_name or gid,
                member_count=self.resolve_member_count(gid),
                direct_user_count=len(node.member_user_ids),
            )

        for gid, node in self._groups.items():
            for child in node.member_group_ids:
                if child not in self._groups and not graph.has_node(child):
                    graph.add_node(child, kind="unresolved", display_name=child, member_count=0)
                graph.add_edge(gid, child, relation="contains")
            if include_users:
                for uid in node.member_user_ids:
                    if not graph.has_node(uid):
                        graph.add_node(uid, kind="user", display_name=uid, member_count=0)
                    graph.add_edge(gid, uid, relation="member")

        return graph

    def find_cycles(self) -> list[list[str]]:
        """Groups that transitively contain themselves, one sorted list per cycle."""
        nesting = nx.DiGraph()
        for gid, node in self._groups.items():
            nesting.add_node(gid)
            for child in node.member_group_ids:
                if child in self._groups:
                    nesting.add_edge(gid, child)

        cycles = []
        for component in nx.strongly_connected_components(nesting):
            if len(component) > 1:
                cycles.append(sorted(component))
            else:
                (only,) = component
                if nesting.has_edge(only, only):
                    cycles.append([only])
        return sorted(cycles)

    def report_cycles(self) -> list[list[str]]:
        """Record each nesting cycle as a structural anomaly."""
        cycles = self.find_cycles()
        for cycle in cycles:
            names = " -> ".join(self.display_name(g) for g in cycle)
            self.diagnostics.add(
                DiagnosticCategory.STRUCTURAL_ANOMALY,
                cycle[0],
                f"Cyclic group nesting: {names}",
            )
        return cycles

    def get_stats(self) -> dict:
        return {
            "groups": len(self._groups),
            "roles": len(self._roles),
            "cached_entries": len(self._cache),
            "traversals": self._traversals,
            "resolution_gaps": len(self.resolution_gaps),
        }
