"""
Snapshot loader — reads already-fetched tenant data from JSON files.

Accepts either a directory holding policies.json, groups.json and the optional
users.json / roles.json, or a single JSON file with those sections as keys.
Each section may be a bare list or a Graph page ({"value": [...]}).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..model.directory import DirectoryRole, DirectorySnapshot, DirectoryUser, GroupNode
from ..model.policy import Policy

logger = logging.getLogger("ca_impact_engine.loaders.snapshot")

SNAPSHOT_FILES = {
    "policies": "policies.json",
    "groups": "groups.json",
    "users": "users.json",
    "roles": "roles.json",
}


class SnapshotError(Exception):
    """Raised when a snapshot cannot be read or has the wrong top-level shape."""


def load_snapshot(path: str | Path) -> DirectorySnapshot:
    """Load a snapshot directory or combined JSON file."""
    path = Path(path)
    if path.is_dir():
        sections: dict[str, Any] = {}
        for key, filename in SNAPSHOT_FILES.items():
            file_path = path / filename
            if file_path.exists():
                sections[key] = _read_json(file_path)
        if "policies" not in sections:
            raise SnapshotError(f"{path} has no {SNAPSHOT_FILES['policies']}")
    elif path.is_file():
        data = _read_json(path)
        if not isinstance(data, dict):
            raise SnapshotError(f"{path} must contain a JSON object with a 'policies' key")
        sections = data
    else:
        raise SnapshotError(f"Snapshot not found: {path}")

    return build_snapshot(sections, source=str(path))


def build_snapshot(sections: dict[str, Any], source: str = "") -> DirectorySnapshot:
    """Normalize raw Graph-shaped sections into engine objects."""
    raw_policies = _records(sections.get("policies"), "policies")
    raw_groups = _records(sections.get("groups"), "groups")
    raw_users = _records(sections.get("users"), "users")
    raw_roles = _records(sections.get("roles"), "roles")

    group_ids = {g.get("id") for g in raw_groups if g.get("id")}

    snapshot = DirectorySnapshot(
        policies=[Policy.from_graph(p) for p in raw_policies],
        groups=[GroupNode.from_graph(g, group_ids) for g in raw_groups],
        users=[DirectoryUser.from_graph(u) for u in raw_users],
        roles=[DirectoryRole.from_graph(r, group_ids) for r in raw_roles],
        source=source,
    )
    logger.info(
        f"Loaded snapshot {source or '<memory>'}: {len(snapshot.policies)} policies, "
        f"{len(snapshot.groups)} groups, {len(snapshot.users)} users, "
        f"{len(snapshot.roles)} roles"
    )
    return snapshot


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise SnapshotError(f"Cannot read {path}: {e}") from e


def _records(raw: Optional[Any], name: str) -> list[dict]:
    if raw is None:
        return []
    if isinstance(raw, dict):
        if "value" not in raw:
            raise SnapshotError(f"Section '{name}' is an object without a 'value' list")
        raw = raw["value"]
    if not isinstance(raw, list):
        raise SnapshotError(f"Section '{name}' must be a list, got {type(raw).__name__}")

    records = []
    for i, item in enumerate(raw):
        if isinstance(item, dict):
            records.append(item)
        else:
            logger.warning(f"Skipping non-object entry {i} in section '{name}'")
    return records
