"""Loaders package — reads already-fetched tenant data into engine objects."""

from .snapshot import SnapshotError, build_snapshot, load_snapshot

__all__ = ["SnapshotError", "build_snapshot", "load_snapshot"]
