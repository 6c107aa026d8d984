"""Persistent record of applied preference changes."""
from .store import (
    ExternalCommandState,
    SettingState,
    Snapshot,
    SnapshotError,
    SnapshotNotFoundError,
    SnapshotStore,
    get_snapshot_path,
)

__all__ = [
    "ExternalCommandState",
    "SettingState",
    "Snapshot",
    "SnapshotError",
    "SnapshotNotFoundError",
    "SnapshotStore",
    "get_snapshot_path",
]
