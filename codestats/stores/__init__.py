"""Persistent stores for codestats outputs."""

from .snapshots import Snapshot, SnapshotStore, SnapshotWriter, snapshot_filename

__all__ = ["Snapshot", "SnapshotStore", "SnapshotWriter", "snapshot_filename"]
