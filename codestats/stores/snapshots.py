"""JSON snapshot persistence for report payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..logging import get_logger
from ..models import CommitInfo

CLIENT_SIDE = "client"
SERVER_SIDE = "server"


@dataclass(frozen=True)
class Snapshot:
    """A loaded snapshot file."""

    path: Path
    report_type: str
    provenance: CommitInfo
    metadata: Dict[str, Any]
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"metadata": self.metadata, self.report_type: self.payload}


def side_name(client_side: bool) -> str:
    return CLIENT_SIDE if client_side else SERVER_SIDE


def snapshot_filename(report_type: str, provenance: CommitInfo, version: int = 1) -> str:
    """`<type>_<YYYY-MM-DD_HH-MM-SS>_<hash8>.json`, UTC with second precision."""
    stamp = provenance.date.astimezone(UTC).strftime("%Y-%m-%d_%H-%M-%S")
    suffix = "" if version == 1 else f"-{version}"
    return f"{report_type}_{stamp}_{provenance.short_hash}{suffix}.json"


class SnapshotWriter:
    """Writes one immutable JSON file per (report type, commit)."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)
        self.logger = get_logger("snapshots")

    def directory(self, report_type: str, *, client_side: bool = True) -> Path:
        return self.output_root / side_name(client_side) / report_type

    def write(
        self,
        report_type: str,
        payload: Any,
        provenance: CommitInfo,
        *,
        client_side: bool = True,
        extra_metadata: Optional[Mapping[str, Any]] = None,
    ) -> Path:
        target_dir = self.directory(report_type, client_side=client_side)
        target_dir.mkdir(parents=True, exist_ok=True)

        metadata: Dict[str, Any] = {"type": report_type, "artemis": provenance.to_dict()}
        if extra_metadata:
            metadata.update(extra_metadata)
        content = json.dumps({"metadata": metadata, report_type: payload}, indent=2) + "\n"

        version = 1
        while True:
            path = target_dir / snapshot_filename(report_type, provenance, version)
            if not path.exists():
                break
            if path.read_text(encoding="utf-8") == content:
                self.logger.info("Snapshot %s already up to date", path)
                return path
            version += 1

        path.write_text(content, encoding="utf-8")
        self.logger.info("%s report saved to: %s", report_type, path)
        return path


class SnapshotStore:
    """Loads snapshots back for the dashboard, oldest commit first."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)
        self.logger = get_logger("snapshots")

    def load(self, report_type: str, *, client_side: bool = True) -> List[Snapshot]:
        directory = self.output_root / side_name(client_side) / report_type
        if not directory.is_dir():
            return []
        snapshots: List[Snapshot] = []
        for path in sorted(directory.glob("*.json")):
            snapshot = self._load_file(path, report_type)
            if snapshot is not None:
                snapshots.append(snapshot)
        snapshots.sort(key=lambda snap: snap.provenance.date)
        return snapshots

    def latest(self, report_type: str, *, client_side: bool = True) -> Optional[Snapshot]:
        snapshots = self.load(report_type, client_side=client_side)
        return snapshots[-1] if snapshots else None

    def _load_file(self, path: Path, report_type: str) -> Optional[Snapshot]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Skipping unreadable snapshot %s: %s", path, exc)
            return None
        if not isinstance(data, dict):
            self.logger.warning("Skipping malformed snapshot %s", path)
            return None
        metadata = data.get("metadata")
        if not isinstance(metadata, dict) or report_type not in data:
            self.logger.warning("Skipping snapshot without %s payload: %s", report_type, path)
            return None
        provenance_data = metadata.get("artemis")
        if not isinstance(provenance_data, dict):
            self.logger.warning("Skipping snapshot without provenance: %s", path)
            return None
        try:
            provenance = CommitInfo.from_dict(provenance_data)
        except ValueError as exc:
            self.logger.warning("Skipping snapshot with invalid commit date %s: %s", path, exc)
            return None
        return Snapshot(
            path=path,
            report_type=report_type,
            provenance=provenance,
            metadata=metadata,
            payload=data[report_type],
        )


__all__ = [
    "CLIENT_SIDE",
    "SERVER_SIDE",
    "Snapshot",
    "SnapshotStore",
    "SnapshotWriter",
    "side_name",
    "snapshot_filename",
]
