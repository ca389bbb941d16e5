from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from codestats.models import CommitInfo
from codestats.stores import SnapshotStore, SnapshotWriter, snapshot_filename


def _commit(hash_: str, second: int = 5, day: int = 1) -> CommitInfo:
    return CommitInfo(hash_, datetime(2025, 4, day, 10, 20, second, tzinfo=UTC), "Ada", "msg")


def test_snapshot_filename_uses_utc_timestamp_and_short_hash() -> None:
    commit = _commit("abcdef0123456789")

    assert snapshot_filename("changeDetection", commit) == "changeDetection_2025-04-01_10-20-05_abcdef01.json"
    assert snapshot_filename("changeDetection", commit, 3).endswith("_abcdef01-3.json")


def test_writer_lays_out_files_by_side_and_type(tmp_path: Path) -> None:
    writer = SnapshotWriter(tmp_path)
    commit = _commit("abcdef0123456789")

    client = writer.write("componentInventory", {"core": {"total": 0}}, commit)
    server = writer.write(
        "dtoViolations",
        {"modules": {}},
        commit,
        client_side=False,
        extra_metadata={"dataSource": "thresholds"},
    )

    assert client.parent == tmp_path / "client" / "componentInventory"
    assert server.parent == tmp_path / "server" / "dtoViolations"
    data = json.loads(server.read_text(encoding="utf-8"))
    assert data["metadata"]["type"] == "dtoViolations"
    assert data["metadata"]["dataSource"] == "thresholds"
    assert data["metadata"]["artemis"]["commitHash"] == "abcdef0123456789"
    assert data["dtoViolations"] == {"modules": {}}
    assert server.read_text(encoding="utf-8").endswith("}\n")


def test_writer_keeps_distinct_commits_in_same_second_apart(tmp_path: Path) -> None:
    writer = SnapshotWriter(tmp_path)

    first = writer.write("changeDetection", {}, _commit("aaaaaaaa11111111"))
    second = writer.write("changeDetection", {}, _commit("bbbbbbbb22222222"))

    assert first != second
    assert first.exists() and second.exists()


def test_writer_reuses_identical_snapshot(tmp_path: Path) -> None:
    writer = SnapshotWriter(tmp_path)
    commit = _commit("abcdef0123456789")

    first = writer.write("changeDetection", {"core": {"total": 1}}, commit)
    second = writer.write("changeDetection", {"core": {"total": 1}}, commit)

    assert first == second
    assert len(list(first.parent.iterdir())) == 1


def test_writer_versions_conflicting_snapshot(tmp_path: Path) -> None:
    writer = SnapshotWriter(tmp_path)
    commit = _commit("abcdef0123456789")

    first = writer.write("changeDetection", {"core": {"total": 1}}, commit)
    second = writer.write("changeDetection", {"core": {"total": 2}}, commit)

    assert second.name == first.name.replace(".json", "-2.json")
    assert json.loads(first.read_text(encoding="utf-8"))["changeDetection"] == {"core": {"total": 1}}


def test_store_loads_oldest_first_and_skips_malformed(tmp_path: Path) -> None:
    writer = SnapshotWriter(tmp_path)
    writer.write("decoratorlessAPI", {"n": 2}, _commit("bbbbbbbb", day=2))
    writer.write("decoratorlessAPI", {"n": 1}, _commit("aaaaaaaa", day=1))
    directory = writer.directory("decoratorlessAPI")
    (directory / "broken.json").write_text("{not json", encoding="utf-8")
    (directory / "other.json").write_text(json.dumps({"metadata": {}}), encoding="utf-8")

    store = SnapshotStore(tmp_path)
    snapshots = store.load("decoratorlessAPI")

    assert [snap.payload for snap in snapshots] == [{"n": 1}, {"n": 2}]
    assert store.latest("decoratorlessAPI").provenance.hash == "bbbbbbbb"
    assert store.load("decoratorlessAPI", client_side=False) == []
