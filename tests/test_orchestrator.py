from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from codestats.config import CodeStatsConfig, ConfigError
from codestats.dto_violations import MODE_THRESHOLDS, DtoViolations
from codestats.git import WorkingTreeHandle
from codestats.models import ClassDecl, CommitInfo, Marker, SourceFile
from codestats.orchestrator import Orchestrator, resolve_start
from tests._fixtures.fake_git import FakeGit, log_lines
from tests._fixtures.source_builder import BASE_PATH, StaticIndex

COMMIT = CommitInfo("0123456789abcdef", datetime(2025, 4, 1, 9, 0, tzinfo=UTC), "Ada", "Add things")


class _FakeExtractor:
    def __init__(self) -> None:
        self.calls: list[tuple[Path, Path]] = []

    def run(self, source_dir: Path, output_file: Path) -> DtoViolations:
        self.calls.append((source_dir, output_file))
        return DtoViolations(modules={"exam": {"entityReturnViolations": 2}})


def _config(tmp_path: Path) -> CodeStatsConfig:
    return CodeStatsConfig(
        root=tmp_path,
        repo_dir=tmp_path / "repo",
        modules=["core", "shared"],
        output_dir=tmp_path / "data",
    )


def _index(config: CodeStatsConfig) -> StaticIndex:
    marker = Marker(
        name="Component",
        text="@Component({ changeDetection: ChangeDetectionStrategy.OnPush })",
        arguments=("{ changeDetection: ChangeDetectionStrategy.OnPush }",),
    )
    path = f"{config.repo_dir}/{BASE_PATH}/core/a.component.ts"
    return StaticIndex([SourceFile(path=path, classes=(ClassDecl("A", markers=(marker,)),))])


def _orchestrator(tmp_path: Path, git: FakeGit | None = None) -> Orchestrator:
    config = _config(tmp_path)
    return Orchestrator(
        config,
        index_factory=_index,
        tree=WorkingTreeHandle(config.repo_dir, runner=git or FakeGit()),
        extractor=_FakeExtractor(),  # type: ignore[arg-type]
    )


def test_resolve_start_variants() -> None:
    assert resolve_start(None, None) is None
    assert resolve_start("2025-04-01", None) == datetime(2025, 4, 1, tzinfo=UTC)
    assert resolve_start(None, "7d") is not None
    with pytest.raises(ConfigError):
        resolve_start("2025-04-01", "7d")


def test_generate_client_reports_writes_one_snapshot_per_classifier(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)

    paths = orchestrator.generate_client_reports(COMMIT)

    assert [path.parent.name for path in paths] == [
        "componentInventory",
        "changeDetection",
        "decoratorlessAPI",
    ]
    data = json.loads(paths[1].read_text(encoding="utf-8"))
    assert data["metadata"]["artemis"]["commitHash"] == COMMIT.hash
    assert data["changeDetection"]["core"]["explicitOnPush"] == 1
    assert data["changeDetection"]["shared"]["total"] == 0
    assert paths[1].name == "changeDetection_2025-04-01_09-00-00_01234567.json"


def test_generate_client_reports_uses_head_commit_by_default(tmp_path: Path) -> None:
    git = FakeGit(log=log_lines(("feedbeef00", "2025-04-02T00:00:00Z", "Bo", "head")))
    orchestrator = _orchestrator(tmp_path, git)

    paths = orchestrator.generate_client_reports()

    assert all(path.name.endswith("_feedbeef.json") for path in paths)


def test_generate_server_report_static_mode(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)

    path = orchestrator.generate_server_report(commit=COMMIT)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert path.parent == tmp_path / "data" / "server" / "dtoViolations"
    assert data["metadata"]["dataSource"].startswith("Static source code analysis")
    assert data["dtoViolations"]["totals"]["entityReturnViolations"] == 2
    (call,) = orchestrator.extractor.calls  # type: ignore[attr-defined]
    assert call == (tmp_path / "repo" / "src/main/java", tmp_path / ".codestats" / "violations.json")


def test_generate_server_report_threshold_mode(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)

    path = orchestrator.generate_server_report(MODE_THRESHOLDS, COMMIT)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["metadata"]["dataSource"].startswith("Parsed from ArchUnit")
    assert data["dtoViolations"]["modules"] == {}


def test_generate_server_report_rejects_unknown_mode(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        _orchestrator(tmp_path).generate_server_report("guess", COMMIT)


def test_run_history_writes_snapshots_per_commit(tmp_path: Path) -> None:
    git = FakeGit(
        log=log_lines(
            ("bbbbbbbb22", "2025-04-02T00:00:00Z", "Bo", "two"),
            ("aaaaaaaa11", "2025-04-01T00:00:00Z", "Al", "one"),
        )
    )
    orchestrator = _orchestrator(tmp_path, git)

    summary = orchestrator.run_history(datetime(2025, 4, 1, tzinfo=UTC), side="server")

    assert summary.successes == 2
    assert [path.name.split("_")[-1] for path in summary.snapshots] == [
        "aaaaaaaa.json",
        "bbbbbbbb.json",
    ]
    assert summary.restored is True


def test_run_history_rejects_unknown_side(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        _orchestrator(tmp_path).run_history(datetime(2025, 4, 1, tzinfo=UTC), side="mobile")
