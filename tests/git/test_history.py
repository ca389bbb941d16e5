from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from codestats.config import ConfigError
from codestats.git import HistoricalWalker, HistoryError, WorkingTreeHandle
from codestats.git.history import parse_relative_time, parse_start_date, select_commits
from codestats.models import CommitInfo
from tests._fixtures.fake_git import FakeGit, log_lines

CUTOFF = datetime(2025, 3, 28, tzinfo=UTC)


def _commit(hash_: str, day: int, month: int = 4) -> CommitInfo:
    return CommitInfo(hash_, datetime(2025, month, day, tzinfo=UTC), "Al", hash_)


def test_parse_relative_time_units() -> None:
    now = datetime(2025, 5, 31, 12, 0, tzinfo=UTC)

    assert parse_relative_time("24h", now) == datetime(2025, 5, 30, 12, 0, tzinfo=UTC)
    assert parse_relative_time("7d", now) == datetime(2025, 5, 24, 12, 0, tzinfo=UTC)
    assert parse_relative_time("2w", now) == datetime(2025, 5, 17, 12, 0, tzinfo=UTC)
    assert parse_relative_time("1m", now) == datetime(2025, 4, 30, 12, 0, tzinfo=UTC)
    assert parse_relative_time("1y", now) == datetime(2024, 5, 31, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize("expression", ["7", "d7", "7x", "-1d", ""])
def test_parse_relative_time_rejects_bad_input(expression: str) -> None:
    with pytest.raises(ConfigError):
        parse_relative_time(expression)


def test_parse_start_date() -> None:
    assert parse_start_date("2025-04-01") == datetime(2025, 4, 1, tzinfo=UTC)
    with pytest.raises(ConfigError):
        parse_start_date("April first")


def test_select_commits_drops_commits_before_cutoff() -> None:
    commits = [_commit("old", 20, month=3), _commit("new", 1)]

    assert [c.hash for c in select_commits(commits, CUTOFF)] == ["new"]


def test_select_commits_samples_then_limits() -> None:
    commits = [_commit(f"c{day}", day) for day in range(1, 8)]

    every_other = select_commits(commits, CUTOFF, interval=2)
    capped = select_commits(commits, CUTOFF, interval=2, limit=2)

    assert [c.hash for c in every_other] == ["c1", "c3", "c5", "c7"]
    assert [c.hash for c in capped] == ["c1", "c3"]


@pytest.mark.parametrize(("interval", "limit"), [(0, None), (1, 0)])
def test_select_commits_rejects_non_positive_values(interval: int, limit: int | None) -> None:
    with pytest.raises(ConfigError):
        select_commits([], CUTOFF, interval=interval, limit=limit)


def _walker(git: FakeGit, tmp_path: Path) -> HistoricalWalker:
    return HistoricalWalker(WorkingTreeHandle(tmp_path, runner=git), cutoff=CUTOFF)


def test_walker_raises_when_no_commits_remain(tmp_path: Path) -> None:
    git = FakeGit(log=log_lines(("old", "2025-01-01T00:00:00Z", "Al", "old")))

    with pytest.raises(HistoryError):
        _walker(git, tmp_path).run(datetime(2025, 1, 1, tzinfo=UTC), lambda commit: [])

    assert git.commands("checkout") == []


def test_walker_continues_past_failures_and_restores(tmp_path: Path) -> None:
    git = FakeGit(
        log=log_lines(
            ("c3", "2025-04-03T00:00:00Z", "Al", "three"),
            ("c2", "2025-04-02T00:00:00Z", "Al", "two"),
            ("c1", "2025-04-01T00:00:00Z", "Al", "one"),
        ),
        failing=["c2"],
    )
    visited = []

    def analyze(commit: CommitInfo) -> list[Path]:
        visited.append(commit.hash)
        if commit.hash == "c3":
            raise RuntimeError("boom")
        return [tmp_path / f"{commit.hash}.json"]

    summary = _walker(git, tmp_path).run(datetime(2025, 4, 1, tzinfo=UTC), analyze)

    assert visited == ["c1", "c3"]
    assert summary.successes == 1
    assert summary.failures == 2
    assert summary.snapshots == [tmp_path / "c1.json"]
    assert summary.outcomes[2].error == "boom"
    assert summary.restored is True
    assert git.ref == "feature"


def test_walker_restores_after_unexpected_interrupt(tmp_path: Path) -> None:
    git = FakeGit(log=log_lines(("c1", "2025-04-01T00:00:00Z", "Al", "one")))

    def analyze(commit: CommitInfo) -> list[Path]:
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        _walker(git, tmp_path).run(datetime(2025, 4, 1, tzinfo=UTC), analyze)

    assert git.ref == "feature"
