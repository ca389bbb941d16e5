from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from codestats.git import WorkingTreeHandle
from tests._fixtures.fake_git import FakeGit, log_lines


def test_commits_since_orders_oldest_first(tmp_path: Path) -> None:
    git = FakeGit(
        log=log_lines(
            ("c3", "2025-04-03T10:00:00+02:00", "Cy", "third"),
            ("c2", "2025-04-02T10:00:00+00:00", "Bo", "second | with pipe"),
            ("c1", "2025-04-01T10:00:00+00:00", "Al", "first"),
        )
    )
    tree = WorkingTreeHandle(tmp_path, runner=git)

    commits = tree.commits_since(datetime(2025, 4, 1, tzinfo=UTC), limit=50)

    assert [commit.hash for commit in commits] == ["c1", "c2", "c3"]
    assert commits[1].message == "second | with pipe"
    (call,) = git.commands("log")
    assert "--since=2025-04-01T00:00:00+00:00" in call
    assert call[-2:] == ["-n", "50"]
    assert git.cwd == tmp_path


def test_commits_since_returns_empty_on_git_failure(tmp_path: Path) -> None:
    tree = WorkingTreeHandle(tmp_path, runner=FakeGit(failing=["log"]))

    assert tree.commits_since(datetime(2025, 4, 1, tzinfo=UTC)) == []


def test_head_commit_falls_back_to_unknown(tmp_path: Path) -> None:
    git = FakeGit(log=log_lines(("abc", "2025-04-01T10:00:00Z", "Al", "subject")))
    assert WorkingTreeHandle(tmp_path, runner=git).head_commit().hash == "abc"

    broken = WorkingTreeHandle(tmp_path, runner=FakeGit(failing=["show"]))
    commit = broken.head_commit()
    assert commit.hash == "unknown"
    assert commit.author == "unknown"


def test_checkout_discards_dirty_tree_first(tmp_path: Path) -> None:
    git = FakeGit(dirty=True)
    tree = WorkingTreeHandle(tmp_path, runner=git)

    assert tree.checkout("c1") is True
    commands = [call[1] for call in git.calls]
    assert commands == ["status", "reset", "clean", "checkout"]


def test_checkout_reports_failure(tmp_path: Path) -> None:
    tree = WorkingTreeHandle(tmp_path, runner=FakeGit(failing=["c1"]))

    assert tree.checkout("c1") is False


def test_context_manager_restores_original_branch(tmp_path: Path) -> None:
    git = FakeGit(ref="feature")

    with WorkingTreeHandle(tmp_path, runner=git) as tree:
        assert tree.original_ref == "feature"
        tree.checkout("c1")
        assert git.ref == "HEAD"

    assert git.ref == "feature"
    assert git.commands("checkout")[-1] == ["git", "checkout", "feature"]


def test_restore_uses_fallback_branch_when_detached(tmp_path: Path) -> None:
    git = FakeGit(ref="HEAD", branches=("main", "develop"))
    tree = WorkingTreeHandle(tmp_path, runner=git)
    tree.acquire()

    assert tree.restore() is True
    assert git.ref == "develop"


def test_restore_without_candidate_branch_fails(tmp_path: Path) -> None:
    git = FakeGit(ref="HEAD", branches=("release",))
    tree = WorkingTreeHandle(tmp_path, runner=git)
    tree.acquire()

    assert tree.restore() is False
    assert git.commands("checkout") == []


def test_restore_is_noop_on_original_branch(tmp_path: Path) -> None:
    git = FakeGit(ref="feature")
    tree = WorkingTreeHandle(tmp_path, runner=git)
    tree.acquire()

    assert tree.restore() is True
    assert git.commands("checkout") == []
