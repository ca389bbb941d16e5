"""Exclusive handle on the working tree of the analyzed repository."""

from __future__ import annotations

import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..config import DEFAULT_FALLBACK_BRANCHES
from ..logging import get_logger
from ..models import CommitInfo, parse_commit_date

_LOG_FORMAT = "%H|%cI|%an|%s"
_DETACHED = "HEAD"

GIT_ERRORS = (subprocess.CalledProcessError, OSError)


class WorkingTreeHandle:
    """Wraps the `git` CLI for one working copy.

    Only one logical checkout exists at a time, so a walk acquires the handle
    once, moves it between commits, and restores it when done. Git failures
    are logged and turned into safe defaults; callers decide whether to go on.
    """

    def __init__(
        self,
        repo_dir: Path,
        runner: Callable[..., str] | None = None,
        *,
        fallback_branches: Sequence[str] = DEFAULT_FALLBACK_BRANCHES,
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.fallback_branches = list(fallback_branches)
        self._runner = runner or self._default_runner
        self._original_ref: Optional[str] = None
        self.logger = get_logger("git")

    # ------------------------------------------------------------------
    # Lifecycle

    def __enter__(self) -> "WorkingTreeHandle":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()

    def acquire(self) -> Optional[str]:
        """Remember the ref that is checked out before any walk begins."""
        self._original_ref = self.current_ref()
        self.logger.debug("Acquired working tree at %s", self._original_ref or "<unknown>")
        return self._original_ref

    @property
    def original_ref(self) -> Optional[str]:
        return self._original_ref

    # ------------------------------------------------------------------
    # Queries

    def head_commit(self) -> CommitInfo:
        try:
            output = self._run(["git", "show", "-s", f"--format={_LOG_FORMAT}", "HEAD"], capture_output=True)
            commits = _parse_log(output)
        except GIT_ERRORS as exc:
            self.logger.error("Error getting commit info: %s", exc)
            commits = []
        if not commits:
            return CommitInfo(hash="unknown", date=datetime.now(UTC), author="unknown", message="unknown")
        return commits[0]

    def commits_since(self, start: datetime, *, limit: int = 1000) -> List[CommitInfo]:
        """Commits at or after `start`, oldest first."""
        since = start.astimezone(UTC).isoformat()
        args = ["git", "log", f"--since={since}", f"--format={_LOG_FORMAT}", "-n", str(limit)]
        try:
            output = self._run(args, capture_output=True)
        except GIT_ERRORS as exc:
            self.logger.error("Error getting commits from start date: %s", exc)
            return []
        commits = _parse_log(output)
        commits.sort(key=lambda commit: commit.date)
        return commits

    def current_ref(self) -> Optional[str]:
        """Current branch name, ``HEAD`` when detached, None when git fails."""
        try:
            return self._run(["git", "rev-parse", "--abbrev-ref", "HEAD"], capture_output=True).strip()
        except GIT_ERRORS as exc:
            self.logger.error("Error reading current branch: %s", exc)
            return None

    def is_dirty(self) -> bool:
        output = self._run(["git", "status", "--porcelain"], capture_output=True)
        return bool(output.strip())

    def local_branches(self) -> List[str]:
        output = self._run(["git", "branch", "--format=%(refname:short)"], capture_output=True)
        return [line.strip() for line in output.splitlines() if line.strip()]

    # ------------------------------------------------------------------
    # Mutations

    def discard_changes(self) -> None:
        """Hard reset and remove untracked files. Irreversible."""
        self._run(["git", "reset", "--hard"])
        self._run(["git", "clean", "-fd"])

    def checkout(self, ref: str) -> bool:
        try:
            if self.is_dirty():
                self.logger.warning("Discarding uncommitted changes in %s", self.repo_dir)
                self.discard_changes()
            self._run(["git", "checkout", ref])
        except GIT_ERRORS as exc:
            self.logger.error("Error checking out to commit %s: %s", ref, exc)
            return False
        return True

    def restore(self) -> bool:
        """Return to the branch active at acquisition, or a fallback branch."""
        try:
            target = self._original_ref
            if not target or target == _DETACHED:
                target = self._fallback_branch()
            if target is None:
                self.logger.warning("No branch to restore in %s; leaving HEAD detached", self.repo_dir)
                return False
            if self.current_ref() == target:
                return True
            if self.is_dirty():
                self.discard_changes()
            self._run(["git", "checkout", target])
        except GIT_ERRORS as exc:
            self.logger.error("Error cleaning up after analysis: %s", exc)
            return False
        self.logger.info("Restored working tree to %s", target)
        return True

    def _fallback_branch(self) -> Optional[str]:
        branches = set(self.local_branches())
        for candidate in self.fallback_branches:
            if candidate in branches:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Helpers

    def _run(self, args: Iterable[str], *, capture_output: bool = False) -> str:
        return self._runner(args, cwd=self.repo_dir, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def _parse_log(output: str) -> List[CommitInfo]:
    commits: List[CommitInfo] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("|", 3)
        if len(parts) < 4:
            continue
        commit_hash, timestamp, author, message = parts
        try:
            date = parse_commit_date(timestamp)
        except ValueError:
            date = datetime.now(UTC)
        commits.append(CommitInfo(hash=commit_hash, date=date, author=author, message=message))
    return commits


__all__ = ["GIT_ERRORS", "WorkingTreeHandle"]
