"""Historical commit walks: resolve a range, check out each commit, analyze it."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import DEFAULT_CUTOFF_DATE, ConfigError
from ..logging import get_logger
from ..models import CommitInfo
from .worktree import WorkingTreeHandle

_RELATIVE_PATTERN = re.compile(r"^(\d+)([hdwmy])$")

logger = get_logger("history")


class HistoryError(RuntimeError):
    """Raised when a historical walk cannot start at all."""


@dataclass
class CommitOutcome:
    commit: CommitInfo
    paths: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WalkSummary:
    """Per-commit results of a historical walk."""

    outcomes: List[CommitOutcome] = field(default_factory=list)
    restored: bool = False

    @property
    def successes(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failures(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def snapshots(self) -> List[Path]:
        return [path for outcome in self.outcomes for path in outcome.paths]


def parse_relative_time(expression: str, now: Optional[datetime] = None) -> datetime:
    """Turn ``7d``/``24h``/``2w``/``1m``/``1y`` into an absolute point in the past."""
    now = now or datetime.now(UTC)
    match = _RELATIVE_PATTERN.match(expression.strip())
    if not match:
        raise ConfigError(
            f"Invalid relative time format: {expression}. "
            "Valid formats: Xh (hours), Xd (days), Xw (weeks), Xm (months), Xy (years)"
        )
    value = int(match.group(1))
    unit = match.group(2)
    if unit == "h":
        return now - timedelta(hours=value)
    if unit == "d":
        return now - timedelta(days=value)
    if unit == "w":
        return now - timedelta(weeks=value)
    if unit == "m":
        return _shift_months(now, -value)
    return _shift_months(now, -12 * value)


def parse_start_date(text: str) -> datetime:
    """Parse an ISO date (``YYYY-MM-DD``) or datetime given on the command line."""
    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid date format for --start: {text} (expected YYYY-MM-DD)") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def select_commits(
    commits: Sequence[CommitInfo],
    cutoff: datetime = DEFAULT_CUTOFF_DATE,
    *,
    interval: int = 1,
    limit: Optional[int] = None,
) -> List[CommitInfo]:
    """Drop commits before `cutoff`, keep every `interval`-th, cap to `limit`."""
    if interval < 1:
        raise ConfigError(f"--interval must be a positive integer, got {interval}")
    if limit is not None and limit < 1:
        raise ConfigError(f"--commits must be a positive integer, got {limit}")

    ordered = sorted(commits, key=lambda commit: commit.date)
    kept = [commit for commit in ordered if commit.date >= cutoff]
    if len(kept) < len(ordered):
        logger.info("Filtered out %d commits earlier than cutoff date", len(ordered) - len(kept))
    sampled = kept[::interval]
    if limit is not None:
        sampled = sampled[:limit]
    return sampled


def _shift_months(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class HistoricalWalker:
    """Sequentially checks out commits and runs an analysis on each one."""

    def __init__(
        self,
        tree: WorkingTreeHandle,
        *,
        cutoff: datetime = DEFAULT_CUTOFF_DATE,
        max_commits: int = 1000,
    ) -> None:
        self.tree = tree
        self.cutoff = cutoff
        self.max_commits = max_commits

    def resolve(
        self,
        start: datetime,
        *,
        interval: int = 1,
        limit: Optional[int] = None,
    ) -> List[CommitInfo]:
        commits = self.tree.commits_since(start, limit=self.max_commits)
        selected = select_commits(commits, self.cutoff, interval=interval, limit=limit)
        if not selected:
            raise HistoryError("No commits found from the specified start date")
        logger.info(
            "Found %d commits to analyze with interval %d; will analyze %d",
            len(commits),
            interval,
            len(selected),
        )
        return selected

    def run(
        self,
        start: datetime,
        analyze: Callable[[CommitInfo], Sequence[Path]],
        *,
        interval: int = 1,
        limit: Optional[int] = None,
    ) -> WalkSummary:
        """Walk the commits from `start`; the working tree is restored afterwards."""
        commits = self.resolve(start, interval=interval, limit=limit)
        summary = WalkSummary()
        self.tree.acquire()
        try:
            for position, commit in enumerate(commits, start=1):
                logger.info(
                    "Commit %d/%d: %s %s %s",
                    position,
                    len(commits),
                    commit.short_hash,
                    commit.date.isoformat(),
                    commit.message,
                )
                summary.outcomes.append(self._visit(commit, analyze))
        finally:
            logger.info("Cleaning up...")
            summary.restored = self.tree.restore()

        logger.info(
            "Historical analysis complete: %d successful, %d failed",
            summary.successes,
            summary.failures,
        )
        return summary

    def _visit(self, commit: CommitInfo, analyze: Callable[[CommitInfo], Sequence[Path]]) -> CommitOutcome:
        if not self.tree.checkout(commit.hash):
            return CommitOutcome(commit=commit, error="checkout failed")
        try:
            paths = list(analyze(commit))
        except Exception as exc:
            logger.error("Analysis failed for commit %s: %s", commit.short_hash, exc)
            return CommitOutcome(commit=commit, error=str(exc))
        return CommitOutcome(commit=commit, paths=paths)


__all__ = [
    "CommitOutcome",
    "HistoricalWalker",
    "HistoryError",
    "WalkSummary",
    "parse_relative_time",
    "parse_start_date",
    "select_commits",
]
