"""Version-control helpers: working tree handle and historical walks."""

from .history import HistoricalWalker, HistoryError, WalkSummary
from .worktree import WorkingTreeHandle

__all__ = ["HistoricalWalker", "HistoryError", "WalkSummary", "WorkingTreeHandle"]
