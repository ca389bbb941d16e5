"""Derived dashboard figures computed from loaded snapshots."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .analyzers.decoratorless_api import decorator_style_fields, function_style_fields
from .stores.snapshots import Snapshot

StatsByModule = Mapping[str, Mapping[str, int]]


@dataclass
class MigrationSide:
    decoratorless: int = 0
    decorator: int = 0
    module_count: int = 0
    completed_modules: int = 0

    @property
    def total(self) -> int:
        return self.decoratorless + self.decorator

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return self.decoratorless / self.total * 100


@dataclass
class MigrationProgress:
    current: MigrationSide
    compare: MigrationSide

    @property
    def current_percentage(self) -> float:
        return round(self.current.percentage, 1)

    @property
    def compare_percentage(self) -> float:
        return round(self.compare.percentage, 1)

    @property
    def percentage_change(self) -> float:
        return round(self.current.percentage - self.compare.percentage, 1)

    @property
    def remaining(self) -> int:
        return self.current.decorator

    @property
    def module_completion_percentage(self) -> float:
        if self.current.module_count == 0:
            return 100.0
        return round(self.current.completed_modules / self.current.module_count * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": {**asdict(self.current), "total": self.current.total},
            "compare": {**asdict(self.compare), "total": self.compare.total},
            "currentPercentage": self.current_percentage,
            "comparePercentage": self.compare_percentage,
            "percentageChange": self.percentage_change,
            "remaining": self.remaining,
            "moduleCompletionPercentage": self.module_completion_percentage,
        }


@dataclass
class ContributorStats:
    name: str
    total_contributions: int = 0
    apis_migrated: int = 0
    last_migration_date: Optional[datetime] = None
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rank": self.rank,
            "totalContributions": self.total_contributions,
            "apisMigrated": self.apis_migrated,
            "lastMigrationDate": self.last_migration_date.isoformat() if self.last_migration_date else None,
        }


@dataclass
class ModuleMigration:
    name: str
    decoratorless: int = 0
    decorator: int = 0
    previous_percentage: float = 0.0
    change: float = 0.0
    apis_migrated: int = 0
    rank: int = 0

    @property
    def total(self) -> int:
        return self.decoratorless + self.decorator

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return self.decoratorless / self.total * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rank": self.rank,
            "percentage": round(self.percentage, 1),
            "decoratorlessCount": self.decoratorless,
            "decoratorCount": self.decorator,
            "total": self.total,
            "previousPercentage": round(self.previous_percentage, 1),
            "change": round(self.change, 1),
            "apisMigrated": self.apis_migrated,
        }


def decoratorless_count(stats: Mapping[str, int]) -> int:
    return sum(int(stats.get(name, 0)) for name in function_style_fields())


def decorator_count(stats: Mapping[str, int]) -> int:
    return sum(int(stats.get(name, 0)) for name in decorator_style_fields())


def _summarize(payload: StatsByModule, modules: Sequence[str]) -> MigrationSide:
    side = MigrationSide(module_count=len(modules))
    for module in modules:
        stats = payload.get(module, {})
        migrated = decoratorless_count(stats)
        legacy = decorator_count(stats)
        side.decoratorless += migrated
        side.decorator += legacy
        if legacy == 0:
            side.completed_modules += 1
    return side


def migration_progress(current: StatsByModule, compare: StatsByModule) -> MigrationProgress:
    """Share of function-style APIs now versus in the comparison snapshot."""
    modules = sorted(set(current) | set(compare))
    return MigrationProgress(
        current=_summarize(current, modules),
        compare=_summarize(compare, modules),
    )


def contributor_leaderboard(
    snapshots: Sequence[Snapshot],
    *,
    since_hash: Optional[str] = None,
    until_hash: Optional[str] = None,
) -> List[ContributorStats]:
    """Attribute the change in function-style APIs between consecutive snapshots.

    Each delta is credited to the author of the newer commit. Modules missing
    from the older snapshot count in full; zero deltas are ignored. Ranks are
    by APIs migrated, ties share a rank.
    """
    ordered = sorted(snapshots, key=lambda snap: snap.provenance.date)
    ordered = _slice_between(ordered, since_hash, until_hash)

    contributors: Dict[str, ContributorStats] = {}
    for previous, current in zip(ordered, ordered[1:]):
        author = current.provenance.author
        if not author:
            continue
        delta = 0
        for module, stats in current.payload.items():
            before = previous.payload.get(module)
            if before is None:
                delta += decoratorless_count(stats)
            else:
                delta += decoratorless_count(stats) - decoratorless_count(before)
        if delta == 0:
            continue
        entry = contributors.setdefault(author, ContributorStats(name=author))
        entry.apis_migrated += delta
        entry.total_contributions += 1
        entry.last_migration_date = current.provenance.date

    board = [entry for entry in contributors.values() if entry.apis_migrated != 0]
    _assign_ranks(board)
    return board


def module_leaderboard(current: StatsByModule, compare: StatsByModule) -> List[ModuleMigration]:
    """Per-module migration state against the comparison snapshot.

    Modules without any of the tracked APIs are left out. A module absent from
    `compare` reports no change and no migrated APIs. Negative `apis_migrated`
    values mark regressions.
    """
    board: List[ModuleMigration] = []
    for module, stats in current.items():
        entry = ModuleMigration(
            name=module,
            decoratorless=decoratorless_count(stats),
            decorator=decorator_count(stats),
        )
        if entry.total == 0:
            continue
        before = compare.get(module)
        if before is not None:
            previous = MigrationSide(
                decoratorless=decoratorless_count(before), decorator=decorator_count(before)
            )
            entry.previous_percentage = previous.percentage
            entry.change = entry.percentage - previous.percentage
            entry.apis_migrated = entry.decoratorless - previous.decoratorless
        board.append(entry)
    _assign_ranks(board)
    return board


def _assign_ranks(board: List[Any]) -> None:
    """Sort by `apis_migrated` descending; equal values share a rank."""
    board.sort(key=lambda entry: (-entry.apis_migrated, entry.name))
    previous_value: Optional[int] = None
    rank = 0
    for index, entry in enumerate(board, start=1):
        if entry.apis_migrated != previous_value:
            rank = index
        entry.rank = rank
        previous_value = entry.apis_migrated


def module_totals(
    payload: StatsByModule, fields: Optional[Sequence[str]] = None
) -> List[tuple[str, int]]:
    """Modules ordered by their `total`, largest first.

    With `fields` the total is summed from those counters instead of read
    from the stored `total`.
    """
    totals = [(module, _module_total(stats, fields)) for module, stats in payload.items()]
    return sorted(totals, key=lambda item: (-item[1], item[0]))


def _module_total(stats: Mapping[str, Any], fields: Optional[Sequence[str]]) -> int:
    if fields is None:
        return int(stats.get("total", 0) or 0)
    return sum(int(stats.get(name, 0) or 0) for name in fields)


def _slice_between(
    ordered: Sequence[Snapshot], since_hash: Optional[str], until_hash: Optional[str]
) -> List[Snapshot]:
    hashes = [snap.provenance.hash for snap in ordered]
    start = _index_of(hashes, since_hash, default=0)
    end = _index_of(hashes, until_hash, default=len(ordered) - 1)
    if start > end:
        start, end = end, start
    return list(ordered[start : end + 1])


def _index_of(hashes: Sequence[str], wanted: Optional[str], *, default: int) -> int:
    if not wanted:
        return default
    for index, value in enumerate(hashes):
        if value == wanted or value.startswith(wanted):
            return index
    raise KeyError(f"Unknown commit {wanted}")


__all__ = [
    "ContributorStats",
    "MigrationProgress",
    "ModuleMigration",
    "contributor_leaderboard",
    "decorator_count",
    "decoratorless_count",
    "migration_progress",
    "module_leaderboard",
    "module_totals",
]
