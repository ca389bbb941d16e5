"""Core data models shared across codestats components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Marker:
    """Decorator attached to a class or member."""

    name: str
    text: str
    arguments: Optional[Tuple[str, ...]] = None

    @property
    def is_call(self) -> bool:
        return self.arguments is not None


@dataclass(frozen=True)
class MemberDecl:
    """Property declared in a class body."""

    name: str
    markers: Tuple[Marker, ...] = ()
    initializer: Optional[str] = None

    def has_marker(self, name: str) -> bool:
        return any(marker.name == name for marker in self.markers)


@dataclass(frozen=True)
class ClassDecl:
    """Class declaration with its decorators and property members."""

    name: str
    markers: Tuple[Marker, ...] = ()
    members: Tuple[MemberDecl, ...] = ()

    def has_marker(self, *names: str) -> bool:
        return any(marker.name in names for marker in self.markers)


@dataclass(frozen=True)
class SourceFile:
    """Parsed source file exposed by a source index."""

    path: str
    classes: Tuple[ClassDecl, ...] = ()


@dataclass(frozen=True)
class CommitInfo:
    """Provenance of a snapshot: the analyzed commit."""

    hash: str
    date: datetime
    author: str
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:8]

    def to_dict(self) -> Dict[str, str]:
        utc = self.date.astimezone(UTC)
        return {
            "commitHash": self.hash,
            "commitTimestamp": self.date.strftime("%Y-%m-%d %H:%M:%S %z").strip(),
            "commitDate": utc.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "commitAuthor": self.author,
            "commitMessage": self.message,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CommitInfo":
        raw_date = payload.get("commitDate") or payload.get("commitTimestamp")
        return cls(
            hash=str(payload.get("commitHash", "unknown")),
            date=parse_commit_date(str(raw_date)) if raw_date else datetime.now(UTC),
            author=str(payload.get("commitAuthor", "unknown")),
            message=str(payload.get("commitMessage", "unknown")),
        )


def parse_commit_date(value: str) -> datetime:
    """Parse ISO-8601 or `git %ci` timestamps into an aware datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S %z")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class ModuleTally:
    """Counters for one module. `total` is always derived from the fields."""

    fields: Sequence[str]
    counts: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fields = tuple(self.fields)
        for name in self.fields:
            self.counts.setdefault(name, 0)
        unknown = set(self.counts) - set(self.fields)
        if unknown:
            raise KeyError(f"Unknown tally fields: {', '.join(sorted(unknown))}")

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self.counts:
            raise KeyError(name)
        self.counts[name] += amount

    def __getitem__(self, name: str) -> int:
        return self.counts[name]

    @property
    def total(self) -> int:
        return sum(self.counts[name] for name in self.fields)

    def as_dict(self) -> Dict[str, int]:
        data = {name: self.counts[name] for name in self.fields}
        data["total"] = self.total
        return data
