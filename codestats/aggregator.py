"""Per-module aggregation of classifier tallies."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Protocol, Sequence

from .analyzers.base import Classifier
from .logging import get_logger
from .models import ModuleTally, SourceFile

logger = get_logger("aggregator")


class SourceIndex(Protocol):
    """Anything that can enumerate parsed source files."""

    def list_files(self) -> Iterable[SourceFile]:
        ...


def resolve_module(
    file_path: str,
    base_path: str,
    modules: Sequence[str],
    *,
    match_segments: bool = False,
) -> Optional[str]:
    """Return the first module whose `<base_path>/<module>` occurs in `file_path`.

    Matching is plain substring containment, so the order of `modules` decides
    between overlapping names (``core`` claims ``.../corelib/...`` when it is
    listed first). With `match_segments` the module directory must appear as
    whole path segments instead.
    """
    normalized = file_path.replace("\\", "/")
    for module in modules:
        prefix = posixpath.join(base_path.replace("\\", "/"), module)
        if match_segments:
            if f"/{prefix.strip('/')}/" in f"/{normalized.strip('/')}/":
                return module
        elif prefix in normalized:
            return module
    return None


@dataclass
class AggregationResult:
    """Finalized tallies keyed by report type, then by module name."""

    modules: Sequence[str]
    tallies: Dict[str, Dict[str, ModuleTally]] = field(default_factory=dict)
    files_seen: int = 0
    files_matched: int = 0

    @property
    def report_types(self) -> list[str]:
        return list(self.tallies)

    def report(self, report_type: str) -> Dict[str, Dict[str, int]]:
        per_module = self.tallies[report_type]
        return {module: per_module[module].as_dict() for module in self.modules}


def aggregate(
    index: SourceIndex,
    modules: Sequence[str],
    base_path: str,
    classifiers: Sequence[Classifier],
    *,
    match_segments: bool = False,
) -> AggregationResult:
    """Run every classifier over every file that resolves to a configured module."""
    result = AggregationResult(modules=list(modules))
    for classifier in classifiers:
        result.tallies[classifier.report_type] = {
            module: classifier.new_tally() for module in modules
        }

    for source in index.list_files():
        result.files_seen += 1
        module = resolve_module(source.path, base_path, modules, match_segments=match_segments)
        if module is None:
            continue
        result.files_matched += 1
        for classifier in classifiers:
            classifier.classify(source, module, result.tallies[classifier.report_type][module])

    logger.debug(
        "Aggregated %d of %d files across %d modules",
        result.files_matched,
        result.files_seen,
        len(result.modules),
    )
    return result


__all__ = ["AggregationResult", "SourceIndex", "aggregate", "resolve_module"]
