"""Pipeline orchestration for single-shot and historical report runs."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .aggregator import SourceIndex, aggregate
from .analyzers import Classifier, discover_classifiers
from .analyzers.tree_sitter import TypeScriptSourceIndex
from .config import CodeStatsConfig, ConfigError
from .dto_violations import (
    MODE_STATIC,
    MODE_THRESHOLDS,
    REPORT_TYPE as DTO_REPORT_TYPE,
    DtoViolations,
    StaticExtractor,
    data_source,
    parse_violation_thresholds,
)
from .git.history import HistoricalWalker, WalkSummary, parse_relative_time, parse_start_date
from .git.worktree import WorkingTreeHandle
from .logging import get_logger
from .models import CommitInfo
from .stores.snapshots import CLIENT_SIDE, SERVER_SIDE, SnapshotWriter

SIDES = (CLIENT_SIDE, SERVER_SIDE)


def resolve_start(start: Optional[str], relative: Optional[str]) -> Optional[datetime]:
    """Absolute start of a historical run, or None for a current-state run."""
    if start and relative:
        raise ConfigError("Use either --start or --relative, not both")
    if relative:
        return parse_relative_time(relative)
    if start:
        return parse_start_date(start)
    return None


class Orchestrator:
    """Coordinates aggregation, snapshot writing and historical walks."""

    def __init__(
        self,
        config: CodeStatsConfig,
        *,
        classifiers: Optional[Sequence[Classifier]] = None,
        index_factory: Optional[Callable[[CodeStatsConfig], SourceIndex]] = None,
        tree: Optional[WorkingTreeHandle] = None,
        writer: Optional[SnapshotWriter] = None,
        extractor: Optional[StaticExtractor] = None,
    ) -> None:
        self.config = config
        self.classifiers = (
            list(classifiers) if classifiers is not None else discover_classifiers(config.classifiers)
        )
        self._index_factory = index_factory or _default_index
        self.tree = tree or WorkingTreeHandle(
            config.repo_dir, fallback_branches=config.history.fallback_branches
        )
        self.writer = writer or SnapshotWriter(config.output_dir)
        self.extractor = extractor or StaticExtractor(
            config.server.extractor_command, timeout=config.server.extractor_timeout
        )
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Client-side (TypeScript) reports

    def generate_client_reports(self, commit: Optional[CommitInfo] = None) -> List[Path]:
        """Aggregate every classifier in one pass and write one snapshot each."""
        provenance = commit or self.tree.head_commit()
        self.logger.info("Analyzing %s at %s", self.config.repo_dir, provenance.short_hash)
        index = self._index_factory(self.config)
        result = aggregate(
            index,
            self.config.modules,
            self.config.base_path,
            self.classifiers,
            match_segments=self.config.match_segments,
        )
        self.logger.info(
            "Matched %d of %d files to %d modules",
            result.files_matched,
            result.files_seen,
            len(self.config.modules),
        )
        return [
            self.writer.write(report_type, result.report(report_type), provenance, client_side=True)
            for report_type in result.report_types
        ]

    # ------------------------------------------------------------------
    # Server-side (Java) report

    def generate_server_report(
        self, mode: str = MODE_STATIC, commit: Optional[CommitInfo] = None
    ) -> Path:
        if mode not in (MODE_STATIC, MODE_THRESHOLDS):
            raise ConfigError(f"Unknown server report mode: {mode}")
        provenance = commit or self.tree.head_commit()
        self.logger.info(
            "DTO violations for %s (%s) by %s: %s",
            provenance.short_hash,
            provenance.date.isoformat(),
            provenance.author,
            provenance.message,
        )

        violations = self._collect_violations(mode)
        totals = violations.totals
        self.logger.info(
            "Entity return: %d, entity input: %d, DTO entity field: %d, total: %d across %d modules",
            totals["entityReturnViolations"],
            totals["entityInputViolations"],
            totals["dtoEntityFieldViolations"],
            violations.total,
            len(violations.modules),
        )
        return self.writer.write(
            DTO_REPORT_TYPE,
            violations.to_dict(),
            provenance,
            client_side=False,
            extra_metadata={"dataSource": data_source(mode)},
        )

    def _collect_violations(self, mode: str) -> DtoViolations:
        repo = self.config.repo_dir
        if mode == MODE_THRESHOLDS:
            self.logger.info("Mode: threshold parsing (counts only)")
            return parse_violation_thresholds(repo / self.config.server.test_dir)
        self.logger.info("Mode: static source code analysis (full details)")
        output_file = self.config.root / ".codestats" / "violations.json"
        return self.extractor.run(repo / self.config.server.source_dir, output_file)

    # ------------------------------------------------------------------
    # Historical runs

    def run_history(
        self,
        start: datetime,
        *,
        side: str = CLIENT_SIDE,
        mode: str = MODE_STATIC,
        interval: int = 1,
        limit: Optional[int] = None,
    ) -> WalkSummary:
        if side not in SIDES:
            raise ConfigError(f"Unknown report side: {side}")
        walker = HistoricalWalker(
            self.tree,
            cutoff=self.config.history.cutoff_date,
            max_commits=self.config.history.max_commits,
        )
        self.logger.info("Analyzing %s reports from %s", side, start.isoformat())

        def _analyze(commit: CommitInfo) -> List[Path]:
            if side == CLIENT_SIDE:
                return self.generate_client_reports(commit)
            return [self.generate_server_report(mode, commit)]

        return walker.run(start, _analyze, interval=interval, limit=limit)


def _default_index(config: CodeStatsConfig) -> SourceIndex:
    return TypeScriptSourceIndex(config.repo_dir, config.base_path, config.modules)


__all__ = ["Orchestrator", "SIDES", "resolve_start"]
