"""Server-side report: entity/DTO boundary violations per module."""

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .logging import get_logger

REPORT_TYPE = "dtoViolations"

MODE_STATIC = "static"
MODE_THRESHOLDS = "thresholds"

VIOLATION_FIELDS = (
    "entityReturnViolations",
    "entityInputViolations",
    "dtoEntityFieldViolations",
)

_DATA_SOURCES = {
    MODE_STATIC: "Static source code analysis with an external extractor (full coverage)",
    MODE_THRESHOLDS: "Parsed from ArchUnit test thresholds (counts only, no details)",
}

_TEST_SUFFIX = "EntityUsageArchitectureTest.java"
_CLASS_PATTERN = re.compile(r"class\s+(\w+)EntityUsageArchitectureTest")
_THRESHOLD_PATTERNS = {
    "entityReturnViolations": re.compile(r"getMaxEntityReturnViolations\s*\(\s*\)\s*\{[^}]*return\s+(\d+)"),
    "entityInputViolations": re.compile(r"getMaxEntityInputViolations\s*\(\s*\)\s*\{[^}]*return\s+(\d+)"),
    "dtoEntityFieldViolations": re.compile(r"getMaxDtoEntityFieldViolations\s*\(\s*\)\s*\{[^}]*return\s+(\d+)"),
}
_SKIPPED_MODULES = {"abstractmodule", "incoming"}

logger = get_logger("dto_violations")


class ExtractorError(RuntimeError):
    """Raised when the external static extractor fails or times out."""


@dataclass
class DtoViolations:
    """Violation counts per module plus totals."""

    modules: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def totals(self) -> Dict[str, int]:
        return {
            name: sum(counts.get(name, 0) for counts in self.modules.values())
            for name in VIOLATION_FIELDS
        }

    @property
    def total(self) -> int:
        return sum(self.totals.values())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.details)
        data["modules"] = {
            module: {**counts, "total": violation_total(counts)}
            for module, counts in self.modules.items()
        }
        data["totals"] = self.totals
        return data


def violation_total(counts: Mapping[str, Any]) -> int:
    """Sum of the three violation kinds for one module."""
    return sum(int(counts.get(name, 0) or 0) for name in VIOLATION_FIELDS)


def data_source(mode: str) -> str:
    return _DATA_SOURCES[mode]


def parse_violation_thresholds(test_dir: Path) -> DtoViolations:
    """Read the allowed violation counts from the architecture test sources."""
    result = DtoViolations()
    files = _find_threshold_tests(test_dir)
    logger.info("Found %d %s files", len(files), _TEST_SUFFIX)
    for path in files:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Error parsing %s: %s", path, exc)
            continue
        counts = parse_threshold_source(content)
        if counts is None:
            continue
        module, values = counts
        result.modules[module] = values
        logger.debug(
            "%s: return=%d, input=%d, dtoField=%d",
            module,
            values["entityReturnViolations"],
            values["entityInputViolations"],
            values["dtoEntityFieldViolations"],
        )
    return result


def parse_threshold_source(content: str) -> Optional[tuple[str, Dict[str, int]]]:
    """Return ``(module, counts)`` for one architecture test, or None to skip it."""
    class_match = _CLASS_PATTERN.search(content)
    if not class_match:
        return None
    module = class_match.group(1).lower()
    if module in _SKIPPED_MODULES:
        return None
    values: Dict[str, int] = {}
    for name, pattern in _THRESHOLD_PATTERNS.items():
        match = pattern.search(content)
        values[name] = int(match.group(1)) if match else 0
    return module, values


def _find_threshold_tests(test_dir: Path) -> List[Path]:
    if not test_dir.is_dir():
        return []
    return sorted(path for path in test_dir.rglob(f"*{_TEST_SUFFIX}") if path.is_file())


class StaticExtractor:
    """Runs an external extractor that writes violations JSON to a file."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        timeout: float = 300.0,
        runner: Callable[..., None] | None = None,
    ) -> None:
        self.command = list(command)
        self.timeout = timeout
        self._runner = runner or self._default_runner

    def run(self, source_dir: Path, output_file: Path) -> DtoViolations:
        if not self.command:
            raise ExtractorError("No extractor command configured (server.extractor_command)")
        args = [part.format(source=source_dir, output=output_file) for part in self.command]
        output_file.parent.mkdir(parents=True, exist_ok=True)
        if output_file.exists():
            output_file.unlink()

        logger.info("Running static analysis...")
        try:
            self._runner(args, cwd=output_file.parent, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise ExtractorError(f"Extractor timed out after {self.timeout:.0f}s") from exc
        except (subprocess.CalledProcessError, OSError) as exc:
            raise ExtractorError(f"Failed to run static analyzer: {exc}") from exc

        if not output_file.exists():
            raise ExtractorError("Extractor output file not found")
        try:
            data = json.loads(output_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ExtractorError(f"Extractor output is not valid JSON: {exc}") from exc
        return violations_from_dict(data)

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path, timeout: float) -> None:
        subprocess.run(list(args), cwd=str(cwd), check=True, timeout=timeout)


def violations_from_dict(data: Any) -> DtoViolations:
    if not isinstance(data, dict) or not isinstance(data.get("modules"), dict):
        raise ExtractorError("Extractor output must contain a 'modules' mapping")
    modules: Dict[str, Dict[str, Any]] = {}
    for module, counts in data["modules"].items():
        if not isinstance(counts, dict):
            continue
        entry = dict(counts)
        entry.pop("total", None)
        entry.update({name: int(counts.get(name, 0) or 0) for name in VIOLATION_FIELDS})
        modules[str(module)] = entry
    details = {key: value for key, value in data.items() if key not in {"modules", "totals"}}
    return DtoViolations(modules=modules, details=details)


__all__ = [
    "DtoViolations",
    "ExtractorError",
    "MODE_STATIC",
    "MODE_THRESHOLDS",
    "REPORT_TYPE",
    "StaticExtractor",
    "VIOLATION_FIELDS",
    "data_source",
    "parse_threshold_source",
    "parse_violation_thresholds",
    "violation_total",
    "violations_from_dict",
]
