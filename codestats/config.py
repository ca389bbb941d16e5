"""Configuration loading for codestats (.codestats.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".codestats.yml"

DEFAULT_MODULES: tuple[str, ...] = (
    "admin",
    "assessment",
    "atlas",
    "buildagent",
    "communication",
    "core",
    "exam",
    "exercise",
    "fileupload",
    "iris",
    "lecture",
    "lti",
    "modeling",
    "plagiarism",
    "programming",
    "quiz",
    "shared",
    "text",
    "tutorialgroup",
)

DEFAULT_CUTOFF_DATE = datetime(2025, 3, 28, tzinfo=UTC)
DEFAULT_FALLBACK_BRANCHES: tuple[str, ...] = ("develop", "main", "master")
DEFAULT_EXTRACTOR_TIMEOUT = 300.0

_MATCHING_MODES = {"substring", "segments"}


class ConfigError(RuntimeError):
    """Raised when configuration or command-line input is invalid."""


@dataclass
class HistoryConfig:
    """Settings for historical commit walks."""

    cutoff_date: datetime = DEFAULT_CUTOFF_DATE
    fallback_branches: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_BRANCHES))
    max_commits: int = 1000


@dataclass
class ServerConfig:
    """Settings for the server-side DTO violations report."""

    source_dir: str = "src/main/java"
    test_dir: str = "src/test/java/de/tum/cit/aet/artemis"
    extractor_command: List[str] = field(default_factory=list)
    extractor_timeout: float = DEFAULT_EXTRACTOR_TIMEOUT


@dataclass
class CodeStatsConfig:
    """Represents the settings defined in .codestats.yml."""

    root: Path
    repo_dir: Path
    base_path: str = "src/main/webapp/app"
    modules: List[str] = field(default_factory=lambda: list(DEFAULT_MODULES))
    output_dir: Path = Path("data")
    module_matching: str = "substring"
    classifiers: List[str] = field(default_factory=list)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def match_segments(self) -> bool:
        return self.module_matching == "segments"


def load_config(config_path: Path) -> CodeStatsConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CodeStatsConfig(root=root, repo_dir=root / "artemis", output_dir=root / "data")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    repo_dir = root / (_as_str(data.get("repo_dir")) or "artemis")
    output_dir = root / (_as_str(data.get("output_dir")) or "data")
    config = CodeStatsConfig(root=root, repo_dir=repo_dir, output_dir=output_dir)

    base_path = _as_str(data.get("base_path"))
    if base_path:
        config.base_path = base_path.strip("/")

    modules = _as_str_list(data.get("modules"))
    if modules:
        if len(set(modules)) != len(modules):
            raise ConfigError("modules must not contain duplicates")
        config.modules = modules

    matching = _as_str(data.get("module_matching"))
    if matching:
        if matching not in _MATCHING_MODES:
            choices = ", ".join(sorted(_MATCHING_MODES))
            raise ConfigError(f"module_matching must be one of: {choices}")
        config.module_matching = matching

    config.classifiers = _as_str_list(data.get("classifiers"))

    history_data = _as_dict(data.get("history"))
    if history_data:
        cutoff = history_data.get("cutoff_date")
        if cutoff is not None:
            config.history.cutoff_date = _as_datetime(cutoff, "history.cutoff_date")
        branches = _as_str_list(history_data.get("fallback_branches"))
        if branches:
            config.history.fallback_branches = branches
        max_commits = _as_int(history_data.get("max_commits"))
        if max_commits is not None:
            if max_commits < 1:
                raise ConfigError("history.max_commits must be a positive integer")
            config.history.max_commits = max_commits

    server_data = _as_dict(data.get("server"))
    if server_data:
        config.server.source_dir = _as_str(server_data.get("source_dir")) or config.server.source_dir
        config.server.test_dir = _as_str(server_data.get("test_dir")) or config.server.test_dir
        config.server.extractor_command = _as_str_list(server_data.get("extractor_command"))
        timeout = _as_float(server_data.get("extractor_timeout"))
        if timeout is not None:
            if timeout <= 0:
                raise ConfigError("server.extractor_timeout must be greater than zero")
            config.server.extractor_timeout = timeout

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_datetime(value: Any, key: str) -> datetime:
    # PyYAML already turns unquoted ISO dates into date/datetime objects.
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as exc:
            raise ConfigError(f"{key} must be an ISO date (YYYY-MM-DD), got {value!r}") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise ConfigError(f"{key} must be an ISO date (YYYY-MM-DD)")


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CodeStatsConfig",
    "ConfigError",
    "DEFAULT_CUTOFF_DATE",
    "DEFAULT_MODULES",
    "HistoryConfig",
    "ServerConfig",
    "load_config",
]
