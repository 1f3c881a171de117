"""TOML config loader and validation."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from repo_introspector.models import ComplexityPolicy

CONFIG_DIR_NAME = ".introspector"
CONFIG_FILE_NAME = "config.toml"

DEFAULT_MAX_FILE_SIZE = 1_048_576  # 1 MB
DEFAULT_MAX_COMMITS = 20
DEFAULT_MAX_HISTORY_COMMITS = 1000
DEFAULT_MAX_FILE_HISTORY = 50
DEFAULT_GIT_TIMEOUT = 30.0
DEFAULT_MAX_OUTPUT_BYTES = 1_048_576


def _default_max_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass(frozen=True)
class ScannerSettings:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def __post_init__(self):
        if self.max_file_size <= 0:
            raise ValueError(f"max_file_size must be > 0, got {self.max_file_size}")


@dataclass(frozen=True)
class HistorySettings:
    max_commits: int = DEFAULT_MAX_COMMITS
    max_history_commits: int = DEFAULT_MAX_HISTORY_COMMITS
    max_file_history: int = DEFAULT_MAX_FILE_HISTORY
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    def __post_init__(self):
        for name in ("max_commits", "max_history_commits", "max_file_history", "max_output_bytes"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")
        if self.git_timeout <= 0:
            raise ValueError(f"git_timeout must be > 0, got {self.git_timeout}")
        if self.max_history_commits < self.max_commits:
            raise ValueError(
                f"max_history_commits ({self.max_history_commits}) must be >= "
                f"max_commits ({self.max_commits})"
            )


@dataclass(frozen=True)
class AnalysisSettings:
    """All knobs of one analyze() run. Defaults apply when no config file exists."""

    scanner: ScannerSettings = field(default_factory=ScannerSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    complexity: ComplexityPolicy = field(default_factory=ComplexityPolicy)
    max_workers: int = field(default_factory=_default_max_workers)
    include_tree: bool = True

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_config(cls, config: dict | None) -> "AnalysisSettings":
        """Build settings from a loaded config.toml dict. Missing sections use defaults."""
        if config is None:
            return cls()

        scanner = _section(config, "scanner")
        history = _section(config, "history")
        complexity = _section(config, "complexity")
        analysis = _section(config, "analysis")

        kwargs = {}
        if "max_workers" in analysis:
            kwargs["max_workers"] = int(analysis["max_workers"])
        if "include_tree" in analysis:
            kwargs["include_tree"] = bool(analysis["include_tree"])

        return cls(
            scanner=ScannerSettings(
                include=tuple(_string_list(scanner, "include")),
                exclude=tuple(_string_list(scanner, "exclude")),
                max_file_size=int(scanner.get("max_file_size", DEFAULT_MAX_FILE_SIZE)),
            ),
            history=HistorySettings(
                max_commits=int(history.get("max_commits", DEFAULT_MAX_COMMITS)),
                max_history_commits=int(history.get("max_history_commits", DEFAULT_MAX_HISTORY_COMMITS)),
                max_file_history=int(history.get("max_file_history", DEFAULT_MAX_FILE_HISTORY)),
                git_timeout=float(history.get("git_timeout", DEFAULT_GIT_TIMEOUT)),
                max_output_bytes=int(history.get("max_output_bytes", DEFAULT_MAX_OUTPUT_BYTES)),
            ),
            complexity=ComplexityPolicy(
                low_max=int(complexity.get("low_max", 5)),
                medium_max=int(complexity.get("medium_max", 15)),
            ),
            **kwargs,
        )


def _section(config: dict, name: str) -> dict:
    value = config.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] in config.toml must be a table, got {type(value).__name__}")
    return value


def _string_list(section: dict, key: str) -> list[str]:
    value = section.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' in config.toml must be a list of strings, got {value!r}")
    return value


def config_path(repo_path: Path) -> Path:
    return repo_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(repo_path: Path) -> dict | None:
    """Load .introspector/config.toml. Returns None if the file doesn't exist."""
    config_file = config_path(repo_path)
    if not config_file.exists():
        return None
    with open(config_file, "rb") as f:
        return tomllib.load(f)


def load_settings(repo_path: Path) -> AnalysisSettings:
    return AnalysisSettings.from_config(load_config(repo_path))


def create_default_config(repo_path: Path) -> Path:
    """Create a default config.toml in .introspector/. Returns the path."""
    config_dir = repo_path / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / CONFIG_FILE_NAME
    if path.exists():
        raise FileExistsError(f"Config already exists: {path}")
    path.write_text(
        '[scanner]\n'
        '# gitignore-style patterns; when include is non-empty a file must match it\n'
        'include = []\n'
        'exclude = []\n'
        f'max_file_size = {DEFAULT_MAX_FILE_SIZE}\n'
        '\n'
        '[history]\n'
        f'max_commits = {DEFAULT_MAX_COMMITS}\n'
        f'max_history_commits = {DEFAULT_MAX_HISTORY_COMMITS}\n'
        f'max_file_history = {DEFAULT_MAX_FILE_HISTORY}\n'
        f'git_timeout = {DEFAULT_GIT_TIMEOUT}\n'
        f'max_output_bytes = {DEFAULT_MAX_OUTPUT_BYTES}\n'
        '\n'
        '[complexity]\n'
        '# export-count thresholds: <= low_max is "low", <= medium_max is "medium"\n'
        'low_max = 5\n'
        'medium_max = 15\n'
        '\n'
        '[analysis]\n'
        '# max_workers = 8  # defaults to min(8, cpu count)\n'
        'include_tree = true\n'
    )
    return path
