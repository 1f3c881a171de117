"""Scan a repository for recognized files and classify them."""

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

import pathspec

from repo_introspector.config import CONFIG_DIR_NAME, ScannerSettings
from repo_introspector.constants import (
    CONFIG_EXTENSIONS,
    CONFIG_FILENAMES,
    CONFIG_KEYWORDS,
    DOCS_DIR_NAMES,
    DOCS_EXTENSIONS,
    DOCS_PREFIXES,
    TEST_DIR_NAMES,
    TEST_SUFFIXES,
    language_from_extension,
)
from repo_introspector.models import FileRecord

logger = logging.getLogger(__name__)

SKIP_DIRS: set[str] = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    ".env",
    "dist",
    "build",
    "coverage",
    ".next",
    ".nuxt",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".eggs",
    CONFIG_DIR_NAME,
}

SKIP_SUFFIXES: set[str] = {
    ".pyc",
    ".min.js",
    ".min.css",
    ".map",
}

SKIP_FILENAMES: set[str] = {
    "package-lock.json",
    "pnpm-lock.yaml",
}


def classify_role(file_path: str) -> str:
    """Classify a relative path as "test", "config", "docs" or "source".

    Pure function of the path; the first matching rule wins.
    """
    lower = PurePosixPath(file_path.lower())
    name = lower.name
    dirs = lower.parts[:-1]

    if any(d in TEST_DIR_NAMES for d in dirs):
        return "test"
    if name.startswith("test_") and name.endswith(".py"):
        return "test"
    if name.endswith("_test.py") or name.endswith(TEST_SUFFIXES):
        return "test"

    if name in CONFIG_FILENAMES or lower.suffix in CONFIG_EXTENSIONS:
        return "config"
    if any(keyword in lower.stem for keyword in CONFIG_KEYWORDS):
        return "config"

    if any(d in DOCS_DIR_NAMES for d in dirs):
        return "docs"
    if name.startswith(DOCS_PREFIXES) or lower.suffix in DOCS_EXTENSIONS:
        return "docs"

    return "source"


def _load_gitignore_spec(repo_path: Path) -> pathspec.PathSpec | None:
    """Parse .gitignore at repo root. Returns None if absent or unreadable."""
    gitignore = repo_path / ".gitignore"
    if not gitignore.is_file():
        return None
    try:
        text = gitignore.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Ignoring unreadable .gitignore at %s: %s", gitignore, e)
        return None
    return pathspec.GitIgnoreSpec.from_lines(text.splitlines())


def _compile_patterns(patterns: tuple[str, ...]) -> pathspec.PathSpec | None:
    if not patterns:
        return None
    return pathspec.GitIgnoreSpec.from_lines(patterns)


def _should_skip_dir(name: str) -> bool:
    """Check if a directory name matches a skip pattern (including *.egg-info)."""
    if name in SKIP_DIRS:
        return True
    if name.endswith(".egg-info"):
        return True
    return False


def _should_skip_file(name: str) -> bool:
    """Check if a filename matches a skip-file pattern."""
    if name in SKIP_FILENAMES:
        return True
    for suffix in SKIP_SUFFIXES:
        if name.endswith(suffix):
            return True
    return False


def _walk_repo(repo_path: Path, ignore_spec: pathspec.PathSpec | None):
    """Yield (relative_posix_path, abs_path) for every candidate file.

    Symlinked directories are not followed. Unreadable subdirectories are
    logged and skipped; only a failure to list the root itself propagates.
    """
    stack: list[Path] = [repo_path]
    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as e:
            if current == repo_path:
                raise
            logger.warning("Skipping unreadable directory %s: %s", current, e)
            continue

        dirs: list[Path] = []
        files: list[Path] = []
        for entry in entries:
            try:
                if entry.is_dir() and not entry.is_symlink():
                    dirs.append(entry)
                elif entry.is_file():
                    files.append(entry)
            except OSError:
                continue

        for d in dirs:
            if _should_skip_dir(d.name):
                continue
            rel = d.relative_to(repo_path).as_posix()
            if ignore_spec is not None and ignore_spec.match_file(rel + "/"):
                continue
            stack.append(d)

        for f in files:
            rel = f.relative_to(repo_path).as_posix()
            if ignore_spec is not None and ignore_spec.match_file(rel):
                continue
            yield rel, f


def scan_repo(repo_path: Path, settings: ScannerSettings | None = None) -> list[FileRecord]:
    """Scan a repository and return a FileRecord for every recognized file.

    Files are filtered by extension, skip patterns, .gitignore, the
    configured include/exclude globs and max file size. A file whose stat
    fails is dropped. Results are sorted by relative path.
    """
    settings = settings or ScannerSettings()
    repo_path = repo_path.resolve()
    gitignore_spec = _load_gitignore_spec(repo_path)
    include_spec = _compile_patterns(settings.include)
    exclude_spec = _compile_patterns(settings.exclude)
    results: dict[str, FileRecord] = {}

    for rel_path, abs_path in _walk_repo(repo_path, gitignore_spec):
        if _should_skip_file(abs_path.name):
            continue

        language = language_from_extension(rel_path)
        if language is None:
            continue
        if include_spec is not None and not include_spec.match_file(rel_path):
            continue
        if exclude_spec is not None and exclude_spec.match_file(rel_path):
            continue

        try:
            stat = abs_path.stat()
        except OSError as e:
            logger.debug("Dropping %s, stat failed: %s", rel_path, e)
            continue
        if stat.st_size > settings.max_file_size:
            logger.warning("Skipping oversized file (%d bytes): %s", stat.st_size, rel_path)
            continue

        results[rel_path] = FileRecord(
            path=rel_path,
            language=language,
            role=classify_role(rel_path),
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        )

    return [results[path] for path in sorted(results)]
