"""Analysis orchestrator: coordinates scanning, parsing, history, config and tree."""

import concurrent.futures
import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable

from repo_introspector.config import CONFIG_DIR_NAME, AnalysisSettings, load_settings
from repo_introspector.constants import OTHER_LANGUAGE
from repo_introspector.extractors.config_detector import detect_config
from repo_introspector.extractors.git_extractor import collect_revision_info, get_changed_files
from repo_introspector.file_tree import build_file_tree, count_leaf_files
from repo_introspector.indexer.file_scanner import scan_repo
from repo_introspector.models import (
    ComplexityPolicy,
    FileRecord,
    ModuleDescriptor,
    RepoSummary,
    utc_now_iso,
)
from repo_introspector.parsers.registry import ParserRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def _check_root(root: Path) -> Path:
    if not root.exists():
        raise FileNotFoundError(f"Repository root does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Repository root is not a directory: {root}")
    return root.resolve()


def _settings_for(root: Path) -> AnalysisSettings:
    """Settings from root's config file, defaults when it cannot be used."""
    try:
        return load_settings(root)
    except (OSError, ValueError) as e:
        # tomllib.TOMLDecodeError is a ValueError
        logger.warning("Ignoring unusable %s config: %s; using defaults", CONFIG_DIR_NAME, e)
        return AnalysisSettings()


def _normalize_only_files(root: Path, only_files: Iterable[str]) -> set[str]:
    """Map caller-supplied paths to root-relative forward-slash paths.

    Accepts relative, ./-prefixed and absolute paths; absolute paths outside
    root are dropped with a warning.
    """
    normalized: set[str] = set()
    for raw in only_files:
        text = str(raw).replace("\\", "/")
        path = Path(text)
        if path.is_absolute():
            try:
                text = path.resolve().relative_to(root).as_posix()
            except ValueError:
                logger.warning("Ignoring path outside the repository: %s", raw)
                continue
        while text.startswith("./"):
            text = text[2:]
        text = text.strip("/")
        if text:
            normalized.add(text)
    return normalized


def _is_parseable(record: FileRecord, registry: ParserRegistry) -> bool:
    return record.role == "source" and registry.supports(record.language)


def _parse_file(
    root: Path,
    record: FileRecord,
    registry: ParserRegistry,
    policy: ComplexityPolicy,
) -> ModuleDescriptor:
    """Parse one file. Never raises; failures yield an empty descriptor."""
    try:
        source = (root / record.path).read_bytes()
    except OSError as e:
        logger.warning("Could not read %s: %s", record.path, e)
        return ModuleDescriptor.empty(record.path)
    try:
        return registry.get(record.language).parse(source, record.path, policy)
    except Exception as e:
        logger.warning("Parser failed on %s: %s", record.path, e)
        return ModuleDescriptor.empty(record.path)


def analyze(
    root: Path | str,
    only_files: Iterable[str] | None = None,
    baseline_revision: str | None = None,
    *,
    settings: AnalysisSettings | None = None,
    registry: ParserRegistry | None = None,
    on_progress: ProgressCallback | None = None,
    changed_since: list[str] | None = None,
) -> RepoSummary:
    """Analyze a repository and return an immutable RepoSummary.

    Pipeline:
    1. Scan files (full tree)
    2. Restrict to only_files when given (incremental mode)
    3. Parse source files on a thread pool
    4. Collect git history, detect config, build tree while parsing runs
    5. Merge

    changed_since, when given, is the changed-file list already computed for
    baseline_revision and is reused instead of diffing again.

    Raises FileNotFoundError / NotADirectoryError when root is unusable;
    every other failure degrades to absent or empty data.
    """
    start = time.monotonic()
    root = _check_root(Path(root))
    settings = settings or _settings_for(root)
    registry = registry or ParserRegistry()

    def progress(message: str) -> None:
        logger.info(message)
        if on_progress is not None:
            on_progress(message)

    progress(f"Scanning {root}")
    all_files = scan_repo(root, settings.scanner)

    if only_files is None:
        files = all_files
    else:
        wanted = _normalize_only_files(root, only_files)
        files = [f for f in all_files if f.path in wanted]
        missing = wanted - {f.path for f in files}
        if missing:
            logger.debug("Incremental paths not in scan: %s", sorted(missing))
        progress(f"Incremental mode: {len(files)} of {len(all_files)} files selected")

    to_parse = [f for f in files if _is_parseable(f, registry)]
    progress(f"Parsing {len(to_parse)} source files")

    modules: dict[str, ModuleDescriptor] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=settings.max_workers) as ex:
        futs: dict[concurrent.futures.Future, str] = {
            ex.submit(_parse_file, root, record, registry, settings.complexity): record.path
            for record in to_parse
        }

        progress("Collecting revision history")
        revision_info = collect_revision_info(
            root, baseline_revision, settings.history, changed_since=changed_since
        )

        progress("Detecting project config")
        config_info = detect_config(root)

        file_tree = None
        if settings.include_tree:
            progress("Building file tree")
            file_tree = build_file_tree(all_files, root_name=root.name or ".")
            leaf_count = count_leaf_files(file_tree)
            if leaf_count != len(all_files):
                logger.warning(
                    "File tree has %d leaves but scan found %d files", leaf_count, len(all_files)
                )

        for fut in concurrent.futures.as_completed(futs):
            path = futs[fut]
            try:
                modules[path] = fut.result()
            except Exception as e:
                logger.warning("Parse task for %s failed: %s", path, e)
                modules[path] = ModuleDescriptor.empty(path)

    languages = {f.language for f in files if f.language != OTHER_LANGUAGE}
    summary = RepoSummary(
        root_path=str(root),
        analyzed_at=utc_now_iso(),
        languages_present=tuple(sorted(languages)),
        files=tuple(files),
        modules=tuple(modules[path] for path in sorted(modules)),
        config_info=config_info,
        revision_info=revision_info,
        file_tree=file_tree,
    )

    duration_ms = int((time.monotonic() - start) * 1000)
    progress(
        f"Analyzed {len(files)} files ({len(summary.modules)} modules) in {duration_ms}ms"
    )
    return summary


def analyze_incremental(
    root: Path | str,
    baseline_revision: str,
    *,
    settings: AnalysisSettings | None = None,
    registry: ParserRegistry | None = None,
    on_progress: ProgressCallback | None = None,
) -> RepoSummary:
    """Re-analyze only the source files changed since baseline_revision."""
    root = _check_root(Path(root))
    settings = settings or _settings_for(root)
    changed = get_changed_files(root, baseline_revision, settings.history)
    return analyze(
        root,
        only_files=changed,
        baseline_revision=baseline_revision,
        settings=settings,
        registry=registry,
        on_progress=on_progress,
        changed_since=changed,
    )


def save_summary(summary: RepoSummary, path: Path) -> Path:
    """Write the summary as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(summary.to_json() + "\n", encoding="utf-8")
    return path


def load_summary(path: Path) -> RepoSummary:
    return RepoSummary.from_json(path.read_text(encoding="utf-8"))


def summary_age(summary: RepoSummary, now: datetime | None = None) -> timedelta:
    """Time elapsed since the summary's analyzedAt stamp."""
    analyzed_at = datetime.fromisoformat(summary.analyzed_at)
    if analyzed_at.tzinfo is None:
        analyzed_at = analyzed_at.replace(tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) - analyzed_at
