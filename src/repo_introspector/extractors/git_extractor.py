"""Git history extraction: revision, recent commits, hot files, changed-file diff."""

import logging
import subprocess
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from repo_introspector.config import HistorySettings
from repo_introspector.constants import is_source_path
from repo_introspector.models import CommitRecord, FileHistoryRecord, RevisionInfo

logger = logging.getLogger(__name__)

COMMIT_SEP = "---RI_COMMIT_5a1e9c3d---"

MAX_CONTRIBUTORS = 5

_LOG_FORMAT = f"{COMMIT_SEP}%n%H%n%h%n%aN%n%aI%n%s"


@dataclass
class _LogEntry:
    commit: CommitRecord
    changed_files: list[str] = field(default_factory=list)


def _truncate(data: bytes, limit: int, separator: bytes) -> bytes:
    """Cut data to at most limit bytes, ending on a separator boundary."""
    if len(data) <= limit:
        return data
    cut = data.rfind(separator, 0, limit)
    return data[: cut + 1] if cut >= 0 else b""


def _run_git(
    repo_path: Path,
    args: list[str],
    settings: HistorySettings,
    separator: bytes = b"\n",
) -> str | None:
    """Run a read-only git command and return its stdout.

    Returns None when git is missing, the command exits non-zero or times
    out. Output past settings.max_output_bytes is dropped at the last
    separator boundary.
    """
    argv = ["git", "-c", "core.quotepath=off", *args]
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            check=False,
            cwd=str(repo_path),
            timeout=settings.git_timeout,
        )
    except FileNotFoundError:
        logger.debug("git not found on PATH")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git %s timed out after %.1fs", args[0], settings.git_timeout)
        return None
    except OSError as e:
        logger.warning("git %s could not be started: %s", args[0], e)
        return None

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        logger.debug("git %s failed (exit %d): %s", args[0], result.returncode, stderr)
        return None

    stdout = result.stdout
    if len(stdout) > settings.max_output_bytes:
        logger.warning(
            "git %s output truncated from %d to %d bytes",
            args[0], len(stdout), settings.max_output_bytes,
        )
        stdout = _truncate(stdout, settings.max_output_bytes, separator)
    return stdout.decode("utf-8", errors="replace")


def is_git_repo(repo_path: Path, settings: HistorySettings | None = None) -> bool:
    settings = settings or HistorySettings()
    output = _run_git(repo_path, ["rev-parse", "--is-inside-work-tree"], settings)
    return output is not None and output.strip() == "true"


def get_current_commit(repo_path: Path, settings: HistorySettings | None = None) -> str | None:
    """Full hash of HEAD, or None on an unborn branch."""
    settings = settings or HistorySettings()
    output = _run_git(repo_path, ["rev-parse", "--verify", "--quiet", "HEAD"], settings)
    if output is None:
        return None
    return output.strip() or None


def get_branch(repo_path: Path, settings: HistorySettings | None = None) -> str:
    """Current branch name, "HEAD" when detached or unknown."""
    settings = settings or HistorySettings()
    output = _run_git(repo_path, ["branch", "--show-current"], settings)
    if output is None:
        return "HEAD"
    return output.strip() or "HEAD"


def _resolve_commit(repo_path: Path, revision: str, settings: HistorySettings) -> str | None:
    output = _run_git(
        repo_path, ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"], settings
    )
    if output is None:
        return None
    return output.strip() or None


def _split_nul(output: str | None) -> list[str]:
    if not output:
        return []
    return [p for p in output.split("\0") if p]


def get_changed_files(
    repo_path: Path,
    baseline: str,
    settings: HistorySettings | None = None,
) -> list[str]:
    """Source files that differ between baseline and the working tree.

    Includes untracked files, excludes deletions. Paths are relative to
    repo_path, which may be a subdirectory of the work tree. Returns [] for
    an unknown baseline.
    """
    settings = settings or HistorySettings()
    if not baseline or baseline.startswith("-"):
        logger.warning("Rejecting baseline revision %r", baseline)
        return []

    baseline_commit = _resolve_commit(repo_path, baseline, settings)
    if baseline_commit is None:
        logger.warning("Baseline revision %r does not resolve to a commit", baseline)
        return []

    diff = _run_git(
        repo_path,
        ["diff", "--name-only", "-z", "--relative", "--diff-filter=d", baseline_commit, "--"],
        settings,
        separator=b"\0",
    )
    if diff is None:
        logger.warning("git diff against %s failed; changed-file list is empty", baseline)
        return []
    untracked = _run_git(
        repo_path,
        ["ls-files", "--others", "--exclude-standard", "-z"],
        settings,
        separator=b"\0",
    )

    changed = set(_split_nul(diff)) | set(_split_nul(untracked))
    return sorted(p for p in changed if is_source_path(p))


def _parse_git_log(raw_output: str) -> list[_LogEntry]:
    """Parse `git log` output in _LOG_FORMAT with --numstat."""
    entries: list[_LogEntry] = []

    for chunk in raw_output.split(COMMIT_SEP):
        chunk = chunk.lstrip("\n")
        if not chunk.strip():
            continue

        lines = chunk.split("\n")
        # Header: hash, short hash, author, ISO date, subject
        if len(lines) < 5:
            continue
        commit_hash, short_hash, author, date, subject = (line.strip() for line in lines[:5])
        if not commit_hash:
            continue

        changed_files: list[str] = []
        for line in lines[5:]:
            parts = line.strip().split("\t")
            if len(parts) != 3:
                continue
            changed_files.append(parts[2].replace("\\", "/"))

        entries.append(
            _LogEntry(
                commit=CommitRecord(
                    hash=commit_hash,
                    short_hash=short_hash,
                    author=author,
                    date=date,
                    subject=subject,
                    files_changed=len(changed_files),
                ),
                changed_files=changed_files,
            )
        )

    return entries


def _read_log(repo_path: Path, settings: HistorySettings) -> list[_LogEntry]:
    output = _run_git(
        repo_path,
        [
            "log",
            f"--pretty=format:{_LOG_FORMAT}",
            "--numstat",
            "--relative",
            "--no-renames",
            f"--max-count={settings.max_history_commits}",
        ],
        settings,
    )
    if output is None:
        return []
    return _parse_git_log(output)


def _rank_file_history(entries: list[_LogEntry], limit: int) -> list[FileHistoryRecord]:
    """Source files ranked by commit count desc, then path."""
    counts: Counter[str] = Counter()
    last_modified: dict[str, str] = {}
    authors: dict[str, Counter[str]] = {}

    # Log entries are newest first, so the first date seen is the latest.
    for entry in entries:
        for path in set(entry.changed_files):
            if not is_source_path(path):
                continue
            counts[path] += 1
            last_modified.setdefault(path, entry.commit.date)
            authors.setdefault(path, Counter())[entry.commit.author] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    records = []
    for path, count in ranked:
        contributors = sorted(authors[path].items(), key=lambda item: (-item[1], item[0]))
        records.append(
            FileHistoryRecord(
                path=path,
                commit_count=count,
                last_modified=last_modified[path],
                contributors=tuple(name for name, _ in contributors[:MAX_CONTRIBUTORS]),
            )
        )
    return records


def get_recent_commits(repo_path: Path, settings: HistorySettings | None = None) -> list[CommitRecord]:
    settings = settings or HistorySettings()
    return [entry.commit for entry in _read_log(repo_path, settings)[: settings.max_commits]]


def get_file_history(repo_path: Path, settings: HistorySettings | None = None) -> list[FileHistoryRecord]:
    settings = settings or HistorySettings()
    return _rank_file_history(_read_log(repo_path, settings), settings.max_file_history)


def collect_revision_info(
    repo_path: Path,
    baseline: str | None = None,
    settings: HistorySettings | None = None,
    changed_since: list[str] | None = None,
) -> RevisionInfo | None:
    """Gather revision metadata for a repository.

    Returns None when repo_path is not inside a git work tree. Individual
    query failures degrade to empty fields. A changed_since list already
    computed for baseline is used as is.
    """
    settings = settings or HistorySettings()
    if not is_git_repo(repo_path, settings):
        logger.info("No git work tree at %s; skipping history", repo_path)
        return None

    current_commit = get_current_commit(repo_path, settings)
    branch = get_branch(repo_path, settings)

    if baseline is None:
        changed_since = []
    elif changed_since is None:
        changed_since = get_changed_files(repo_path, baseline, settings)

    entries = _read_log(repo_path, settings) if current_commit is not None else []

    return RevisionInfo(
        branch=branch,
        baseline_commit=baseline if baseline is not None else current_commit,
        current_commit=current_commit,
        changed_since=tuple(changed_since),
        recent_commits=tuple(entry.commit for entry in entries[: settings.max_commits]),
        file_history=tuple(_rank_file_history(entries, settings.max_file_history)),
    )
