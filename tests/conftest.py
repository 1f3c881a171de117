"""Shared test fixtures."""

import subprocess
from pathlib import Path

import pytest


def run_git(repo: Path, *args: str) -> subprocess.CompletedProcess[str]:
    """Run a git command in the given repo directory."""
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        check=True,
        cwd=str(repo),
    )


@pytest.fixture
def tmp_repo(tmp_path):
    """Create a temporary directory acting as a repo root."""
    return tmp_path


@pytest.fixture
def write_file(tmp_repo):
    """Write content to a file inside tmp_repo (creating parent dirs)."""

    def _write(rel_path: str, content: str | bytes = "") -> Path:
        full = tmp_repo / rel_path
        full.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            full.write_bytes(content)
        else:
            full.write_text(content)
        return full

    return _write


@pytest.fixture
def git_repo(tmp_repo):
    """tmp_repo initialized as a git repo on branch main with a test identity."""
    run_git(tmp_repo, "init")
    run_git(tmp_repo, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(tmp_repo, "config", "user.name", "Test Author")
    run_git(tmp_repo, "config", "user.email", "test@example.com")
    run_git(tmp_repo, "config", "commit.gpgsign", "false")
    return tmp_repo


@pytest.fixture
def commit(git_repo):
    """Stage everything and commit; returns the new HEAD hash."""

    def _commit(message: str, author: str | None = None) -> str:
        run_git(git_repo, "add", "-A")
        args = ["commit", "-m", message]
        if author is not None:
            args.append(f"--author={author} <{author.lower().replace(' ', '.')}@example.com>")
        run_git(git_repo, *args)
        return run_git(git_repo, "rev-parse", "HEAD").stdout.strip()

    return _commit
