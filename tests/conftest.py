"""Pytest configuration and fixtures for ForgeLens tests."""

import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from forgelens.config import reset_settings

FORGEJO_URL = "https://forgejo.example.com/acme/widgets.git"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> Generator[None, None, None]:
    """Clear FORGELENS_* variables and point the user config at an empty location."""
    for var in list(os.environ):
        if var.startswith("FORGELENS_"):
            monkeypatch.delenv(var)
    monkeypatch.setattr("forgelens.config.CONFIG_FILE", temp_dir / "missing" / "config.yaml")

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def make_repo_dir(tmp_path: Path) -> Callable[..., Path]:
    """Factory for directories with a .git/config but no real repository."""

    def _make(config: Optional[str] = "", name: str = "repo") -> Path:
        repo = tmp_path / name
        (repo / ".git").mkdir(parents=True)
        if config is not None:
            (repo / ".git" / "config").write_text(config, encoding="utf-8")
        return repo

    return _make


def _run_git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


def _git_version() -> tuple[int, int]:
    output = subprocess.run(["git", "--version"], capture_output=True, text=True, check=True).stdout
    match = re.search(r"(\d+)\.(\d+)", output)
    return (int(match.group(1)), int(match.group(2))) if match else (0, 0)


@pytest.fixture
def git() -> Callable[..., str]:
    """Run git in a repository and return its stripped stdout."""
    return _run_git


@pytest.fixture
def commit_file(git: Callable[..., str]) -> Callable[..., None]:
    """Write a file and commit it on the current branch."""

    def _commit(repo: Path, name: str, content: str, message: Optional[str] = None) -> None:
        (repo / name).write_text(content, encoding="utf-8")
        git(repo, "add", name)
        git(repo, "commit", "-q", "-m", message or f"Update {name}")

    return _commit


@pytest.fixture
def git_repo(tmp_path: Path, git: Callable[..., str]) -> Path:
    """Create a real repository on ``main`` with one commit and an origin remote."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "widgets"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "remote", "add", "origin", FORGEJO_URL)

    (repo / "greeting.txt").write_text("hello\n", encoding="utf-8")
    git(repo, "add", "greeting.txt")
    git(repo, "commit", "-q", "-m", "Initial commit")
    return repo


@pytest.fixture
def merge_tree_repo(git_repo: Path) -> Path:
    """A real repository whose git supports ``merge-tree <a> <b>`` (2.38+)."""
    if _git_version() < (2, 38):
        pytest.skip("git merge-tree write-tree mode requires git 2.38 or newer")
    return git_repo
