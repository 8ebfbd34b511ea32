"""Remote configuration parsing for ForgeLens.

Reads remotes straight out of ``.git/config`` and normalizes remote URLs
into ``owner/repo`` identifiers. No git subprocess is involved.
"""

from __future__ import annotations

import logging
import os
import re
import stat
from dataclasses import asdict, dataclass
from pathlib import Path

from forgelens.errors import (
    DirectoryNotFoundError,
    InvalidRemoteURLError,
    InvalidRepositoryNameError,
    NotGitRepositoryError,
    RepositoryError,
)

logger = logging.getLogger(__name__)

_REMOTE_SECTION_RE = re.compile(r'^\[remote "(?P<name>[^"]*)"\]$')
_ASSIGNMENT_RE = re.compile(r"^(?P<key>[A-Za-z][A-Za-z0-9-]*)\s*=\s*(?P<value>.*)$")

# Tried in order; the first match wins.
_REMOTE_URL_PATTERNS = (
    # HTTPS URL: https://forgejo.example.com/owner/repo.git
    re.compile(r"^https?://[^/]+/([^/]+)/([^/]+?)(?:\.git)?$"),
    # SSH URL: git@forgejo.example.com:owner/repo.git
    re.compile(r"^git@[^:]+:([^/]+)/([^/]+?)(?:\.git)?$"),
    # Git protocol: git://forgejo.example.com/owner/repo.git
    re.compile(r"^git://[^/]+/([^/]+)/([^/]+?)(?:\.git)?$"),
)


@dataclass(frozen=True)
class RemoteEntry:
    """A named remote and its URL, as configured in .git/config."""

    name: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)


def git_config_path(directory: Path | str) -> Path:
    """Path of the config file for a repository directory."""
    return Path(directory) / ".git" / "config"


def validate_directory(directory: Path | str) -> None:
    """Check that a directory exists and has a .git directory.

    Args:
        directory: Directory to validate.

    Raises:
        DirectoryNotFoundError: If the directory does not exist.
        NotGitRepositoryError: If .git is missing or not a directory.
        RepositoryError: If .git exists but cannot be inspected.
    """
    directory = str(directory)
    if not os.path.exists(directory):
        raise DirectoryNotFoundError(directory)

    git_dir = os.path.join(directory, ".git")
    try:
        git_stat = os.stat(git_dir)
    except (FileNotFoundError, NotADirectoryError):
        raise NotGitRepositoryError(directory, "no .git directory found") from None
    except OSError as e:
        raise RepositoryError(operation="validate", path=git_dir, cause=e) from e

    if not stat.S_ISDIR(git_stat.st_mode):
        raise NotGitRepositoryError(directory, ".git is not a directory")


def extract_remote_entries(directory: Path | str) -> list[RemoteEntry]:
    """Read every remote that has a URL, in file order.

    A ``[remote "<name>"]`` header opens a remote section and any other
    section header closes it. Only the first ``url`` of each remote is kept.

    Args:
        directory: Repository directory (the one containing .git).

    Returns:
        List of RemoteEntry objects, possibly empty.

    Raises:
        RepositoryError: If the config file cannot be read.
    """
    config_path = git_config_path(directory)

    try:
        with open(config_path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        raise RepositoryError(operation="extract", path=str(config_path), cause=e) from e

    entries: list[RemoteEntry] = []
    seen: set[str] = set()
    current_remote: str | None = None

    for raw in lines:
        line = raw.strip()
        if not line or line[0] in "#;":
            continue

        if line.startswith("["):
            match = _REMOTE_SECTION_RE.match(line)
            current_remote = match.group("name") if match else None
            continue

        if current_remote is None:
            continue

        assignment = _ASSIGNMENT_RE.match(line)
        if not assignment or assignment.group("key").lower() != "url":
            continue

        url = assignment.group("value").strip()
        if url and current_remote not in seen:
            seen.add(current_remote)
            entries.append(RemoteEntry(name=current_remote, url=url))

    logger.debug(f"Found {len(entries)} remote(s) in {config_path}")
    return entries


def extract_all_remotes(directory: Path | str) -> dict[str, str]:
    """Read remotes as a ``name -> url`` mapping (file order preserved)."""
    return {entry.name: entry.url for entry in extract_remote_entries(directory)}


def parse_remote_url(url: str) -> str:
    """Normalize a remote URL into ``owner/repo``.

    Supports https/http, scp-style ssh (``git@host:owner/repo``) and the
    git protocol. A trailing ``.git`` is stripped.

    Args:
        url: Remote URL.

    Returns:
        Repository identifier in ``owner/repo`` format.

    Raises:
        InvalidRemoteURLError: If no supported format matches.
    """
    for pattern in _REMOTE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return f"{match.group(1)}/{match.group(2)}"
    raise InvalidRemoteURLError(url)


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its two parts.

    Raises:
        InvalidRepositoryNameError: Unless there are exactly two non-empty parts.
    """
    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidRepositoryNameError(repository)
    return parts[0], parts[1]
