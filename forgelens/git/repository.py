"""Directory to repository resolution and fork detection for ForgeLens."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from forgelens.errors import InvalidRemoteURLError, NoRemotesConfiguredError
from forgelens.git.remotes import (
    RemoteEntry,
    extract_remote_entries,
    parse_remote_url,
    split_repository,
    validate_directory,
)

logger = logging.getLogger(__name__)

__all__ = [
    "RepositoryResolver",
    "RepositoryResolution",
    "ForkInfo",
    "detect_fork_relationship",
]

Remotes = Union[Sequence[RemoteEntry], Mapping[str, str]]


@dataclass
class RepositoryResolution:
    """Result of resolving a directory to a hosted repository."""

    directory: str
    repository: str  # owner/repo
    remote_url: str
    remote_name: str

    @property
    def owner(self) -> str:
        return split_repository(self.repository)[0]

    @property
    def name(self) -> str:
        return split_repository(self.repository)[1]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ForkInfo:
    """Fork relationship between the resolved repository and other remotes."""

    is_fork: bool = False
    fork_owner: Optional[str] = None
    original_owner: Optional[str] = None
    fork_remote: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _iter_remotes(remotes: Remotes) -> list[RemoteEntry]:
    if isinstance(remotes, Mapping):
        return [RemoteEntry(name=name, url=url) for name, url in remotes.items()]
    return list(remotes)


def detect_fork_relationship(remotes: Remotes, target_repo: str) -> ForkInfo:
    """Look for a remote that hosts the same repository under another owner.

    The first qualifying remote in the given order wins. Remotes whose URL
    can't be parsed are skipped.

    Args:
        remotes: Remote entries in file order, or a ``name -> url`` mapping.
        target_repo: The resolved repository in ``owner/repo`` format.

    Returns:
        ForkInfo describing the relationship, ``is_fork=False`` if none.

    Raises:
        InvalidRepositoryNameError: If target_repo is not ``owner/repo``.
    """
    target_owner, target_name = split_repository(target_repo)

    for remote in _iter_remotes(remotes):
        try:
            owner, name = split_repository(parse_remote_url(remote.url))
        except InvalidRemoteURLError:
            logger.debug(f"Skipping remote {remote.name!r} with unparsable URL {remote.url!r}")
            continue

        if owner != target_owner and name == target_name:
            logger.debug(f"Remote {remote.name!r} is a fork of {target_repo} owned by {owner}")
            return ForkInfo(
                is_fork=True,
                fork_owner=owner,
                original_owner=target_owner,
                fork_remote=remote.name,
            )

    return ForkInfo(is_fork=False)


class RepositoryResolver:
    """Maps a local directory to the hosted repository it was cloned from.

    The resolver keeps no state; every call re-reads .git/config.
    """

    def validate_directory(self, directory: Path | str) -> None:
        """Validate that the directory exists and is a git repository."""
        validate_directory(directory)

    def extract_remote_info(self, directory: Path | str) -> str:
        """Return ``owner/repo`` for the first remote URL in the config.

        Raises:
            NoRemotesConfiguredError: If no remote has a URL.
            InvalidRemoteURLError: If that URL can't be parsed.
            RepositoryError: If the config file can't be read.
        """
        entries = extract_remote_entries(directory)
        if not entries:
            raise NoRemotesConfiguredError(str(directory))
        return parse_remote_url(entries[0].url)

    def resolve_repository(self, directory: Path | str) -> RepositoryResolution:
        """Resolve a directory into repository information.

        Args:
            directory: Local directory containing a git repository.

        Returns:
            RepositoryResolution with the repository and the remote it came from.

        Raises:
            DirectoryNotFoundError: If the directory does not exist.
            NotGitRepositoryError: If it has no .git directory.
            NoRemotesConfiguredError: If no remote has a URL.
            InvalidRemoteURLError: If the first remote URL can't be parsed.
            RepositoryError: For other filesystem failures.
        """
        validate_directory(directory)

        entries = extract_remote_entries(directory)
        if not entries:
            raise NoRemotesConfiguredError(str(directory))
        repository = parse_remote_url(entries[0].url)

        remote_name = ""
        remote_url = ""
        for entry in entries:
            try:
                parsed = parse_remote_url(entry.url)
            except InvalidRemoteURLError:
                continue
            if parsed == repository:
                remote_name = entry.name
                remote_url = entry.url
                break

        logger.debug(f"Resolved {directory} to {repository} via remote {remote_name!r}")

        return RepositoryResolution(
            directory=str(directory),
            repository=repository,
            remote_url=remote_url,
            remote_name=remote_name,
        )

    def resolve_with_fork_info(self, directory: Path | str) -> tuple[RepositoryResolution, ForkInfo]:
        """Resolve a directory and detect fork relationships among its remotes."""
        resolution = self.resolve_repository(directory)
        remotes = extract_remote_entries(directory)
        fork_info = detect_fork_relationship(remotes, resolution.repository)
        return resolution, fork_info
