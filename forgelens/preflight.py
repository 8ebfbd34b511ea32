"""Pull request preflight checks.

Runs the local checks a pull request creation workflow performs before
calling the hosting API: resolve the repository (redirecting forks to their
original owner), pick the head branch, make sure it exists, predict
conflicts with the base branch and make sure head isn't behind base.
Nothing here talks to the network or modifies the repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from forgelens.config import Settings
from forgelens.git.branches import BranchInspector
from forgelens.git.conflicts import ConflictAnalyzer, ConflictReport
from forgelens.git.remotes import split_repository
from forgelens.git.repository import ForkInfo, RepositoryResolution, RepositoryResolver

logger = logging.getLogger(__name__)

BLOCKER_HEAD_MISSING = "head_missing"
BLOCKER_CONFLICTS = "conflicts"
BLOCKER_BEHIND = "behind"


@dataclass
class PreflightReport:
    """Everything the preflight learned about a directory and branch pair."""

    directory: str
    resolution: RepositoryResolution
    fork_info: ForkInfo
    target_repository: str
    base: str
    head: str
    head_detected: bool = False
    head_exists: bool = False
    commits_ahead: Optional[int] = None
    conflict_report: Optional[ConflictReport] = None
    is_behind: Optional[bool] = None
    blockers: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.blockers

    def to_dict(self) -> dict[str, Any]:
        return {
            "directory": self.directory,
            "repository": self.resolution.repository,
            "target_repository": self.target_repository,
            "remote_name": self.resolution.remote_name,
            "remote_url": self.resolution.remote_url,
            "fork_info": self.fork_info.to_dict(),
            "base": self.base,
            "head": self.head,
            "head_detected": self.head_detected,
            "head_exists": self.head_exists,
            "commits_ahead": self.commits_ahead,
            "conflict_report": self.conflict_report.to_dict() if self.conflict_report else None,
            "is_behind": self.is_behind,
            "blockers": list(self.blockers),
            "ready": self.ready,
        }


def target_repository_for(resolution: RepositoryResolution, fork_info: ForkInfo) -> str:
    """Repository a pull request should target.

    Forks target the repository of the same name under the original owner.
    """
    if not fork_info.is_fork:
        return resolution.repository
    _, name = split_repository(resolution.repository)
    return f"{fork_info.original_owner}/{name}"


class PullRequestPreflight:
    """Composes resolution, branch inspection and conflict analysis.

    Args:
        settings: Application settings; defaults are used when omitted.
        resolver: Repository resolver.
        branches: Branch inspector. Built from settings when omitted.
        conflicts: Conflict analyzer. Built from settings when omitted.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resolver: Optional[RepositoryResolver] = None,
        branches: Optional[BranchInspector] = None,
        conflicts: Optional[ConflictAnalyzer] = None,
    ):
        self.settings = settings or Settings()
        runner = self.settings.create_runner()
        self.resolver = resolver or RepositoryResolver()
        self.branches = branches or BranchInspector(runner)
        self.conflicts = conflicts or ConflictAnalyzer(runner)

    def run(
        self,
        directory: Path | str,
        head: Optional[str] = None,
        base: Optional[str] = None,
    ) -> PreflightReport:
        """Run every check, stopping at the first blocker that makes later checks moot.

        Args:
            directory: Local repository directory.
            head: Source branch; the current branch when omitted.
            base: Target branch; ``preflight.default_base`` when omitted.

        Returns:
            PreflightReport.

        Raises:
            RepositoryError: If the directory can't be resolved.
            GitCommandError: If a git command fails unexpectedly.
        """
        resolution, fork_info = self.resolver.resolve_with_fork_info(directory)

        head_detected = head is None
        if head is None:
            head = self.branches.get_current_branch(directory)
        base = base or self.settings.preflight.default_base

        report = PreflightReport(
            directory=str(directory),
            resolution=resolution,
            fork_info=fork_info,
            target_repository=target_repository_for(resolution, fork_info),
            base=base,
            head=head,
            head_detected=head_detected,
        )

        report.head_exists = self.branches.branch_exists(directory, head)
        if not report.head_exists:
            report.blockers.append(BLOCKER_HEAD_MISSING)
            return report

        report.commits_ahead = self.branches.get_commit_count(directory, base, head)

        if self.settings.preflight.check_conflicts:
            report.conflict_report = self.conflicts.get_conflict_report(directory, base, head)
            if report.conflict_report.has_conflicts:
                report.blockers.append(BLOCKER_CONFLICTS)
                return report

        if self.settings.preflight.check_behind:
            report.is_behind = self.branches.is_branch_behind(directory, base, head)
            if report.is_behind:
                report.blockers.append(BLOCKER_BEHIND)

        logger.debug(f"Preflight for {report.target_repository} {base}...{head}: blockers={report.blockers}")
        return report


def run_preflight(
    directory: Path | str,
    head: Optional[str] = None,
    base: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> PreflightReport:
    return PullRequestPreflight(settings=settings).run(directory, head=head, base=base)
