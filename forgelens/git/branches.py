"""Branch state inspection for ForgeLens."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from forgelens.errors import GitCommandError
from forgelens.git.utils import DEFAULT_RUNNER, GitCommandRunner, GitOutcome, raise_for_result

logger = logging.getLogger(__name__)


class BranchInspector:
    """Answers questions about local branches by running git.

    Args:
        runner: Runner used for every git invocation.
    """

    def __init__(self, runner: Optional[GitCommandRunner] = None):
        self.runner = runner or DEFAULT_RUNNER

    def get_current_branch(self, directory: Path | str) -> str:
        """Get the checked out branch name.

        Returns:
            Branch name, or ``HEAD`` when detached.

        Raises:
            GitCommandError: If git fails or prints nothing.
        """
        result = self.runner.run(directory, ["rev-parse", "--abbrev-ref", "HEAD"])
        if not result.ok:
            raise_for_result(result, "get current branch")

        branch = result.stdout.strip()
        if not branch:
            raise GitCommandError("empty branch name returned", args=result.args)
        return branch

    def branch_exists(self, directory: Path | str, branch: str) -> bool:
        """Check whether a local branch exists.

        A missing branch is a negative answer, not an error.

        Raises:
            GitCommandError: For any failure other than a missing ref.
        """
        _, outcome = self.runner.run_classified(
            directory,
            ["rev-parse", "--verify", f"refs/heads/{branch}"],
            expected={GitOutcome.BRANCH_MISSING},
            action="check branch existence",
        )
        return outcome is None

    def get_commit_count(self, directory: Path | str, base: str, head: str) -> int:
        """Count commits reachable from head but not from base.

        Raises:
            GitCommandError: If git fails or its output isn't an integer.
        """
        result = self.runner.run(directory, ["rev-list", "--count", f"{base}..{head}"])
        if not result.ok:
            raise_for_result(result, "get commit count")

        count = result.stdout.strip()
        try:
            return int(count)
        except ValueError:
            raise GitCommandError(f"failed to parse commit count {count!r}", args=result.args) from None

    def is_branch_behind(self, directory: Path | str, base: str, head: str) -> bool:
        """Check whether head is strictly behind base.

        True only when base is not an ancestor of head but head is an
        ancestor of base. Diverged branches are not "behind".

        Raises:
            GitCommandError: For failures other than a negative ancestor answer.
        """
        _, outcome = self.runner.run_classified(
            directory,
            ["merge-base", "--is-ancestor", base, head],
            expected={GitOutcome.NOT_ANCESTOR},
            action="check branch relationship",
        )
        if outcome is None:
            return False

        _, reverse = self.runner.run_classified(
            directory,
            ["merge-base", "--is-ancestor", head, base],
            expected={GitOutcome.NOT_ANCESTOR},
            action="check branch relationship",
        )
        return reverse is None


def get_current_branch(directory: Path | str) -> str:
    return BranchInspector().get_current_branch(directory)


def branch_exists(directory: Path | str, branch: str) -> bool:
    return BranchInspector().branch_exists(directory, branch)


def get_commit_count(directory: Path | str, base: str, head: str) -> int:
    return BranchInspector().get_commit_count(directory, base, head)


def is_branch_behind(directory: Path | str, base: str, head: str) -> bool:
    return BranchInspector().is_branch_behind(directory, base, head)
