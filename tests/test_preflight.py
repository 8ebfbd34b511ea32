"""Tests for pull request preflight checks."""

from unittest.mock import MagicMock

import pytest

from forgelens.config import Settings
from forgelens.errors import NotGitRepositoryError
from forgelens.git.branches import BranchInspector
from forgelens.git.conflicts import ConflictAnalyzer, ConflictReport, create_conflict_detail
from forgelens.preflight import (
    BLOCKER_BEHIND,
    BLOCKER_CONFLICTS,
    BLOCKER_HEAD_MISSING,
    PullRequestPreflight,
    run_preflight,
)

FORK_CONFIG = """\
[remote "origin"]
\turl = git@forgejo.example.com:alice/widgets.git
[remote "upstream"]
\turl = https://forgejo.example.com/acme/widgets.git
"""

SINGLE_REMOTE = '[remote "origin"]\n\turl = https://forgejo.example.com/acme/widgets.git\n'


def make_branches(current="feature", exists=True, ahead=2, behind=False):
    branches = MagicMock(spec=BranchInspector)
    branches.get_current_branch.return_value = current
    branches.branch_exists.return_value = exists
    branches.get_commit_count.return_value = ahead
    branches.is_branch_behind.return_value = behind
    return branches


def make_conflicts(report=None):
    conflicts = MagicMock(spec=ConflictAnalyzer)
    conflicts.get_conflict_report.return_value = report or ConflictReport.clean()
    return conflicts


def conflicting_report():
    detail = create_conflict_detail("greeting.txt", [1, 3, 5], ["<<<<<<< main", "=======", ">>>>>>> feature"])
    return ConflictReport(
        has_conflicts=True,
        conflict_files=["greeting.txt"],
        conflict_details=[detail],
        total_conflicts=1,
    )


class TestPullRequestPreflight:
    """Tests for PullRequestPreflight with stubbed git collaborators."""

    def test_ready(self, make_repo_dir):
        """Test every check passing."""
        branches = make_branches()
        preflight = PullRequestPreflight(branches=branches, conflicts=make_conflicts())

        report = preflight.run(make_repo_dir(SINGLE_REMOTE))

        assert report.ready is True
        assert report.blockers == []
        assert report.target_repository == "acme/widgets"
        assert report.head == "feature"
        assert report.head_detected is True
        assert report.base == "main"
        assert report.commits_ahead == 2
        assert report.is_behind is False
        branches.get_commit_count.assert_called_once()

    def test_fork_targets_original_owner(self, make_repo_dir):
        """Test a fork targets the repository under its original owner."""
        preflight = PullRequestPreflight(branches=make_branches(), conflicts=make_conflicts())

        report = preflight.run(make_repo_dir(FORK_CONFIG), head="feature", base="develop")

        assert report.resolution.repository == "alice/widgets"
        assert report.fork_info.is_fork is True
        assert report.fork_info.fork_remote == "upstream"
        assert report.fork_info.fork_owner == "acme"
        assert report.target_repository == f"{report.fork_info.original_owner}/widgets"
        assert report.base == "develop"
        assert report.head_detected is False

    def test_missing_head_stops(self, make_repo_dir):
        """Test a missing head branch blocks and skips later checks."""
        branches = make_branches(exists=False)
        conflicts = make_conflicts()
        preflight = PullRequestPreflight(branches=branches, conflicts=conflicts)

        report = preflight.run(make_repo_dir(SINGLE_REMOTE), head="nope")

        assert report.blockers == [BLOCKER_HEAD_MISSING]
        assert report.ready is False
        assert report.commits_ahead is None
        branches.get_commit_count.assert_not_called()
        conflicts.get_conflict_report.assert_not_called()

    def test_conflicts_stop(self, make_repo_dir):
        """Test conflicts block and skip the behind check."""
        branches = make_branches()
        preflight = PullRequestPreflight(branches=branches, conflicts=make_conflicts(conflicting_report()))

        report = preflight.run(make_repo_dir(SINGLE_REMOTE))

        assert report.blockers == [BLOCKER_CONFLICTS]
        assert report.conflict_report.conflict_files == ["greeting.txt"]
        assert report.is_behind is None
        branches.is_branch_behind.assert_not_called()

    def test_behind_blocks(self, make_repo_dir):
        """Test a branch behind its base is blocked."""
        preflight = PullRequestPreflight(branches=make_branches(behind=True), conflicts=make_conflicts())

        report = preflight.run(make_repo_dir(SINGLE_REMOTE))
        assert report.blockers == [BLOCKER_BEHIND]

    def test_checks_can_be_disabled(self, make_repo_dir):
        """Test disabled checks don't run."""
        settings = Settings(preflight={"check_conflicts": False, "check_behind": False, "default_base": "trunk"})
        branches = make_branches()
        conflicts = make_conflicts()
        preflight = PullRequestPreflight(settings=settings, branches=branches, conflicts=conflicts)

        report = preflight.run(make_repo_dir(SINGLE_REMOTE))

        assert report.ready is True
        assert report.base == "trunk"
        assert report.conflict_report is None
        conflicts.get_conflict_report.assert_not_called()
        branches.is_branch_behind.assert_not_called()

    def test_resolution_errors_propagate(self, tmp_path):
        """Test resolution failures are raised unchanged."""
        with pytest.raises(NotGitRepositoryError):
            PullRequestPreflight(branches=make_branches(), conflicts=make_conflicts()).run(tmp_path)

    def test_to_dict(self, make_repo_dir):
        """Test the JSON-ready view."""
        preflight = PullRequestPreflight(branches=make_branches(), conflicts=make_conflicts())
        data = preflight.run(make_repo_dir(SINGLE_REMOTE)).to_dict()

        assert data["ready"] is True
        assert data["repository"] == "acme/widgets"
        assert data["conflict_report"]["has_conflicts"] is False
        assert data["fork_info"]["is_fork"] is False


class TestRunPreflightIntegration:
    """Tests against real repositories."""

    def test_ready_branch(self, merge_tree_repo, git, commit_file):
        """Test a branch ahead of main is ready."""
        repo = merge_tree_repo
        git(repo, "checkout", "-q", "-b", "feature")
        commit_file(repo, "feature.txt", "feature\n")

        report = run_preflight(repo)

        assert report.head == "feature"
        assert report.commits_ahead == 1
        assert report.ready is True

    def test_conflicting_branch(self, merge_tree_repo, git, commit_file):
        """Test conflicting edits block the pull request."""
        repo = merge_tree_repo
        git(repo, "checkout", "-q", "-b", "feature")
        commit_file(repo, "greeting.txt", "hello from feature\n")
        git(repo, "checkout", "-q", "main")
        commit_file(repo, "greeting.txt", "hello from main\n")

        report = run_preflight(repo, head="feature")

        assert report.blockers == [BLOCKER_CONFLICTS]

    def test_missing_branch(self, git_repo):
        """Test a head branch that doesn't exist."""
        report = run_preflight(git_repo, head="does-not-exist")
        assert report.blockers == [BLOCKER_HEAD_MISSING]
