"""Local git repository introspection for ForgeLens.

This package resolves directories to hosted repositories, detects forks,
inspects branch state and predicts merge conflicts. Configuration is read
from .git/config directly; everything else drives the git executable.
"""

from forgelens.git.branches import (
    BranchInspector,
    branch_exists,
    get_commit_count,
    get_current_branch,
    is_branch_behind,
)
from forgelens.git.conflicts import (
    ConflictAnalyzer,
    ConflictDetail,
    ConflictReport,
    analyze_conflict_output,
    get_conflict_report,
    has_conflicts,
)
from forgelens.git.remotes import (
    RemoteEntry,
    extract_all_remotes,
    extract_remote_entries,
    parse_remote_url,
    split_repository,
    validate_directory,
)
from forgelens.git.repository import (
    ForkInfo,
    RepositoryResolution,
    RepositoryResolver,
    detect_fork_relationship,
)
from forgelens.git.utils import (
    GIT_COMMAND_TIMEOUT,
    GitCommandRunner,
    GitOutcome,
    GitResult,
    classify_result,
    run_git_command,
)

__all__ = [
    # Resolution
    "RepositoryResolver",
    "RepositoryResolution",
    "ForkInfo",
    "RemoteEntry",
    "detect_fork_relationship",
    "extract_all_remotes",
    "extract_remote_entries",
    "parse_remote_url",
    "split_repository",
    "validate_directory",
    # Subprocess layer
    "GIT_COMMAND_TIMEOUT",
    "GitCommandRunner",
    "GitOutcome",
    "GitResult",
    "classify_result",
    "run_git_command",
    # Branches
    "BranchInspector",
    "branch_exists",
    "get_commit_count",
    "get_current_branch",
    "is_branch_behind",
    # Conflicts
    "ConflictAnalyzer",
    "ConflictDetail",
    "ConflictReport",
    "analyze_conflict_output",
    "get_conflict_report",
    "has_conflicts",
]
