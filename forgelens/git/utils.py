"""Git subprocess execution and failure classification for ForgeLens."""

from __future__ import annotations

import enum
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, NoReturn, Optional, Sequence

from forgelens.errors import GitCommandError, GitCommandTimeoutError

logger = logging.getLogger(__name__)

# Seconds a single git invocation may run before it is killed.
GIT_COMMAND_TIMEOUT = 30.0

CONFLICT_MARKERS = ("<<<<<<<", "=======", ">>>>>>>")


class GitOutcome(enum.Enum):
    """Semantic meaning of a recognised nonzero git exit."""

    BRANCH_MISSING = "branch_missing"
    NOT_ANCESTOR = "not_ancestor"
    MERGE_CONFLICT = "merge_conflict"
    PATH_MISSING = "path_missing"


@dataclass
class GitResult:
    """Captured result of one git invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def subcommand(self) -> str:
        return self.args[0] if self.args else ""

    def command_line(self) -> str:
        return "git " + " ".join(self.args)


@dataclass(frozen=True)
class OutcomeRule:
    """One row of the failure classification table.

    A rule matches a failed result when the subcommand is equal, the exit
    code is equal (or any nonzero code when ``returncode`` is None) and the
    pattern, if any, is found in the chosen stream.
    """

    subcommand: str
    outcome: GitOutcome
    pattern: Optional[re.Pattern[str]] = None
    stream: str = "stderr"
    returncode: Optional[int] = None

    def matches(self, result: GitResult) -> bool:
        if result.ok or result.subcommand != self.subcommand:
            return False
        if self.returncode is not None and result.returncode != self.returncode:
            return False
        if self.pattern is None:
            return True
        text = result.stdout if self.stream == "stdout" else result.stderr
        return self.pattern.search(text) is not None


# Every stderr/stdout pattern the git layer understands lives here. Rules are
# tried in order and the first match wins.
OUTCOME_RULES: tuple[OutcomeRule, ...] = (
    OutcomeRule("rev-parse", GitOutcome.BRANCH_MISSING, re.compile(r"unknown revision or path")),
    OutcomeRule("rev-parse", GitOutcome.BRANCH_MISSING, re.compile(r"Needed a single revision")),
    OutcomeRule("merge-base", GitOutcome.NOT_ANCESTOR, re.compile(r"is not an ancestor")),
    # --is-ancestor answers "no" with a silent exit status of 1
    OutcomeRule("merge-base", GitOutcome.NOT_ANCESTOR, returncode=1),
    OutcomeRule("merge-tree", GitOutcome.MERGE_CONFLICT, re.compile(r"merge conflict", re.IGNORECASE)),
    OutcomeRule("merge-tree", GitOutcome.MERGE_CONFLICT, re.compile(re.escape(CONFLICT_MARKERS[0])), stream="stdout"),
    OutcomeRule("merge-tree", GitOutcome.MERGE_CONFLICT, re.compile(r"^CONFLICT \(", re.MULTILINE), stream="stdout", returncode=1),
    OutcomeRule("cat-file", GitOutcome.PATH_MISSING, re.compile(r"does not exist")),
)


def classify_result(
    result: GitResult,
    rules: Sequence[OutcomeRule] = OUTCOME_RULES,
) -> Optional[GitOutcome]:
    """Map a failed git result to a semantic outcome.

    Args:
        result: Result of a git invocation.
        rules: Classification table to consult.

    Returns:
        The outcome of the first matching rule, or None for successful
        results and unrecognised failures.
    """
    for rule in rules:
        if rule.matches(result):
            return rule.outcome
    return None


def raise_for_result(result: GitResult, action: str) -> NoReturn:
    """Raise GitCommandError describing a failed result.

    Args:
        result: The failed result.
        action: Short description of what was being attempted.

    Raises:
        GitCommandError: Always.
    """
    stderr = result.stderr.strip()
    message = f"failed to {action}: {result.command_line()} exited with {result.returncode}"
    if stderr:
        message += f", stderr: {stderr}"
    raise GitCommandError(message, args=result.args, returncode=result.returncode, stderr=result.stderr)


def run_git_command(
    args: Sequence[str],
    cwd: Path | str,
    timeout: float = GIT_COMMAND_TIMEOUT,
    check: bool = True,
    executable: str = "git",
    locale: Optional[str] = "C",
) -> GitResult:
    """Run a git command and return its captured output.

    Args:
        args: Git command arguments (without 'git' prefix).
        cwd: Working directory for the command, normally the repository root.
        timeout: Command timeout in seconds.
        check: If True, raise GitCommandError on non-zero exit.
        executable: Git executable to invoke.
        locale: Value pinned into LC_ALL and LANG, or None to inherit.

    Returns:
        GitResult with stdout/stderr.

    Raises:
        GitCommandError: If check=True and command fails, or git can't be started.
        GitCommandTimeoutError: If the command times out. The process is killed.
    """
    args = list(args)
    cmd = [executable] + args

    logger.debug(f"Running git command: {' '.join(cmd)} (cwd={cwd})")

    env = dict(os.environ)
    if locale:
        env["LC_ALL"] = locale
        env["LANG"] = locale

    try:
        completed = subprocess.run(
            cmd,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Git command timed out after {timeout}s: {' '.join(cmd)}")
        raise GitCommandTimeoutError(args, timeout) from None
    except OSError as e:
        raise GitCommandError(f"failed to start {executable}: {e}", args=args) from e

    result = GitResult(
        args=args,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )

    if check and not result.ok:
        raise_for_result(result, f"run git {result.subcommand}")

    return result


@dataclass(frozen=True)
class GitCommandRunner:
    """Runs git subprocesses with fixed settings.

    The runner holds no state besides its configuration, so one instance
    can be shared freely between threads and calls.
    """

    timeout: float = GIT_COMMAND_TIMEOUT
    executable: str = "git"
    locale: Optional[str] = "C"

    def run(self, directory: Path | str, args: Sequence[str], check: bool = False) -> GitResult:
        """Run ``git <args>`` inside ``directory``."""
        return run_git_command(
            args,
            cwd=directory,
            timeout=self.timeout,
            check=check,
            executable=self.executable,
            locale=self.locale,
        )

    def run_classified(
        self,
        directory: Path | str,
        args: Sequence[str],
        expected: Collection[GitOutcome],
        action: str,
    ) -> tuple[GitResult, Optional[GitOutcome]]:
        """Run a command whose failures may carry meaning.

        Args:
            directory: Repository directory.
            args: Git command arguments.
            expected: Outcomes the caller handles itself.
            action: Description used in the error message.

        Returns:
            Tuple of the result and its outcome. The outcome is None when
            the command succeeded.

        Raises:
            GitCommandError: If the command failed with an outcome that is
                not in ``expected``.
        """
        result = self.run(directory, args)
        if result.ok:
            return result, None

        outcome = classify_result(result)
        if outcome is not None and outcome in expected:
            logger.debug(f"{result.command_line()} exited with {result.returncode}: {outcome.value}")
            return result, outcome

        raise_for_result(result, action)


DEFAULT_RUNNER = GitCommandRunner()
