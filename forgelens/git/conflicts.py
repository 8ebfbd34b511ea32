"""Merge conflict prediction for ForgeLens.

Runs ``git merge-tree`` as a dry-run three-way merge and turns its output
into a ConflictReport. Two output shapes are understood:

* the write-tree format printed by current git for ``merge-tree <a> <b>``:
  a tree id, ``<mode> <object> <stage>\\t<path>`` lines for every conflicted
  path and ``CONFLICT (<kind>): ...`` messages. The merged blob of each
  conflicted path is read back to locate its conflict markers.
* diff-style output with ``diff --cc <path> <path>`` sections and conflict
  markers inline, where markers are located by their line in the output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from forgelens.git.utils import (
    CONFLICT_MARKERS,
    DEFAULT_RUNNER,
    GitCommandRunner,
    GitOutcome,
)

logger = logging.getLogger(__name__)

READY_FOR_MERGE = "Branch appears to be clean and ready for merge"
NO_CONFLICTS_DETECTED = "No conflicts detected - branch is ready for merge"

# Marker-line counts above HIGH are "high", at or below LOW are "low".
SEVERITY_HIGH_THRESHOLD = 10
SEVERITY_LOW_THRESHOLD = 3

_TREE_ID_RE = re.compile(r"^[0-9a-f]{40}(?:[0-9a-f]{24})?$")
_STAGE_LINE_RE = re.compile(r"^[0-7]{6} [0-9a-f]+ [123]\t(?P<path>.+)$")
_CONFLICT_MESSAGE_RE = re.compile(r"^CONFLICT \((?P<kind>[^)]+)\): (?P<text>.*)$")
_MERGE_CONFLICT_IN_RE = re.compile(r"Merge conflict in (?P<path>.+)$")

# C-style escapes used by git when core.quotePath quotes a path
_QUOTED_ESCAPE_RE = re.compile(rb"\\([0-3][0-7]{2}|.)", re.DOTALL)
_QUOTED_ESCAPES = {
    b"a": b"\a",
    b"b": b"\b",
    b"f": b"\f",
    b"n": b"\n",
    b"r": b"\r",
    b"t": b"\t",
    b"v": b"\v",
}

_CONFLICT_TYPES = {
    "content": "content",
    "add/add": "add_add",
    "modify/delete": "delete_modify",
    "delete/modify": "delete_modify",
}


@dataclass
class ConflictDetail:
    """Conflict information for one file."""

    file: str
    type: str = "content"
    lines: list[int] = field(default_factory=list)  # 1-based
    markers: list[str] = field(default_factory=list)
    severity: str = "low"


@dataclass
class ConflictReport:
    """Outcome of a dry-run merge between two branches."""

    has_conflicts: bool
    conflict_files: list[str] = field(default_factory=list)
    conflict_details: list[ConflictDetail] = field(default_factory=list)
    total_conflicts: int = 0
    suggested_actions: list[str] = field(default_factory=list)

    @classmethod
    def clean(cls) -> "ConflictReport":
        """Report for a merge that would apply cleanly."""
        return cls(has_conflicts=False, suggested_actions=[READY_FOR_MERGE])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MergeTreeOutput:
    """Parsed write-tree output of ``git merge-tree``."""

    tree: str
    conflicted_paths: list[str] = field(default_factory=list)
    messages: list[tuple[str, str]] = field(default_factory=list)  # (kind, text)


def conflict_severity(line_count: int) -> str:
    if line_count > SEVERITY_HIGH_THRESHOLD:
        return "high"
    if line_count <= SEVERITY_LOW_THRESHOLD:
        return "low"
    return "medium"


def create_conflict_detail(
    file: str,
    lines: list[int],
    markers: list[str],
    conflict_type: str = "content",
) -> ConflictDetail:
    """Build a ConflictDetail, ranking severity by the number of marker lines."""
    return ConflictDetail(
        file=file,
        type=conflict_type,
        lines=list(lines),
        markers=list(markers),
        severity=conflict_severity(len(lines)),
    )


def generate_conflict_suggestions(total_conflicts: int, file_count: int) -> list[str]:
    """Suggest resolution steps for a conflict analysis.

    Args:
        total_conflicts: Number of conflicting files with details.
        file_count: Number of distinct conflicting files.

    Returns:
        Ordered list of suggestions.
    """
    if total_conflicts == 0:
        return [NO_CONFLICTS_DETECTED]

    suggestions = []
    if file_count == 1:
        suggestions.append(f"Single file has {total_conflicts} conflict(s) - review and resolve manually")
    else:
        suggestions.append(f"{file_count} files have conflicts - resolve each file before merging")

    if total_conflicts > 5:
        suggestions.append("High number of conflicts - consider rebasing your branch")

    suggestions.append("Use 'git merge-base' to find common ancestor for better context")
    suggestions.append("Test your changes after resolving conflicts")
    return suggestions


def contains_conflict_marker(text: str) -> bool:
    return any(marker in text for marker in CONFLICT_MARKERS)


def _is_marker(line: str, marker: str) -> bool:
    return line == marker or line.startswith(marker + " ")


def find_conflict_markers(content: str) -> tuple[list[int], list[str]]:
    """Locate conflict marker lines in merged file content.

    ``<<<<<<<`` opens a conflict block and ``>>>>>>>`` closes it. A separator
    only counts when it is the whole line and a block is open, so lines such
    as reStructuredText underlines are not mistaken for markers.

    Returns:
        1-based line numbers and the stripped marker lines.
    """
    start, separator, end = CONFLICT_MARKERS
    lines: list[int] = []
    markers: list[str] = []
    in_conflict = False

    for number, line in enumerate(content.splitlines(), start=1):
        if _is_marker(line, start):
            in_conflict = True
        elif not in_conflict:
            continue
        elif _is_marker(line, end):
            in_conflict = False
        elif line.rstrip() != separator:
            continue
        lines.append(number)
        markers.append(line.strip())
    return lines, markers


def _build_report(files: list[str], details: list[ConflictDetail]) -> ConflictReport:
    total = len(details)
    return ConflictReport(
        has_conflicts=total > 0,
        conflict_files=files,
        conflict_details=details,
        total_conflicts=total,
        suggested_actions=generate_conflict_suggestions(total, len(files)),
    )


def analyze_conflict_output(output: str) -> ConflictReport:
    """Analyze diff-style merge output with ``diff --cc`` file sections.

    Each ``diff --cc`` line starts a section for the path in its fourth
    field; a three-field ``diff --cc <path>`` line only closes the previous
    section. Lines containing a conflict marker are attributed to the current
    section with their 1-based line number in ``output``.

    Args:
        output: merge-tree stdout.

    Returns:
        ConflictReport with one detail per file that had markers.
    """
    files: list[str] = []
    details: list[ConflictDetail] = []
    current_file: Optional[str] = None
    marker_lines: list[int] = []
    markers: list[str] = []

    def flush() -> None:
        if current_file is not None and marker_lines:
            details.append(create_conflict_detail(current_file, marker_lines, markers))

    for number, line in enumerate(output.split("\n"), start=1):
        if "diff --cc" in line:
            flush()
            parts = line.split()
            current_file = parts[3] if len(parts) >= 4 else None
            if current_file is not None and current_file not in files:
                files.append(current_file)
            marker_lines = []
            markers = []
            continue

        if current_file is not None and contains_conflict_marker(line):
            marker_lines.append(number)
            markers.append(line.strip())

    flush()
    return _build_report(files, details)


def parse_conflict_files(output: str) -> list[str]:
    """Conflicting file paths in diff-style merge output."""
    return analyze_conflict_output(output).conflict_files


def _unescape_quoted(match: re.Match) -> bytes:
    escape = match.group(1)
    if len(escape) == 3:
        return bytes([int(escape, 8)])
    return _QUOTED_ESCAPES.get(escape, escape)


def unquote_path(path: str) -> str:
    """Undo git's path quoting.

    With ``core.quotePath`` (the default) git wraps paths holding non-ASCII
    bytes, control characters, ``"`` or ``\\`` in double quotes and writes
    those bytes as C escapes, e.g. ``"caf\\303\\251.txt"`` for ``café.txt``.
    Unquoted paths are returned unchanged.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    raw = _QUOTED_ESCAPE_RE.sub(_unescape_quoted, path[1:-1].encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def parse_merge_tree_output(output: str) -> Optional[MergeTreeOutput]:
    """Parse write-tree output, or return None if output has another shape."""
    lines = output.splitlines()
    if not lines or not _TREE_ID_RE.match(lines[0].strip()):
        return None

    parsed = MergeTreeOutput(tree=lines[0].strip())
    for line in lines[1:]:
        stage = _STAGE_LINE_RE.match(line)
        if stage:
            path = unquote_path(stage.group("path"))
            if path not in parsed.conflicted_paths:
                parsed.conflicted_paths.append(path)
            continue

        message = _CONFLICT_MESSAGE_RE.match(line)
        if message:
            parsed.messages.append((message.group("kind"), message.group("text")))

    if not parsed.conflicted_paths:
        # Fall back to the paths named in the messages
        for _, text in parsed.messages:
            named = _MERGE_CONFLICT_IN_RE.search(text)
            if named:
                path = unquote_path(named.group("path"))
                if path not in parsed.conflicted_paths:
                    parsed.conflicted_paths.append(path)

    return parsed


def _normalize_conflict_type(kind: str) -> str:
    kind = kind.strip().lower()
    return _CONFLICT_TYPES.get(kind, re.sub(r"[^a-z0-9]+", "_", kind).strip("_") or "content")


def _mentions_path(text: str, path: str) -> bool:
    return re.search(r"(?<!\S)" + re.escape(path) + r"(?=[\s.,;:]|$)", text) is not None


def conflict_types(parsed: MergeTreeOutput) -> dict[str, str]:
    """Map each conflicted path to the kind named in its CONFLICT message."""
    types: dict[str, str] = {}
    for kind, text in parsed.messages:
        for path in parsed.conflicted_paths:
            if path not in types and _mentions_path(text, path):
                types[path] = _normalize_conflict_type(kind)
    return types


class ConflictAnalyzer:
    """Predicts merge conflicts between two branches without touching the worktree.

    Args:
        runner: Runner used for every git invocation.
    """

    def __init__(self, runner: Optional[GitCommandRunner] = None):
        self.runner = runner or DEFAULT_RUNNER

    def get_conflict_report(self, directory: Path | str, base: str, head: str) -> ConflictReport:
        """Run a dry-run merge of head into base and analyze the result.

        Args:
            directory: Repository directory.
            base: Target branch.
            head: Source branch.

        Returns:
            ConflictReport. A clean merge carries exactly one suggestion.

        Raises:
            GitCommandError: If merge-tree fails for a reason other than conflicts.
        """
        result, outcome = self.runner.run_classified(
            directory,
            ["merge-tree", base, head],
            expected={GitOutcome.MERGE_CONFLICT},
            action="check conflicts",
        )

        # Some git versions report conflicts with a zero exit code
        if outcome is GitOutcome.MERGE_CONFLICT or contains_conflict_marker(result.stdout):
            report = self._analyze(directory, result.stdout)
            logger.debug(
                f"merge-tree {base} {head}: {report.total_conflicts} conflict(s) in {len(report.conflict_files)} file(s)"
            )
            return report

        return ConflictReport.clean()

    def has_conflicts(self, directory: Path | str, base: str, head: str) -> tuple[bool, list[str]]:
        """Whether merging would conflict, and the conflicting files."""
        report = self.get_conflict_report(directory, base, head)
        return report.has_conflicts, report.conflict_files

    def _analyze(self, directory: Path | str, output: str) -> ConflictReport:
        parsed = parse_merge_tree_output(output)
        if parsed is None or not parsed.conflicted_paths:
            return analyze_conflict_output(output)

        types = conflict_types(parsed)
        details = []
        for path in parsed.conflicted_paths:
            lines, markers = self._read_markers(directory, parsed.tree, path)
            details.append(create_conflict_detail(path, lines, markers, types.get(path, "content")))
        return _build_report(parsed.conflicted_paths, details)

    def _read_markers(self, directory: Path | str, tree: str, path: str) -> tuple[list[int], list[str]]:
        """Locate conflict marker lines in the merged version of a path."""
        result, outcome = self.runner.run_classified(
            directory,
            ["cat-file", "-p", f"{tree}:{path}"],
            expected={GitOutcome.PATH_MISSING},
            action=f"read merged content of {path}",
        )
        if outcome is GitOutcome.PATH_MISSING:
            return [], []

        return find_conflict_markers(result.stdout)


def get_conflict_report(directory: Path | str, base: str, head: str) -> ConflictReport:
    return ConflictAnalyzer().get_conflict_report(directory, base, head)


def has_conflicts(directory: Path | str, base: str, head: str) -> tuple[bool, list[str]]:
    return ConflictAnalyzer().has_conflicts(directory, base, head)
