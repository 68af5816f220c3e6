"""Source-control collaborator backed by the ``git`` executable.

Answers the three read-only questions the review core asks: the current
branch, a file at a revision, and the list of changed paths. The session
manager and the content loader use only the public methods, so tests
substitute a fake with the same surface.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from diffpilot_core.errors import SourceControlError

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 10


class FileStatus(str, Enum):
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class ChangedFile:
    path: str  # relative to the workspace root, forward slashes
    status: FileStatus
    staged: bool


def _map_status(code: str) -> FileStatus:
    if code == "?":
        return FileStatus.UNTRACKED
    if code == "A":
        return FileStatus.ADDED
    if code == "D":
        return FileStatus.DELETED
    return FileStatus.MODIFIED


def parse_porcelain(output: str) -> list[ChangedFile]:
    """Parse ``git status --porcelain -z`` output into ChangedFile entries.

    Index (staged) state wins over the working tree for the same path.
    """
    changes: dict[str, ChangedFile] = {}
    entries = iter(output.split("\0"))
    for entry in entries:
        if len(entry) < 4:
            continue
        index_code, tree_code, path = entry[0], entry[1], entry[3:]
        if index_code in ("R", "C"):
            next(entries, None)  # rename/copy source path
        if index_code == "?":
            changes.setdefault(path, ChangedFile(path, FileStatus.UNTRACKED, staged=False))
        elif index_code != " ":
            changes[path] = ChangedFile(path, _map_status(index_code), staged=True)
        elif path not in changes:
            changes[path] = ChangedFile(path, _map_status(tree_code), staged=False)
    return list(changes.values())


class GitSourceControl:
    """Answers source-control questions for the repository at ``workspace_root``."""

    def __init__(self, workspace_root: str | Path):
        self._root = Path(workspace_root)

    def _run(self, *args: str, operation: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self._root,
                capture_output=True,
                text=True,
                timeout=_GIT_TIMEOUT,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise SourceControlError(f"git is not available: {e}", operation) from e
        if result.returncode != 0:
            raise SourceControlError(result.stderr.strip() or f"git {args[0]} failed", operation)
        return result.stdout

    def is_ready(self) -> bool:
        try:
            self._run("rev-parse", "--git-dir", operation="is_ready")
        except SourceControlError:
            return False
        return True

    def current_branch(self) -> str:
        """Return the checked-out branch, or ``detached-<sha7>`` on a detached HEAD."""
        try:
            branch = self._run("symbolic-ref", "--short", "-q", "HEAD", operation="current_branch").strip()
            if branch:
                logger.debug("Branch detected: %s", branch)
                return branch
        except SourceControlError:
            pass  # detached HEAD; fall through to the commit id

        commit = self._run("rev-parse", "HEAD", operation="current_branch").strip()
        if not commit:
            raise SourceControlError("No branch or commit could be resolved", "current_branch")
        logger.debug("Detached HEAD state, using commit hash")
        return f"detached-{commit[:7]}"

    def show_file(self, path: str, ref: str = "HEAD") -> str:
        """Return the content of ``path`` as of revision ``ref``."""
        rel = Path(path).as_posix()
        return self._run("show", f"{ref}:./{rel}", operation="show_file")

    def changed_files(self) -> list[ChangedFile]:
        output = self._run("status", "--porcelain", "-z", "--untracked-files=all", operation="changed_files")
        return parse_porcelain(output)

    def branches(self) -> list[str]:
        try:
            output = self._run("branch", "--format=%(refname:short)", operation="branches")
        except SourceControlError as e:
            logger.warning("Could not list branches: %s", e)
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]
