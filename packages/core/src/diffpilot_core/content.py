"""Load the original/modified pair for a changed file.

The pair feeds compute_diff(). Which side comes from git and which from the
working tree depends on the file's status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from diffpilot_core.errors import FileSystemError, ValidationError
from diffpilot_core.validation import safe_join
from diffpilot_core.vcs import ChangedFile, FileStatus

if TYPE_CHECKING:
    from diffpilot_core.filesystem import FileSystemService
    from diffpilot_core.vcs import GitSourceControl

logger = logging.getLogger(__name__)


@dataclass
class DiffContent:
    content: str  # text shown when not in diff mode
    original: str
    modified: str


def load_diff_content(
    changed_file: ChangedFile,
    fs: FileSystemService,
    scm: GitSourceControl,
    ref: str = "HEAD",
) -> DiffContent:
    full_path = safe_join(fs.workspace_root, changed_file.path)
    logger.debug("Loading file content for: %s", full_path)

    if fs.file_exists(full_path):
        if not fs.is_file(full_path):
            raise FileSystemError(f"Path is not a file: {full_path}", str(full_path))
    elif changed_file.status != FileStatus.DELETED:
        raise FileSystemError(f"File does not exist: {full_path}", str(full_path))

    if changed_file.status in (FileStatus.ADDED, FileStatus.UNTRACKED):
        modified = fs.read_file(full_path)
        return DiffContent(content=modified, original="", modified=modified)

    if changed_file.status == FileStatus.MODIFIED:
        original = scm.show_file(changed_file.path, ref)
        modified = fs.read_file(full_path)
        return DiffContent(content=modified, original=original, modified=modified)

    if changed_file.status == FileStatus.DELETED:
        original = scm.show_file(changed_file.path, ref)
        return DiffContent(content=original, original=original, modified="")

    raise ValidationError(f"Unsupported file status: {changed_file.status}", "status")
