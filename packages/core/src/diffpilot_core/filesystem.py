"""File-system collaborator: UTF-8 text I/O restricted to the workspace."""

from __future__ import annotations

import logging
from pathlib import Path

from diffpilot_core.errors import FileSystemError, ValidationError
from diffpilot_core.validation import safe_join
from diffpilot_core.vcs import ChangedFile, FileStatus

logger = logging.getLogger(__name__)


class FileSystemService:
    def __init__(self, workspace_root: str | Path):
        self._root = Path(workspace_root)

    @property
    def workspace_root(self) -> Path:
        return self._root

    def read_file(self, path: str | Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error reading file %s: %s", path, e)
            raise FileSystemError(f"Failed to read file: {e}", str(path)) from e

    def write_file(self, path: str | Path, content: str) -> None:
        try:
            Path(path).write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error("Error writing file %s: %s", path, e)
            raise FileSystemError(f"Failed to write file: {e}", str(path)) from e

    def file_exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def is_file(self, path: str | Path) -> bool:
        return Path(path).is_file()

    def create_directory(self, path: str | Path) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Error creating directory %s: %s", path, e)
            raise FileSystemError(f"Failed to create directory: {e}", str(path)) from e

    def safe_read_file(self, relative_path: str) -> str:
        return self.read_file(safe_join(self._root, relative_path))

    def safe_write_file(self, relative_path: str, content: str) -> None:
        self.write_file(safe_join(self._root, relative_path), content)

    def filter_valid_files(self, files: list[ChangedFile], reviews_dir: str | Path) -> list[ChangedFile]:
        """Drop review artifacts, paths outside the workspace, and directories.

        Deleted files are kept even though they no longer exist on disk.
        """
        reviews_root = Path(reviews_dir).resolve()
        valid = []
        for f in files:
            try:
                full_path = safe_join(self._root, f.path)
            except ValidationError as e:
                logger.error("Invalid file path detected: %s (%s)", f.path, e)
                continue
            if full_path == reviews_root or reviews_root in full_path.parents:
                logger.debug("Filtering out review file: %s", f.path)
                continue
            if f.status != FileStatus.DELETED and full_path.exists() and not full_path.is_file():
                logger.debug("Filtering out directory: %s", f.path)
                continue
            valid.append(f)
        return valid
