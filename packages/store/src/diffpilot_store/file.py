"""FileStore — review artifacts as plain files in the workspace.

The markdown report is handed to a human or a fixing agent straight from the
working tree. The JSON file is the lossless representation and the only thing
read back; the markdown is never parsed.

Layout, for a validated branch name ``<branch>`` (a ``/`` nests a subdirectory):
  <reviews_dir>/review-<branch>.md    — priority-ordered report
  <reviews_dir>/review-<branch>.json  — {branch, comments, lastUpdated}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from diffpilot_store.base import BaseStore, StoreError
from diffpilot_store.models import ReviewComment

logger = logging.getLogger(__name__)


def report_filename(branch: str) -> str:
    return f"review-{branch}.md"


def json_filename(branch: str) -> str:
    return f"review-{branch}.json"


class FileStore(BaseStore):
    """Reads and writes one branch's artifacts under ``reviews_dir``.

    The directory is created on first write. Branch names containing "/"
    nest their artifacts in subdirectories; any path resolving outside the
    directory is refused before a file is opened.
    """

    def __init__(self, reviews_dir: str | Path):
        self._reviews_dir = Path(reviews_dir)

    @property
    def reviews_dir(self) -> Path:
        return self._reviews_dir

    def _artifact_path(self, filename: str) -> Path:
        root = self._reviews_dir.resolve()
        path = (root / filename).resolve()
        if root not in path.parents:
            raise StoreError(f"Artifact path escapes the reviews directory: {filename}", str(path))
        return path

    def load(self, branch: str) -> list[ReviewComment] | None:
        path = self._artifact_path(json_filename(branch))
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [ReviewComment.from_dict(c) for c in data.get("comments", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise StoreError(f"Failed to load comments from {path.name}: {e}", str(path)) from e

    def write(self, branch: str, report: str, payload: str) -> None:
        md_path = self._artifact_path(report_filename(branch))
        json_path = self._artifact_path(json_filename(branch))
        try:
            # Encode both first so an unencodable comment leaves the old pair untouched.
            md_bytes = report.encode("utf-8")
            json_bytes = payload.encode("utf-8")
            md_path.parent.mkdir(parents=True, exist_ok=True)
            md_path.write_bytes(md_bytes)
            json_path.write_bytes(json_bytes)
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to write review artifacts for {branch}: {e}", str(self._reviews_dir)) from e
        logger.debug("Wrote %s and %s", md_path, json_path)
