"""In-memory comment repository.

The repository is the immediately-visible source of truth for reads. Every
mutation applies synchronously; durable persistence is the job of a
BaseStore driven by the session manager, so a failed write never rolls back
what the repository already holds.
"""

from __future__ import annotations

import logging
from typing import Iterable

from diffpilot_store.models import ReviewComment

logger = logging.getLogger(__name__)


class CommentRepository:
    """CRUD over ReviewComment entities, keyed by id, in insertion order."""

    def __init__(self, comments: Iterable[ReviewComment] = ()):
        self._comments: list[ReviewComment] = list(comments)

    def __len__(self) -> int:
        return len(self._comments)

    def find_all(self) -> list[ReviewComment]:
        return list(self._comments)

    def find_by_file(self, path: str) -> list[ReviewComment]:
        return [c for c in self._comments if c.file == path]

    def find_by_id(self, comment_id: str) -> ReviewComment | None:
        for c in self._comments:
            if c.id == comment_id:
                return c
        return None

    def save(self, comment: ReviewComment) -> None:
        """Upsert: replace the entry with the same id in place, else append."""
        for i, existing in enumerate(self._comments):
            if existing.id == comment.id:
                self._comments[i] = comment
                logger.debug("Updated existing comment: %s", comment.id)
                return
        self._comments.append(comment)
        logger.debug("Added new comment: %s", comment.id)

    def delete(self, comment_id: str) -> bool:
        for i, existing in enumerate(self._comments):
            if existing.id == comment_id:
                del self._comments[i]
                logger.debug("Deleted comment: %s", comment_id)
                return True
        logger.debug("Comment not found: %s", comment_id)
        return False

    def clear(self) -> None:
        self._comments = []

    def replace_all(self, comments: Iterable[ReviewComment]) -> None:
        """Swap the whole collection, used when a session is loaded from a store."""
        self._comments = list(comments)
