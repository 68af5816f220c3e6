"""Abstract store interface.

A store is the durable side of a review session: it loads the comments saved
for a branch and writes the exported artifacts back. The session manager
depends on BaseStore, not on a concrete backend, so tests and hosts can swap
backends without touching session code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from diffpilot_store.models import ReviewComment


class StoreError(Exception):
    """Raised when a store cannot read or write its artifacts."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class BaseStore(ABC):
    """Pluggable persistence layer for one branch's review artifacts.

    ``branch`` is always a name already validated as a safe file-name
    component; stores build artifact names from it directly.
    """

    @abstractmethod
    def load(self, branch: str) -> list[ReviewComment] | None:
        """Return the comments persisted for a branch, or None if nothing exists.

        Raises StoreError when an artifact exists but cannot be read.
        """

    @abstractmethod
    def write(self, branch: str, report: str, payload: str) -> None:
        """Persist the markdown report and the JSON payload for a branch.

        Raises StoreError on failure. Each call replaces the full contents.
        """

    def close(self) -> None:
        """Release any resources held by the store.

        Optional. Default is a no-op so callers can always call close() safely.
        """
