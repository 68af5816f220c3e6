"""No-op store — used when persistence is disabled (``store: noop``).

Using a NoOpStore rather than None lets the session manager always schedule
writes without conditional checks. Comments live for the process lifetime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from diffpilot_store.base import BaseStore

if TYPE_CHECKING:
    from diffpilot_store.models import ReviewComment


class NoOpStore(BaseStore):
    """Silently discards all writes and never has anything to load."""

    def load(self, branch: str) -> list[ReviewComment] | None:
        return None

    def write(self, branch: str, report: str, payload: str) -> None:
        pass  # intentional no-op
