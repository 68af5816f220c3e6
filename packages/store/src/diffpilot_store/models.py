"""Review comment data models.

Decoupled from diffpilot_core so the store layer can be used independently
of the diff engine and the session manager.

The dict form produced by ``to_dict()`` is the persisted JSON shape: field
names are camelCase (``endLine``) so artifacts stay readable by the editor
integration that consumes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class CommentType(str, Enum):
    ISSUE = "issue"
    SUGGESTION = "suggestion"
    QUESTION = "question"
    PRAISE = "praise"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ReviewComment:
    """A single comment anchored to a line of the modified text."""

    id: str
    file: str  # workspace-relative path
    line: int
    comment: str
    type: CommentType
    priority: Priority
    timestamp: str  # ISO-8601 UTC timestamp
    end_line: int | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "file": self.file,
            "line": self.line,
            "comment": self.comment,
            "type": self.type.value,
            "priority": self.priority.value,
            "timestamp": self.timestamp,
        }
        if self.end_line is not None:
            d["endLine"] = self.end_line
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ReviewComment:
        return cls(
            id=d["id"],
            file=d.get("file", ""),
            line=int(d.get("line", 1)),
            comment=d.get("comment", ""),
            type=CommentType(d.get("type", CommentType.ISSUE.value)),
            priority=Priority(d.get("priority", Priority.MEDIUM.value)),
            timestamp=d.get("timestamp", ""),
            end_line=d.get("endLine"),
        )


@dataclass
class ReviewSession:
    """The comment set associated with one branch.

    ``status`` is descriptive only; nothing moves a session to "completed".
    """

    branch: str
    base_branch: str
    timestamp: str = field(default_factory=utc_now)
    status: str = "in-progress"  # "in-progress" | "completed"
    comments: list[ReviewComment] = field(default_factory=list)
