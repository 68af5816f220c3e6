"""Message handling for a single file's review view.

The view (a terminal, an editor panel, anything that shows diff lines) sends
plain-dict messages and receives plain-dict replies:

  in:  {"command": "addComment", "line", "comment", "type", "priority"[, "endLine"]}
       {"command": "editComment", "commentId", "comment", "type", "priority"}
       {"command": "deleteComment", "commentId"}
  out: {"command": "commentAdded", "comment"}
       {"command": "commentUpdated", "comment"}
       {"command": "commentDeleted", "commentId"}

Comments in replies use the persisted dict shape (ReviewComment.to_dict()).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from diffpilot_core.diff import DiffLine, compute_diff
from diffpilot_core.errors import ValidationError
from diffpilot_core.validation import coerce_enum
from diffpilot_store.models import CommentType, Priority, ReviewComment

if TYPE_CHECKING:
    from diffpilot_core.session import ReviewSessionManager

logger = logging.getLogger(__name__)


@dataclass
class AnnotatedLine:
    line: DiffLine
    comments: list[ReviewComment] = field(default_factory=list)


def _require(message: dict, key: str):
    if key not in message or message[key] is None:
        raise ValidationError(f"Message {message.get('command')!r} is missing {key!r}", key)
    return message[key]


class ReviewPanel:
    def __init__(self, manager: ReviewSessionManager, file_path: str):
        self._manager = manager
        self._file = file_path

    @property
    def file_path(self) -> str:
        return self._file

    @property
    def comments(self) -> list[ReviewComment]:
        return self._manager.comments_for_file(self._file)

    def handle_message(self, message: dict) -> dict | None:
        """Apply one incoming message and return the reply, or None if there is nothing to send."""
        if not isinstance(message, dict):
            raise ValidationError("Message must be a mapping", "message")
        command = message.get("command")
        handlers = {
            "addComment": self._handle_add,
            "editComment": self._handle_edit,
            "deleteComment": self._handle_delete,
        }
        handler = handlers.get(command)
        if handler is None:
            raise ValidationError(f"Unknown command: {command!r}", "command")
        logger.debug("Received panel message: %s", command)
        return handler(message)

    def _handle_add(self, message: dict) -> dict:
        comment = self._manager.add_comment(
            file=self._file,
            line=_require(message, "line"),
            comment=_require(message, "comment"),
            type=coerce_enum(CommentType, _require(message, "type"), "type"),
            priority=coerce_enum(Priority, _require(message, "priority"), "priority"),
            end_line=message.get("endLine"),
        )
        return {"command": "commentAdded", "comment": comment.to_dict()}

    def _handle_edit(self, message: dict) -> dict | None:
        updated = self._manager.edit_comment(
            _require(message, "commentId"),
            comment=_require(message, "comment"),
            type=coerce_enum(CommentType, _require(message, "type"), "type"),
            priority=coerce_enum(Priority, _require(message, "priority"), "priority"),
        )
        if updated is None:
            return None
        return {"command": "commentUpdated", "comment": updated.to_dict()}

    def _handle_delete(self, message: dict) -> dict | None:
        comment_id = _require(message, "commentId")
        if not self._manager.delete_comment(comment_id):
            return None
        return {"command": "commentDeleted", "commentId": comment_id}

    def render_lines(self, original: str, modified: str) -> list[AnnotatedLine]:
        """Diff the two texts and attach this file's comments to their anchor lines.

        Comments anchor in the modified text's line space, so removed lines
        never carry comments.
        """
        by_line: dict[int, list[ReviewComment]] = {}
        for c in self.comments:
            by_line.setdefault(c.line, []).append(c)
        return [
            AnnotatedLine(line, by_line.get(line.new_line_number, []) if line.new_line_number else [])
            for line in compute_diff(original, modified)
        ]
