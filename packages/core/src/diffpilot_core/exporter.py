"""Markdown and JSON rendering of a review's comments.

The markdown report is written for two readers at once: a human skimming
the summary, and an automated fixing agent that walks the issues in
priority order. Labels like ``CRITICAL-2`` are stable for a given comment
set so either reader can refer back to a specific item.

The JSON payload is the lossless form. It is the only artifact ever read
back; the markdown is never parsed.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from diffpilot_store.models import CommentType, Priority, ReviewComment, utc_now

# Report order. Sections with no comments are omitted.
PRIORITY_ORDER: tuple[Priority, ...] = (Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW)

_SECTION_HEADINGS = {
    Priority.CRITICAL: "🚨 CRITICAL ISSUES",
    Priority.HIGH: "⚠️ HIGH PRIORITY ISSUES",
    Priority.MEDIUM: "🟡 MEDIUM PRIORITY ISSUES",
    Priority.LOW: "🟢 LOW PRIORITY ISSUES",
}

_SUMMARY_LABELS = {
    Priority.CRITICAL: "Critical",
    Priority.HIGH: "High Priority",
    Priority.MEDIUM: "Medium Priority",
    Priority.LOW: "Low Priority",
}

COMMENT_TYPE_EMOJIS = {
    CommentType.ISSUE: "🐛",
    CommentType.SUGGESTION: "💡",
    CommentType.QUESTION: "❓",
    CommentType.PRAISE: "👍",
}

_AGENT_INSTRUCTIONS = """\
## 🤖 AI AGENT INSTRUCTIONS

### Task Overview
Please review and fix all issues listed above, prioritizing CRITICAL and HIGH priority items first.

### For Each Issue:
1. **Locate the file and line number specified**
2. **Read the surrounding context to understand the problem**
3. **Implement the suggested fix or your own solution**
4. **Test that your changes don't break existing functionality**

### Priority Order:
1. Fix all CRITICAL issues first
2. Then HIGH priority issues
3. Then MEDIUM priority issues
4. Finally LOW priority issues

---
*Generated by DiffPilot*
"""


def group_by_priority(comments: list[ReviewComment]) -> dict[Priority, list[ReviewComment]]:
    """Bucket comments by priority, keeping insertion order inside each bucket."""
    groups: dict[Priority, list[ReviewComment]] = {p: [] for p in PRIORITY_ORDER}
    for c in comments:
        groups[c.priority].append(c)
    return groups


def format_line_range(comment: ReviewComment) -> str:
    if comment.end_line is not None and comment.end_line != comment.line:
        return f"{comment.line}-{comment.end_line}"
    return str(comment.line)


def _format_comment(comment: ReviewComment, label: str) -> str:
    emoji = COMMENT_TYPE_EMOJIS.get(comment.type, "")
    return (
        f"### {label}: {emoji} {comment.type.value.capitalize()}\n\n"
        f"**File**: `{comment.file}`  \n"
        f"**Line**: {format_line_range(comment)}  \n\n"
        f"**Comment**: {comment.comment}\n\n"
        "---\n\n"
    )


def generate_report(comments: list[ReviewComment], branch: str, generated_at: datetime | None = None) -> str:
    """Render the priority-grouped markdown report.

    ``generated_at`` defaults to now; pass a fixed value for reproducible output.
    """
    when = generated_at or datetime.now(timezone.utc)
    groups = group_by_priority(comments)

    lines = [
        "# Code Review\n",
        f"**Branch**: `{branch}`  ",
        f"**Date**: {when.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}  ",
        f"**Total Comments**: {len(comments)}  \n",
        "## Summary",
    ]
    for priority in PRIORITY_ORDER:
        lines.append(f"- **{_SUMMARY_LABELS[priority]}**: {len(groups[priority])}")
    lines.append("")

    body = "\n".join(lines) + "\n"
    for priority in PRIORITY_ORDER:
        group = groups[priority]
        if not group:
            continue
        body += f"## {_SECTION_HEADINGS[priority]}\n\n"
        for index, comment in enumerate(group, 1):
            body += _format_comment(comment, f"{priority.value.upper()}-{index}")

    return body + "\n" + _AGENT_INSTRUCTIONS


def to_payload(comments: list[ReviewComment], branch: str, last_updated: str | None = None) -> dict:
    return {
        "branch": branch,
        "comments": [c.to_dict() for c in comments],
        "lastUpdated": last_updated or utc_now(),
    }


def generate_json(comments: list[ReviewComment], branch: str, last_updated: str | None = None) -> str:
    return json.dumps(to_payload(comments, branch, last_updated), indent=2, ensure_ascii=False)


def parse_json(text: str) -> list[ReviewComment]:
    """Rebuild the comment list from a JSON artifact produced by generate_json()."""
    data = json.loads(text)
    return [ReviewComment.from_dict(c) for c in data.get("comments", [])]
