"""Line classification between an original and a modified text.

This is a single-pass heuristic matcher, not a minimal edit script. Lines
with duplicate content can be matched to the wrong occurrence and moved
blocks show up as remove/add pairs. The output drives coloring and comment
anchoring only, so it is never used to reconstruct one text from the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Slack on top of len(original) + len(modified); the loop terminates well
# before this under the matching rules below.
_ITERATION_MARGIN = 100


@dataclass(frozen=True)
class DiffLine:
    type: str  # "unchanged" | "added" | "removed"
    content: str
    old_line_number: int | None = None
    new_line_number: int | None = None


def compute_diff(original: str, modified: str) -> list[DiffLine]:
    """Classify every line of both texts as unchanged, added or removed.

    Line numbers are 1-based. ``new_line_number`` is the anchor space for
    review comments.
    """
    if not original and not modified:
        return []

    if not original:
        return [DiffLine("added", line, new_line_number=i) for i, line in enumerate(modified.split("\n"), 1)]

    if not modified:
        return [DiffLine("removed", line, old_line_number=i) for i, line in enumerate(original.split("\n"), 1)]

    old_lines = original.split("\n")
    new_lines = modified.split("\n")
    old_set = set(old_lines)
    new_set = set(new_lines)
    logger.debug("Computing diff between %d original and %d modified lines", len(old_lines), len(new_lines))

    diff: list[DiffLine] = []
    old_index = 0
    new_index = 0
    max_iterations = len(old_lines) + len(new_lines) + _ITERATION_MARGIN
    iterations = 0

    while old_index < len(old_lines) or new_index < len(new_lines):
        iterations += 1
        if iterations > max_iterations:
            logger.error("Diff computation exceeded %d iterations; returning partial result", max_iterations)
            break

        old_line = old_lines[old_index] if old_index < len(old_lines) else None
        new_line = new_lines[new_index] if new_index < len(new_lines) else None

        if old_line is not None and old_line == new_line:
            diff.append(DiffLine("unchanged", old_line, old_index + 1, new_index + 1))
            old_index += 1
            new_index += 1
        elif old_line is not None and old_line not in new_set:
            diff.append(DiffLine("removed", old_line, old_line_number=old_index + 1))
            old_index += 1
        elif new_line is not None and new_line not in old_set:
            diff.append(DiffLine("added", new_line, new_line_number=new_index + 1))
            new_index += 1
        else:
            # Both lines occur elsewhere in the other text: show a replacement.
            if old_line is not None:
                diff.append(DiffLine("removed", old_line, old_line_number=old_index + 1))
                old_index += 1
            if new_line is not None:
                diff.append(DiffLine("added", new_line, new_line_number=new_index + 1))
                new_index += 1

    logger.debug("Diff computation completed with %d lines", len(diff))
    return diff
