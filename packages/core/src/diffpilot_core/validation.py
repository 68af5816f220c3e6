"""Path and branch-name validation.

An invalid path is never opened and a malformed branch name never becomes a
file name: callers validate first and only then touch the file system.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import TypeVar

from diffpilot_core.errors import ValidationError

# Control characters, DEL, space and the characters git forbids in ref names.
_INVALID_BRANCH_CHARS = re.compile(r"[\x00-\x1f\x7f ~^:?*\[\\]")
_MAX_BRANCH_LENGTH = 255

E = TypeVar("E", bound=Enum)


def validate_branch_name(name: str) -> str:
    """Return ``name`` unchanged if it is safe as a file-name component."""
    if not name:
        raise ValidationError("Invalid branch name: empty", "branch")
    if _INVALID_BRANCH_CHARS.search(name):
        raise ValidationError("Invalid branch name: contains forbidden characters", "branch")
    if name.startswith((".", "-")):
        raise ValidationError("Invalid branch name: cannot start with . or -", "branch")
    if name.endswith((".", ".lock")):
        raise ValidationError("Invalid branch name: invalid ending", "branch")
    if ".." in name or "//" in name:
        raise ValidationError("Invalid branch name: contains invalid sequences", "branch")
    if len(name) > _MAX_BRANCH_LENGTH:
        raise ValidationError(f"Invalid branch name: too long (max {_MAX_BRANCH_LENGTH} characters)", "branch")
    return name


def validate_path(file_path: str | Path, workspace_root: str | Path) -> Path:
    """Resolve ``file_path`` against the workspace root and ensure it stays inside.

    ``..`` segments are allowed as long as the resolved path does not escape.
    """
    if "\0" in str(file_path):
        raise ValidationError("Null bytes in path are not allowed", "path")
    root = Path(workspace_root).resolve()
    resolved = (root / file_path).resolve()
    if resolved != root and root not in resolved.parents:
        raise ValidationError(f"Path traversal attempt detected: {file_path}", "path")
    return resolved


def safe_join(workspace_root: str | Path, *segments: str) -> Path:
    parts = [s for s in segments if s]
    return validate_path(Path(*parts) if parts else Path("."), workspace_root)


def coerce_enum(enum_cls: type[E], value: object, field: str) -> E:
    """Return ``value`` as a member of ``enum_cls`` or raise ValidationError."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r}. Expected one of: {allowed}", field) from None
