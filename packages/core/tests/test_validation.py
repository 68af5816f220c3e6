"""Tests for path and branch-name validation."""

import pytest

from diffpilot_core.errors import ValidationError
from diffpilot_core.validation import coerce_enum, safe_join, validate_branch_name, validate_path
from diffpilot_store.models import Priority


class TestValidateBranchName:
    @pytest.mark.parametrize("name", ["main", "feature/login", "release-1.2", "detached-abc1234", "a" * 255])
    def test_valid_names_returned_unchanged(self, name):
        assert validate_branch_name(name) == name

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "feature/../x",
            ".hidden",
            "-flag",
            "ends.",
            "topic.lock",
            "double//slash",
            "has space",
            "tilde~1",
            "caret^",
            "colon:x",
            "what?",
            "star*",
            "bracket[",
            "back\\slash",
            "ctrl\x07char",
            "del\x7f",
            "a" * 256,
        ],
    )
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValidationError) as exc:
            validate_branch_name(name)
        assert exc.value.code == "VALIDATION_ERROR"
        assert exc.value.field == "branch"


class TestValidatePath:
    def test_relative_path_resolves_inside_root(self, tmp_path):
        assert validate_path("src/app.py", tmp_path) == (tmp_path / "src" / "app.py").resolve()

    def test_dot_dot_allowed_when_staying_inside(self, tmp_path):
        assert validate_path("src/../app.py", tmp_path) == (tmp_path / "app.py").resolve()

    def test_traversal_outside_root_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            validate_path("../outside.txt", tmp_path)

    def test_absolute_path_outside_root_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            validate_path("/etc/passwd", tmp_path)

    def test_null_byte_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            validate_path("a\0b.py", tmp_path)


class TestSafeJoin:
    def test_joins_segments(self, tmp_path):
        assert safe_join(tmp_path, ".diffpilot", "reviews") == (tmp_path / ".diffpilot" / "reviews").resolve()

    def test_empty_segments_ignored(self, tmp_path):
        assert safe_join(tmp_path, "", "a.py") == (tmp_path / "a.py").resolve()

    def test_escaping_join_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            safe_join(tmp_path, "..", "elsewhere")


class TestCoerceEnum:
    def test_accepts_value(self):
        assert coerce_enum(Priority, "high", "priority") is Priority.HIGH

    def test_accepts_member(self):
        assert coerce_enum(Priority, Priority.LOW, "priority") is Priority.LOW

    def test_rejects_unknown_value(self):
        with pytest.raises(ValidationError) as exc:
            coerce_enum(Priority, "urgent", "priority")
        assert exc.value.field == "priority"
        assert "critical" in str(exc.value)
