"""Tests for loading the original/modified pair of a changed file."""

from unittest.mock import MagicMock

import pytest

from diffpilot_core.content import load_diff_content
from diffpilot_core.errors import FileSystemError, ValidationError
from diffpilot_core.filesystem import FileSystemService
from diffpilot_core.vcs import ChangedFile, FileStatus


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("new line\n", encoding="utf-8")
    return tmp_path


def _scm(original="old line\n"):
    scm = MagicMock()
    scm.show_file.return_value = original
    return scm


def test_modified_file_reads_both_sides(workspace):
    scm = _scm()
    content = load_diff_content(
        ChangedFile("src/app.py", FileStatus.MODIFIED, False), FileSystemService(workspace), scm, "HEAD~1"
    )
    assert content.original == "old line\n"
    assert content.modified == "new line\n"
    assert content.content == "new line\n"
    scm.show_file.assert_called_once_with("src/app.py", "HEAD~1")


@pytest.mark.parametrize("status", [FileStatus.ADDED, FileStatus.UNTRACKED])
def test_new_file_has_empty_original(workspace, status):
    scm = _scm()
    content = load_diff_content(ChangedFile("src/app.py", status, False), FileSystemService(workspace), scm)
    assert content.original == ""
    assert content.modified == "new line\n"
    scm.show_file.assert_not_called()


def test_deleted_file_has_empty_modified(workspace):
    content = load_diff_content(
        ChangedFile("src/gone.py", FileStatus.DELETED, True), FileSystemService(workspace), _scm("was here\n")
    )
    assert content.original == "was here\n"
    assert content.modified == ""
    assert content.content == "was here\n"


def test_missing_file_raises(workspace):
    with pytest.raises(FileSystemError):
        load_diff_content(ChangedFile("src/nope.py", FileStatus.MODIFIED, False), FileSystemService(workspace), _scm())


def test_directory_raises(workspace):
    with pytest.raises(FileSystemError):
        load_diff_content(ChangedFile("src", FileStatus.MODIFIED, False), FileSystemService(workspace), _scm())


def test_path_outside_workspace_rejected_before_reading(workspace):
    scm = _scm()
    with pytest.raises(ValidationError):
        load_diff_content(ChangedFile("../secret.txt", FileStatus.MODIFIED, False), FileSystemService(workspace), scm)
    scm.show_file.assert_not_called()
