"""Tests for the review session lifecycle, auto-save and error channel."""

from __future__ import annotations

import asyncio
import json
import threading
import time

import pytest

from diffpilot_core.errors import ReviewOperationError, SourceControlError, ValidationError
from diffpilot_core.session import ReviewSessionManager, SessionState
from diffpilot_store.base import BaseStore, StoreError
from diffpilot_store.file import FileStore
from diffpilot_store.models import CommentType, Priority, ReviewComment
from diffpilot_store.noop import NoOpStore
from diffpilot_store.repository import CommentRepository

_FAST = {"scm_timeout": 0.05, "scm_poll_interval": 0.01}


class FakeSourceControl:
    def __init__(self, branch="main", ready=True, error=None, ready_after=0):
        self.branch = branch
        self.ready = ready
        self.error = error
        self.ready_after = ready_after
        self.checks = 0

    def is_ready(self) -> bool:
        self.checks += 1
        return self.ready and self.checks > self.ready_after

    def current_branch(self) -> str:
        if self.error:
            raise self.error
        return self.branch


class RecordingStore(BaseStore):
    def __init__(self, loaded=None, fail_writes=False, fail_load=False):
        self.loaded = loaded
        self.fail_writes = fail_writes
        self.fail_load = fail_load
        self.writes: list[tuple[str, str, str]] = []

    def load(self, branch):
        if self.fail_load:
            raise StoreError("corrupt")
        return self.loaded

    def write(self, branch, report, payload):
        if self.fail_writes:
            raise StoreError("disk full")
        self.writes.append((branch, report, payload))


class HangingSourceControl(FakeSourceControl):
    """is_ready blocks until released, like git stuck on a locked repository."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def is_ready(self) -> bool:
        self.release.wait(timeout=5)
        return True


class BrokenStore(RecordingStore):
    def write(self, branch, report, payload):
        raise RuntimeError("unexpected back-end failure")


def _manager(store=None, scm=None, repository=None, **config):
    return ReviewSessionManager(
        repository=repository or CommentRepository(),
        store=store or RecordingStore(),
        scm=scm or FakeSourceControl(),
        config={**_FAST, **config},
    )


def _existing(cid="old", priority=Priority.HIGH):
    return ReviewComment(
        id=cid,
        file="src/app.py",
        line=3,
        comment="Existing",
        type=CommentType.ISSUE,
        priority=priority,
        timestamp="2026-10-01T00:00:00+00:00",
    )


class TestInitialize:
    @pytest.mark.asyncio
    async def test_starts_uninitialized_and_becomes_ready(self):
        manager = _manager()
        assert manager.state is SessionState.UNINITIALIZED
        session = await manager.initialize()
        assert manager.state is SessionState.READY
        assert session.branch == "main"
        assert session.base_branch == "main"
        assert session.status == "in-progress"

    @pytest.mark.asyncio
    async def test_artifact_names_derived_from_branch(self):
        manager = _manager(scm=FakeSourceControl(branch="feature-login"))
        await manager.initialize()
        assert manager.report_filename == "review-feature-login.md"
        assert manager.json_filename == "review-feature-login.json"

    @pytest.mark.asyncio
    async def test_invalid_branch_falls_back_and_reports(self):
        errors = []
        manager = _manager(scm=FakeSourceControl(branch="feature/../x"))
        manager.on_error(errors.append)
        await manager.initialize()
        assert manager.branch == "main"
        assert manager.state is SessionState.READY
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)

    @pytest.mark.asyncio
    async def test_source_control_error_falls_back(self):
        errors = []
        manager = _manager(scm=FakeSourceControl(error=SourceControlError("no repo", "current_branch")))
        manager.on_error(errors.append)
        await manager.initialize()
        assert manager.branch == "main"
        assert [e.code for e in errors] == ["SOURCE_CONTROL_ERROR"]

    @pytest.mark.asyncio
    async def test_source_control_never_ready_times_out_to_fallback(self):
        errors = []
        manager = _manager(scm=FakeSourceControl(branch="develop", ready=False), fallback_branch="trunk")
        manager.on_error(errors.append)
        await asyncio.wait_for(manager.initialize(), timeout=2)
        assert manager.branch == "trunk"
        assert isinstance(errors[0], SourceControlError)

    @pytest.mark.asyncio
    async def test_waits_for_source_control_to_become_ready(self):
        scm = FakeSourceControl(branch="develop", ready_after=2)
        manager = _manager(scm=scm, scm_timeout=1.0)
        await manager.initialize()
        assert manager.branch == "develop"
        assert scm.checks == 3

    @pytest.mark.asyncio
    async def test_hung_readiness_check_is_bounded_by_timeout(self):
        scm = HangingSourceControl()
        errors = []
        manager = _manager(scm=scm, scm_timeout=0.05, fallback_branch="trunk")
        manager.on_error(errors.append)
        started = time.monotonic()
        try:
            await manager.initialize()
            elapsed = time.monotonic() - started
        finally:
            scm.release.set()
        assert elapsed < 1.0
        assert manager.branch == "trunk"
        assert isinstance(errors[0], SourceControlError)

    @pytest.mark.asyncio
    async def test_invalid_fallback_branch_uses_main(self):
        manager = _manager(scm=FakeSourceControl(ready=False), fallback_branch="..bad")
        await manager.initialize()
        assert manager.branch == "main"

    @pytest.mark.asyncio
    async def test_loads_existing_comments_without_rewriting(self):
        store = RecordingStore(loaded=[_existing("a"), _existing("b")])
        manager = _manager(store=store)
        await manager.initialize()
        await manager.flush()
        assert [c.id for c in manager.comments()] == ["a", "b"]
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_empty_session_writes_initial_artifacts(self):
        store = RecordingStore()
        manager = _manager(store=store)
        await manager.initialize()
        assert len(store.writes) == 1
        branch, report, payload = store.writes[0]
        assert branch == "main"
        assert "**Total Comments**: 0" in report
        assert json.loads(payload)["comments"] == []

    @pytest.mark.asyncio
    async def test_load_failure_reports_and_does_not_overwrite(self):
        errors = []
        store = RecordingStore(fail_load=True)
        manager = _manager(store=store)
        manager.on_error(errors.append)
        await manager.initialize()
        assert manager.state is SessionState.READY
        assert manager.comments() == []
        assert store.writes == []
        assert isinstance(errors[0], ReviewOperationError)


class TestMutations:
    @pytest.mark.asyncio
    async def test_mutation_before_initialize_rejected(self):
        with pytest.raises(ReviewOperationError):
            _manager().add_comment("a.py", 1, "text")

    @pytest.mark.asyncio
    async def test_add_is_visible_immediately(self):
        manager = _manager()
        await manager.initialize()
        comment = manager.add_comment("src/app.py", 5, "Rename this", CommentType.SUGGESTION, Priority.LOW)
        assert manager.find_comment(comment.id) == comment
        assert manager.comments_for_file("src/app.py") == [comment]
        assert manager.comment_count == 1
        assert comment.end_line is None

    @pytest.mark.asyncio
    async def test_add_accepts_string_enum_values(self):
        manager = _manager()
        await manager.initialize()
        comment = manager.add_comment("a.py", 1, "text", "question", "critical")
        assert comment.type is CommentType.QUESTION
        assert comment.priority is Priority.CRITICAL

    @pytest.mark.asyncio
    async def test_ids_are_unique(self):
        manager = _manager()
        await manager.initialize()
        ids = {manager.add_comment("a.py", 1, f"c{i}").id for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "file,line,text,end_line",
        [
            ("", 1, "text", None),
            ("/abs/path.py", 1, "text", None),
            ("./", 1, "text", None),
            ("a.py", 0, "text", None),
            ("a.py", True, "text", None),
            ("a.py", 1, "   ", None),
            ("a.py", 5, "text", 4),
        ],
    )
    async def test_add_validation(self, file, line, text, end_line):
        manager = _manager()
        await manager.initialize()
        with pytest.raises(ValidationError):
            manager.add_comment(file, line, text, end_line=end_line)
        assert manager.comment_count == 0

    @pytest.mark.asyncio
    async def test_file_path_normalized(self):
        manager = _manager()
        await manager.initialize()
        comment = manager.add_comment("./src//app.py", 1, "text")
        assert comment.file == "src/app.py"
        assert manager.comments_for_file("src/app.py") == [comment]
        assert manager.comments_for_file("./src/app.py") == [comment]

    @pytest.mark.asyncio
    async def test_add_rejects_unknown_priority(self):
        manager = _manager()
        await manager.initialize()
        with pytest.raises(ValidationError):
            manager.add_comment("a.py", 1, "text", priority="urgent")

    @pytest.mark.asyncio
    async def test_edit_replaces_in_place_with_new_timestamp(self):
        manager = _manager(store=RecordingStore(loaded=[_existing("a"), _existing("b"), _existing("c")]))
        await manager.initialize()
        updated = manager.edit_comment("b", "Reworded", CommentType.QUESTION, Priority.CRITICAL)

        assert updated.id == "b"
        assert updated.comment == "Reworded"
        assert updated.priority is Priority.CRITICAL
        assert updated.timestamp != "2026-10-01T00:00:00+00:00"
        assert updated.file == "src/app.py" and updated.line == 3
        assert [c.id for c in manager.comments()] == ["a", "b", "c"]
        assert manager.find_comment("b") == updated

    @pytest.mark.asyncio
    async def test_edit_unknown_returns_none_without_saving(self):
        store = RecordingStore(loaded=[_existing()])
        manager = _manager(store=store)
        await manager.initialize()
        assert manager.edit_comment("missing", "x", CommentType.ISSUE, Priority.LOW) is None
        await manager.flush()
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_delete(self):
        store = RecordingStore(loaded=[_existing("a")])
        manager = _manager(store=store)
        await manager.initialize()
        assert manager.delete_comment("absent") is False
        assert manager.delete_comment("a") is True
        await manager.flush()
        assert manager.comments() == []
        assert len(store.writes) == 1

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self):
        manager = _manager(store=RecordingStore(loaded=[_existing("a")]))
        await manager.initialize()
        manager.clear_comments()
        manager.clear_comments()
        assert await manager.flush() is True
        assert manager.comments() == []


class TestAutoSave:
    @pytest.mark.asyncio
    async def test_every_mutation_writes_full_state(self):
        store = RecordingStore(loaded=[_existing("seed")])
        manager = _manager(store=store)
        await manager.initialize()

        added = manager.add_comment("a.py", 1, "one", priority=Priority.CRITICAL)
        manager.edit_comment(added.id, "one edited", CommentType.ISSUE, Priority.CRITICAL)
        manager.delete_comment("seed")
        await manager.flush()

        assert len(store.writes) == 3
        counts = [len(json.loads(payload)["comments"]) for _, _, payload in store.writes]
        assert counts == [2, 2, 1]
        final_report = store.writes[-1][1]
        assert "CRITICAL-1" in final_report and "one edited" in final_report

    @pytest.mark.asyncio
    async def test_schedule_save_returns_awaitable_result(self):
        manager = _manager()
        await manager.initialize()
        result = await manager.schedule_save()
        assert result.ok is True
        assert result.error is None

    @pytest.mark.asyncio
    async def test_write_failure_keeps_cache_and_reports(self):
        errors = []
        store = RecordingStore(loaded=[_existing()], fail_writes=True)
        manager = _manager(store=store)
        manager.on_error(errors.append)
        await manager.initialize()

        comment = manager.add_comment("a.py", 2, "kept")
        assert await manager.flush() is False
        assert manager.find_comment(comment.id) == comment
        assert len(errors) == 1
        assert errors[0].operation == "save"

    @pytest.mark.asyncio
    async def test_unexpected_store_exception_is_reported(self):
        errors = []
        manager = _manager(store=BrokenStore(loaded=[_existing()]))
        manager.on_error(errors.append)
        await manager.initialize()

        comment = manager.add_comment("a.py", 1, "kept")
        assert await manager.flush() is False
        assert manager.find_comment(comment.id) == comment
        assert [e.operation for e in errors] == ["save"]
        assert "unexpected back-end failure" in str(errors[0])

    @pytest.mark.asyncio
    async def test_unencodable_comment_reported_and_previous_artifacts_kept(self, tmp_path):
        errors = []
        manager = _manager(store=FileStore(tmp_path))
        manager.on_error(errors.append)
        await manager.initialize()
        manager.add_comment("a.py", 1, "fine")
        assert await manager.flush() is True
        md_before = (tmp_path / "review-main.md").read_text(encoding="utf-8")
        json_before = (tmp_path / "review-main.json").read_text(encoding="utf-8")

        manager.add_comment("a.py", 2, "bad \ud800 text")

        assert await manager.flush() is False
        assert [e.operation for e in errors] == ["save"]
        assert manager.comment_count == 2
        assert (tmp_path / "review-main.md").read_text(encoding="utf-8") == md_before
        assert (tmp_path / "review-main.json").read_text(encoding="utf-8") == json_before

    @pytest.mark.asyncio
    async def test_failing_error_handler_does_not_break_saves(self):
        store = RecordingStore(loaded=[_existing()], fail_writes=True)
        manager = _manager(store=store)

        def broken(error):
            raise RuntimeError("handler bug")

        manager.on_error(broken)
        await manager.initialize()
        manager.add_comment("a.py", 1, "text")
        assert await manager.flush() is False

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self):
        errors = []
        manager = _manager(store=RecordingStore(loaded=[_existing()], fail_writes=True))
        unsubscribe = manager.on_error(errors.append)
        await manager.initialize()
        unsubscribe()
        manager.add_comment("a.py", 1, "text")
        await manager.flush()
        assert errors == []

    @pytest.mark.asyncio
    async def test_file_store_roundtrip_across_sessions(self, tmp_path):
        first = _manager(store=FileStore(tmp_path), scm=FakeSourceControl(branch="feature-x"))
        await first.initialize()
        first.add_comment("src/a.py", 3, "Check bounds", CommentType.ISSUE, Priority.HIGH, end_line=5)
        first.add_comment("src/b.py", 9, "Nice", CommentType.PRAISE, Priority.LOW)
        await first.flush()

        assert (tmp_path / "review-feature-x.md").is_file()
        data = json.loads((tmp_path / "review-feature-x.json").read_text(encoding="utf-8"))
        assert data["branch"] == "feature-x"
        assert "lastUpdated" in data

        second = _manager(store=FileStore(tmp_path), scm=FakeSourceControl(branch="feature-x"))
        await second.initialize()
        assert second.comments() == first.comments()

    @pytest.mark.asyncio
    async def test_noop_store_keeps_comments_in_memory(self):
        manager = _manager(store=NoOpStore())
        await manager.initialize()
        manager.add_comment("a.py", 1, "text")
        assert await manager.flush() is True
        assert manager.comment_count == 1

    @pytest.mark.asyncio
    async def test_generate_report_uses_branch(self):
        manager = _manager(scm=FakeSourceControl(branch="develop"))
        await manager.initialize()
        manager.add_comment("a.py", 1, "text", priority=Priority.HIGH)
        report = manager.generate_report()
        assert "**Branch**: `develop`" in report
        assert "HIGH-1" in report
        await manager.flush()
