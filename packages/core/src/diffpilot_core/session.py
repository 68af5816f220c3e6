"""Review session orchestration for the current branch.

Lifecycle: UNINITIALIZED → LOADING (branch resolve + artifact load) → READY.
Every mutation from READY updates the in-memory repository synchronously and
schedules a full regeneration of both artifacts; the method returns before
the write completes.

Write semantics:
- Adding a comment never waits on disk.
- Each write serializes the entire current state, not a delta. A late or
  failed write leaves stale files behind until the next write succeeds.
- A failed write, whatever the store raised, keeps the in-memory change.
  The failure is logged and pushed to every handler registered with
  on_error(), and the returned task resolves to a SaveResult carrying it.

Writes are chained, so they land on disk in the order they were scheduled.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePath
from typing import TYPE_CHECKING, Callable

from diffpilot_core.config import DEFAULT_CONFIG
from diffpilot_core.errors import DiffPilotError, ReviewOperationError, SourceControlError, ValidationError
from diffpilot_core.exporter import generate_json, generate_report
from diffpilot_core.validation import coerce_enum, validate_branch_name
from diffpilot_store.base import StoreError
from diffpilot_store.file import json_filename, report_filename
from diffpilot_store.models import CommentType, Priority, ReviewComment, ReviewSession, utc_now

if TYPE_CHECKING:
    from diffpilot_core.vcs import GitSourceControl
    from diffpilot_store.base import BaseStore
    from diffpilot_store.repository import CommentRepository

logger = logging.getLogger(__name__)

_DEFAULT_BRANCH = "main"

ErrorHandler = Callable[[DiffPilotError], None]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


@dataclass
class SaveResult:
    ok: bool
    error: DiffPilotError | None = None


class ReviewSessionManager:
    """Binds a CommentRepository to the artifacts of the current branch."""

    def __init__(
        self,
        repository: CommentRepository,
        store: BaseStore,
        scm: GitSourceControl,
        config: dict | None = None,
    ):
        self._repository = repository
        self._store = store
        self._scm = scm
        self._config = {**DEFAULT_CONFIG, **(config or {})}
        self._state = SessionState.UNINITIALIZED
        self._branch: str | None = None
        self._started_at: str | None = None
        self._error_handlers: list[ErrorHandler] = []
        self._pending: set[asyncio.Task] = set()
        self._last_write: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def branch(self) -> str | None:
        return self._branch

    @property
    def report_filename(self) -> str | None:
        return report_filename(self._branch) if self._branch else None

    @property
    def json_filename(self) -> str | None:
        return json_filename(self._branch) if self._branch else None

    @property
    def session(self) -> ReviewSession | None:
        if self._branch is None:
            return None
        return ReviewSession(
            branch=self._branch,
            base_branch=self._config["base_branch"],
            timestamp=self._started_at or utc_now(),
            comments=self._repository.find_all(),
        )

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        """Subscribe to non-fatal errors. Returns a callable that unsubscribes."""
        self._error_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._error_handlers:
                self._error_handlers.remove(handler)

        return unsubscribe

    def _emit_error(self, error: DiffPilotError) -> None:
        logger.warning("%s (%s)", error, error.code)
        for handler in list(self._error_handlers):
            try:
                handler(error)
            except Exception:
                logger.exception("Error handler %r failed", handler)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> ReviewSession:
        """Resolve the branch, load its artifacts, and move to READY.

        Never raises for source-control or storage problems: those degrade to
        the fallback branch or an empty session and are reported via on_error().
        """
        self._state = SessionState.LOADING
        self._branch = await self._resolve_branch()
        self._started_at = utc_now()

        load_failed = False
        try:
            comments = await asyncio.to_thread(self._store.load, self._branch)
        except StoreError as e:
            load_failed = True
            comments = None
            self._emit_error(ReviewOperationError(f"Failed to load review for {self._branch}: {e}", "load"))

        if comments:
            self._repository.replace_all(comments)
            logger.info("Loaded %d existing comments for branch: %s", len(comments), self._branch)

        self._state = SessionState.READY

        # Don't overwrite artifacts we loaded, or ones we failed to read.
        if not comments and not load_failed:
            await self.schedule_save()

        return self.session

    async def _resolve_branch(self) -> str:
        fallback = self._fallback_branch()

        if not await self._wait_for_source_control():
            self._emit_error(
                SourceControlError(
                    f"Git repository not available after {self._config['scm_timeout']}s; using {fallback!r}",
                    "initialize",
                )
            )
            return fallback

        try:
            branch = await asyncio.to_thread(self._scm.current_branch)
        except SourceControlError as e:
            self._emit_error(e)
            return fallback

        try:
            return validate_branch_name(branch)
        except ValidationError as e:
            self._emit_error(ValidationError(f"{e} ({branch!r}); using {fallback!r}", "branch"))
            return fallback

    async def _wait_for_source_control(self) -> bool:
        """Poll ``is_ready`` until it succeeds or ``scm_timeout`` elapses, whichever comes first."""
        interval = float(self._config["scm_poll_interval"])

        async def poll() -> None:
            while not await asyncio.to_thread(self._scm.is_ready):
                await asyncio.sleep(interval)

        try:
            await asyncio.wait_for(poll(), timeout=float(self._config["scm_timeout"]))
        except asyncio.TimeoutError:
            logger.debug("Git repository discovery timeout")
            return False
        return True

    def _fallback_branch(self) -> str:
        configured = self._config.get("fallback_branch") or _DEFAULT_BRANCH
        try:
            return validate_branch_name(configured)
        except ValidationError:
            logger.error("Invalid fallback_branch %r; using %r", configured, _DEFAULT_BRANCH)
            return _DEFAULT_BRANCH

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def comments(self) -> list[ReviewComment]:
        return self._repository.find_all()

    def comments_for_file(self, path: str) -> list[ReviewComment]:
        return self._repository.find_by_file(_normalize_file(path))

    def find_comment(self, comment_id: str) -> ReviewComment | None:
        return self._repository.find_by_id(comment_id)

    @property
    def comment_count(self) -> int:
        return len(self._repository)

    def generate_report(self) -> str:
        return generate_report(self._repository.find_all(), self._branch or self._fallback_branch())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_comment(
        self,
        file: str,
        line: int,
        comment: str,
        type: CommentType = CommentType.ISSUE,
        priority: Priority = Priority.MEDIUM,
        end_line: int | None = None,
    ) -> ReviewComment:
        self._require_ready("add")
        file = _validate_anchor(file, line, end_line)
        new = ReviewComment(
            id=uuid.uuid4().hex,
            file=file,
            line=line,
            end_line=end_line,
            comment=_validate_text(comment),
            type=coerce_enum(CommentType, type, "type"),
            priority=coerce_enum(Priority, priority, "priority"),
            timestamp=utc_now(),
        )
        self._repository.save(new)
        self.schedule_save()
        return new

    def edit_comment(
        self,
        comment_id: str,
        comment: str,
        type: CommentType,
        priority: Priority,
    ) -> ReviewComment | None:
        """Replace a comment's content in place. Returns None if the id is unknown."""
        self._require_ready("edit")
        existing = self._repository.find_by_id(comment_id)
        if existing is None:
            logger.debug("Comment not found: %s", comment_id)
            return None
        updated = replace(
            existing,
            comment=_validate_text(comment),
            type=coerce_enum(CommentType, type, "type"),
            priority=coerce_enum(Priority, priority, "priority"),
            timestamp=utc_now(),
        )
        self._repository.save(updated)
        self.schedule_save()
        return updated

    def delete_comment(self, comment_id: str) -> bool:
        self._require_ready("delete")
        if not self._repository.delete(comment_id):
            return False
        self.schedule_save()
        return True

    def clear_comments(self) -> None:
        self._require_ready("clear")
        self._repository.clear()
        self.schedule_save()

    def _require_ready(self, operation: str) -> None:
        if self._state is not SessionState.READY:
            raise ReviewOperationError(f"Review session is not ready ({self._state.value})", operation)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def schedule_save(self) -> asyncio.Task:
        """Snapshot the current comments and write both artifacts in the background.

        Must be called while the event loop is running. The returned task
        resolves to a SaveResult and never raises.
        """
        branch = self._branch or self._fallback_branch()
        comments = self._repository.find_all()
        report = generate_report(comments, branch)
        payload = generate_json(comments, branch)

        task = asyncio.get_running_loop().create_task(self._write(branch, report, payload, self._last_write))
        self._last_write = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, branch: str, report: str, payload: str, previous: asyncio.Task | None) -> SaveResult:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await asyncio.to_thread(self._store.write, branch, report, payload)
        except Exception as e:
            error = ReviewOperationError(f"Failed to save review for {branch}: {e}", "save")
            self._emit_error(error)
            return SaveResult(ok=False, error=error)
        return SaveResult(ok=True)

    async def flush(self) -> bool:
        """Wait for every scheduled write. Returns False if any of them failed."""
        ok = True
        while self._pending:
            results = await asyncio.gather(*list(self._pending))
            ok = ok and all(r.ok for r in results)
        return ok

    def close(self) -> None:
        self._store.close()


def _normalize_file(file: str) -> str:
    """Return ``file`` as a POSIX path without ``./`` or doubled separators."""
    return PurePath(file).as_posix()


def _validate_anchor(file: str, line: int, end_line: int | None) -> str:
    if not isinstance(file, str) or not file or "\0" in file or PurePath(file).is_absolute():
        raise ValidationError(f"Comment file must be a workspace-relative path: {file!r}", "file")
    normalized = _normalize_file(file)
    if normalized == ".":
        raise ValidationError(f"Comment file must name a file: {file!r}", "file")
    if isinstance(line, bool) or not isinstance(line, int) or line < 1:
        raise ValidationError(f"Line must be a positive integer: {line!r}", "line")
    if end_line is not None and (isinstance(end_line, bool) or not isinstance(end_line, int) or end_line < line):
        raise ValidationError(f"End line must be an integer >= line: {end_line!r}", "endLine")
    return normalized


def _validate_text(comment: str) -> str:
    if not isinstance(comment, str) or not comment.strip():
        raise ValidationError("Comment text must not be empty", "comment")
    return comment
