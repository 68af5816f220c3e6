"""Shared plumbing for commands that operate on the current branch's review.

Each command builds its own isolated objects: a fresh CommentRepository, a
ReviewSessionManager over the configured store, and a GitSourceControl for
the workspace. Pending artifact writes are flushed before the command exits.
"""

from __future__ import annotations

import asyncio
from typing import Callable, TypeVar

import click
from rich.console import Console

from diffpilot_core.errors import DiffPilotError, user_friendly_message
from diffpilot_core.session import ReviewSessionManager
from diffpilot_core.vcs import GitSourceControl
from diffpilot_store.repository import CommentRepository

console = Console()

T = TypeVar("T")


def _report_error(error: DiffPilotError) -> None:
    console.print(f"[yellow]Warning: {error}[/yellow]")


def build_manager(obj: dict) -> ReviewSessionManager:
    return ReviewSessionManager(
        repository=CommentRepository(),
        store=obj["store"],
        scm=GitSourceControl(obj["workspace"]),
        config=obj["config"],
    )


def run_with_session(ctx: click.Context, action: Callable[[ReviewSessionManager], T]) -> T:
    """Initialize the session, apply ``action``, and wait for the resulting writes."""

    async def _run() -> T:
        manager = build_manager(ctx.obj)
        manager.on_error(_report_error)
        await manager.initialize()
        try:
            return action(manager)
        finally:
            if not await manager.flush():
                console.print("[red]Some changes could not be saved to disk.[/red]")

    try:
        return asyncio.run(_run())
    except DiffPilotError as e:
        raise click.ClickException(f"{user_friendly_message(e)} ({e})")
