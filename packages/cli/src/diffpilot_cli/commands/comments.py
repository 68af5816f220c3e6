"""Comment commands — add, edit, delete, list and clear review comments."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from diffpilot_cli.context import run_with_session
from diffpilot_core.exporter import format_line_range
from diffpilot_core.panel import ReviewPanel
from diffpilot_core.validation import safe_join
from diffpilot_store.models import CommentType, Priority

console = Console()

_TYPE_CHOICE = click.Choice([t.value for t in CommentType])
_PRIORITY_CHOICE = click.Choice([p.value for p in Priority])

PRIORITY_STYLES = {"critical": "red", "high": "yellow", "medium": "blue", "low": "dim"}


@click.command("add")
@click.argument("path")
@click.argument("line", type=click.IntRange(min=1))
@click.argument("text")
@click.option("--type", "comment_type", type=_TYPE_CHOICE, default="issue", show_default=True)
@click.option("--priority", type=_PRIORITY_CHOICE, default="medium", show_default=True)
@click.option("--end-line", type=click.IntRange(min=1), default=None, help="Last line of a multi-line range.")
@click.pass_context
def add_cmd(ctx, path: str, line: int, text: str, comment_type: str, priority: str, end_line: int | None):
    """Add a comment on LINE of PATH (line numbers of the working-tree file)."""

    def action(manager):
        safe_join(ctx.obj["workspace"], path)
        message = {"command": "addComment", "line": line, "comment": text, "type": comment_type, "priority": priority}
        if end_line is not None:
            message["endLine"] = end_line
        return ReviewPanel(manager, path).handle_message(message)

    reply = run_with_session(ctx, action)
    console.print(f"[green]Comment added:[/green] {reply['comment']['id']}")


@click.command("edit")
@click.argument("comment_id")
@click.argument("text")
@click.option("--type", "comment_type", type=_TYPE_CHOICE, default=None, help="Keep the current type if omitted.")
@click.option("--priority", type=_PRIORITY_CHOICE, default=None, help="Keep the current priority if omitted.")
@click.pass_context
def edit_cmd(ctx, comment_id: str, text: str, comment_type: str | None, priority: str | None):
    """Replace the text (and optionally type/priority) of a comment."""

    def action(manager):
        existing = manager.find_comment(comment_id)
        if existing is None:
            return None
        return ReviewPanel(manager, existing.file).handle_message(
            {
                "command": "editComment",
                "commentId": comment_id,
                "comment": text,
                "type": comment_type or existing.type.value,
                "priority": priority or existing.priority.value,
            }
        )

    reply = run_with_session(ctx, action)
    if reply is None:
        raise click.UsageError(f"No comment with id {comment_id!r}.")
    console.print(f"[green]Comment updated:[/green] {comment_id}")


@click.command("delete")
@click.argument("comment_id")
@click.pass_context
def delete_cmd(ctx, comment_id: str):
    """Delete a comment by id."""
    deleted = run_with_session(ctx, lambda manager: manager.delete_comment(comment_id))
    if not deleted:
        raise click.UsageError(f"No comment with id {comment_id!r}.")
    console.print(f"[green]Comment deleted:[/green] {comment_id}")


@click.command("list")
@click.option("--file", "file_path", default=None, help="Only show comments on this file.")
@click.pass_context
def list_cmd(ctx, file_path: str | None):
    """Show the comments of the current branch's review."""

    def action(manager):
        comments = manager.comments_for_file(file_path) if file_path else manager.comments()
        return manager.branch, comments

    branch, comments = run_with_session(ctx, action)
    if not comments:
        console.print("[yellow]No review comments found.[/yellow]")
        return

    table = Table(title=f"Review Comments — {branch}", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Type")
    table.add_column("Priority")
    table.add_column("Comment", max_width=50)

    for c in comments:
        style = PRIORITY_STYLES.get(c.priority.value, "white")
        table.add_row(
            c.id,
            c.file,
            format_line_range(c),
            c.type.value,
            f"[{style}]{c.priority.value}[/{style}]",
            escape(c.comment),
        )

    console.print(table)


@click.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def clear_cmd(ctx, yes: bool):
    """Remove every comment from the current branch's review."""
    if not yes and not click.confirm("Delete all review comments for this branch?"):
        return
    run_with_session(ctx, lambda manager: manager.clear_comments())
    console.print("[green]All comments cleared.[/green]")
