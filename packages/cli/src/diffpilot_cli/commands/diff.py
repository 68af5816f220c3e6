"""files and diff commands — browse changed files and their annotated diffs."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from diffpilot_cli.commands.comments import PRIORITY_STYLES
from diffpilot_cli.context import run_with_session
from diffpilot_core.content import load_diff_content
from diffpilot_core.errors import DiffPilotError, user_friendly_message
from diffpilot_core.filesystem import FileSystemService
from diffpilot_core.panel import ReviewPanel
from diffpilot_core.vcs import ChangedFile, FileStatus, GitSourceControl

console = Console()

_STATUS_LABELS = {
    FileStatus.MODIFIED: "[yellow]M[/yellow]",
    FileStatus.ADDED: "[green]A[/green]",
    FileStatus.UNTRACKED: "[cyan]U[/cyan]",
    FileStatus.DELETED: "[red]D[/red]",
}

_LINE_STYLES = {"added": ("+", "green"), "removed": ("-", "red"), "unchanged": (" ", "")}


def _changed_files(obj: dict) -> list[ChangedFile]:
    scm = GitSourceControl(obj["workspace"])
    fs = FileSystemService(obj["workspace"])
    return fs.filter_valid_files(scm.changed_files(), obj["reviews_dir"])


@click.command("files")
@click.pass_context
def files_cmd(ctx):
    """List changed files in the working tree."""
    try:
        files = _changed_files(ctx.obj)
    except DiffPilotError as e:
        raise click.ClickException(f"{user_friendly_message(e)} ({e})")

    if not files:
        console.print("[yellow]No changed files.[/yellow]")
        return

    table = Table(title="Changed Files", show_header=True, header_style="bold cyan")
    table.add_column("Status", width=6)
    table.add_column("Staged", width=6)
    table.add_column("Path")
    for f in files:
        table.add_row(_STATUS_LABELS[f.status], "yes" if f.staged else "", f.path)
    console.print(table)


@click.command("diff")
@click.argument("path")
@click.option("--ref", default=None, help="Revision to compare against. Defaults to compare_ref (HEAD).")
@click.pass_context
def diff_cmd(ctx, path: str, ref: str | None):
    """Show PATH's diff against REF with review comments inline."""
    obj = ctx.obj
    ref = ref or obj["config"].get("compare_ref", "HEAD")

    try:
        changed = next((f for f in _changed_files(obj) if f.path == path), None)
    except DiffPilotError as e:
        raise click.ClickException(f"{user_friendly_message(e)} ({e})")
    if changed is None:
        changed = ChangedFile(path, FileStatus.MODIFIED, staged=False)

    def action(manager):
        content = load_diff_content(changed, FileSystemService(obj["workspace"]), GitSourceControl(obj["workspace"]), ref)
        return ReviewPanel(manager, path).render_lines(content.original, content.modified)

    lines = run_with_session(ctx, action)
    if not lines:
        console.print("[yellow]Both versions are empty.[/yellow]")
        return

    console.print(f"[bold cyan]{escape(path)}[/bold cyan] [dim]({changed.status.value} vs {escape(ref)})[/dim]\n")
    for annotated in lines:
        line = annotated.line
        marker, style = _LINE_STYLES[line.type]
        old = str(line.old_line_number or "")
        new = str(line.new_line_number or "")
        text = f"{old:>5} {new:>5} {marker} {escape(line.content)}"
        console.print(f"[{style}]{text}[/{style}]" if style else text, highlight=False)
        for c in annotated.comments:
            p_style = PRIORITY_STYLES.get(c.priority.value, "white")
            console.print(
                f"{'':>13}[{p_style}]▲ {c.priority.value.upper()}[/{p_style}] "
                f"[bold]{c.type.value}[/bold] [dim]{c.id}[/dim]: {escape(c.comment)}",
                highlight=False,
            )
