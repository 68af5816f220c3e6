"""export command — print the review report for humans or fixing agents."""

from __future__ import annotations

import click

from diffpilot_cli.context import run_with_session
from diffpilot_core.exporter import generate_json


@click.command("export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["markdown", "json"]),
    default="markdown",
    show_default=True,
    help="markdown: priority-ordered report. json: lossless backup.",
)
@click.pass_context
def export_cmd(ctx, fmt: str):
    """Print the current branch's review to stdout.

    The same content is kept up to date on disk under the reviews directory
    as review-<branch>.md and review-<branch>.json.
    """

    def action(manager):
        if fmt == "json":
            return generate_json(manager.comments(), manager.branch)
        return manager.generate_report()

    click.echo(run_with_session(ctx, action))
