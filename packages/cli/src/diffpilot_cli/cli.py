"""CLI entry point for diffpilot.

Commands:
  files   — list changed files in the working tree
  diff    — show a file's diff with its review comments inline
  add     — add a review comment anchored to a line
  edit    — change a comment's text, type or priority
  delete  — remove a comment
  list    — show the comments of the current branch's review
  clear   — remove every comment
  export  — print the markdown report or the JSON backup
"""

from __future__ import annotations

import importlib.metadata
import logging
from pathlib import Path

import click
from rich.console import Console

from diffpilot_cli.commands.comments import add_cmd, clear_cmd, delete_cmd, edit_cmd, list_cmd
from diffpilot_cli.commands.diff import diff_cmd, files_cmd
from diffpilot_cli.commands.export import export_cmd

console = Console()


def _build_store(config: dict, reviews_dir: Path):
    """Instantiate the configured store from .diffpilot.yml settings.

    Store selection:
      store: file  → FileStore (artifacts under reviews_directory; default)
      store: noop  → NoOpStore (comments live only for the command's run)

    diffpilot_core and diffpilot_store never read the CLI config format.
    """
    from diffpilot_store.noop import NoOpStore

    if config.get("store", "file") == "noop":
        return NoOpStore()

    from diffpilot_store.file import FileStore

    return FileStore(reviews_dir)


@click.group()
@click.version_option(
    version=importlib.metadata.version("diffpilot"),
    prog_name="diffpilot",
)
@click.option(
    "--config",
    "config_path",
    default=".diffpilot.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="DIFFPILOT_CONFIG",
)
@click.option(
    "--workspace",
    "workspace",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Workspace root (the git repository being reviewed).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, workspace: str, verbose: bool):
    """Annotate changed files with prioritized review comments."""
    from diffpilot_core.config import load_config, resolve_reviews_directory
    from diffpilot_core.errors import ConfigurationError

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    workspace_root = Path(workspace)
    reviews_dir = resolve_reviews_directory(config, workspace_root)

    store = _build_store(config, reviews_dir)
    ctx.obj["config"] = config
    ctx.obj["workspace"] = workspace_root
    ctx.obj["reviews_dir"] = reviews_dir
    ctx.obj["store"] = store
    ctx.call_on_close(store.close)


main.add_command(files_cmd)
main.add_command(diff_cmd)
main.add_command(add_cmd)
main.add_command(edit_cmd)
main.add_command(delete_cmd)
main.add_command(list_cmd)
main.add_command(clear_cmd)
main.add_command(export_cmd)
