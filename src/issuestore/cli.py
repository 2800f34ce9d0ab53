"""CLI for the issuestore issue tracker.

Convention-based: discovers .issuestore/ by walking up from cwd.

Usage:
    issuestore init                                  # Initialize .issuestore/ in cwd
    issuestore create "Fix the bug" --type=bug       # Create issue
    issuestore show <id>                             # Show issue details
    issuestore update <id> --status=in_progress      # Update issue
    issuestore close <id> --reason="done"            # Close issue
    issuestore approve <id> --by=alice               # Record approval
    issuestore search "query" --status=open          # Search issues
    issuestore events <id>                           # Audit trail for an issue
"""

from __future__ import annotations

from pathlib import Path

import click

from issuestore import __version__
from issuestore.cli_commands import issues as issue_commands
from issuestore.core import (
    DB_FILENAME,
    DEFAULT_PREFIX,
    STORE_DIR_NAME,
    IssueStore,
    read_config,
    write_config,
)
from issuestore.errors import IssueStoreError, ValidationError
from issuestore.validation import prefix_from_name, sanitize_actor, validate_prefix


@click.group()
@click.version_option(version=__version__, prog_name="issuestore")
@click.option("--actor", default="cli", help="Actor identity for audit trail (default: cli)")
@click.pass_context
def cli(ctx: click.Context, actor: str) -> None:
    """issuestore: transactional issue storage with an audit trail."""
    cleaned, err = sanitize_actor(actor)
    if err is not None:
        raise click.BadParameter(err, param_hint="--actor")
    ctx.ensure_object(dict)
    ctx.obj["actor"] = cleaned


@cli.command()
@click.option("--prefix", default=None, help="ID prefix for issues (default: directory name)")
def init(prefix: str | None) -> None:
    """Initialize .issuestore/ in the current directory."""
    cwd = Path.cwd()
    store_dir = cwd / STORE_DIR_NAME

    if store_dir.exists():
        click.echo(f"{STORE_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(store_dir)
        try:
            IssueStore(store_dir / DB_FILENAME, prefix=config.get("prefix", DEFAULT_PREFIX)).close()
        except IssueStoreError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from e
        return

    prefix = prefix or prefix_from_name(cwd.name)
    try:
        validate_prefix(prefix)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--prefix") from e
    store_dir.mkdir()
    write_config(store_dir, {"prefix": prefix, "version": 1})

    try:
        IssueStore(store_dir / DB_FILENAME, prefix=prefix).close()
    except IssueStoreError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    click.echo(f"Initialized {STORE_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix: {prefix}")
    click.echo(f"  Database: {store_dir / DB_FILENAME}")


for _command in (
    issue_commands.create,
    issue_commands.show,
    issue_commands.update,
    issue_commands.close,
    issue_commands.approve,
    issue_commands.search,
    issue_commands.events,
):
    cli.add_command(_command)


if __name__ == "__main__":
    cli()
