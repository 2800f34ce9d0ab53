"""Shared CLI helpers.

Provides ``get_store()`` and ``fail()`` so that both the main ``cli.py``
and the ``cli_commands/*.py`` modules can access them without circular
imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from issuestore.core import (
    DB_FILENAME,
    DEFAULT_PREFIX,
    STORE_DIR_NAME,
    IssueStore,
    find_store_root,
    read_config,
)
from issuestore.errors import IssueStoreError
from issuestore.logging import setup_logging


def get_store() -> IssueStore:
    """Discover .issuestore/ and return an open IssueStore."""
    try:
        store_dir = find_store_root()
    except FileNotFoundError:
        click.echo(f"No {STORE_DIR_NAME}/ found. Run 'issuestore init' first.", err=True)
        sys.exit(1)
    setup_logging(store_dir)
    config = read_config(store_dir)
    try:
        return IssueStore(store_dir / DB_FILENAME, prefix=config.get("prefix", DEFAULT_PREFIX))
    except IssueStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def fail(message: str, *, as_json: bool = False) -> NoReturn:
    """Report an error the way every command does and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)
