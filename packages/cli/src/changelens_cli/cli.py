"""CLI entry point for changelens.

Commands:
  check   reconcile a changelog section against the titles of its PRs
  verify  check that the GitHub token and oracle credentials work
"""

from __future__ import annotations

import importlib.metadata
import logging
import sqlite3
from datetime import timedelta

import click
from rich.console import Console
from rich.logging import RichHandler

from changelens_cli.commands.check import check_cmd
from changelens_cli.commands.verify import verify_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the cache store from config.

      cache: true  → SQLiteCacheStore at cache_path (default ~/.changelens/cache.db)
      cache: false → NoOpCacheStore (every lookup hits GitHub)

    This factory lives in cli.py so neither changelens_core nor
    changelens_store know about the config file format.
    """
    from changelens_store.noop import NoOpCacheStore

    if not config.get("cache", True):
        return NoOpCacheStore()

    from changelens_store.sqlite import SQLiteCacheStore

    ttl = timedelta(days=config.get("cache_ttl_days", 7))
    db_path = config.get("cache_path") or "~/.changelens/cache.db"
    try:
        return SQLiteCacheStore(db_path=db_path, ttl=ttl)
    except (sqlite3.Error, OSError) as e:
        # The cache is an optimisation; an unwritable path must not block an audit.
        console.print(f"[yellow]Could not open cache at {db_path} ({e}). Continuing without cache.[/yellow]")
        return NoOpCacheStore()


def _store_opener(ctx: click.Context, config: dict):
    """Return a callable that opens the cache store on first use.

    Commands that never touch the cache (verify, check --no-cache) leave the
    database file alone.
    """

    def open_store():
        if "store" not in ctx.obj:
            store = _build_store(config)
            ctx.obj["store"] = store
            ctx.call_on_close(store.close)
        return ctx.obj["store"]

    return open_store


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("changelens"),
    prog_name="changelens",
)
@click.option(
    "--config",
    "config_path",
    default=".changelens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CHANGELENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every lookup and cache decision.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Audit changelog entries against the pull requests that produced them."""
    from changelens_core.config import load_config
    from changelens_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    ctx.obj["config"] = config
    ctx.obj["open_store"] = _store_opener(ctx, config)


main.add_command(check_cmd)
main.add_command(verify_cmd)
