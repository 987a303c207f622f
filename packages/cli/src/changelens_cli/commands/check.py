"""check command: reconcile a changelog section against its PR titles."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from changelens_core.checker import ChangelogChecker, build_oracle
from changelens_core.config import ORACLE_CHOICES, split_repo
from changelens_core.errors import ChangelensError
from changelens_core.gh.pull_request import PullRequestClient
from changelens_core.models import PRResult, Verdict, sort_by_severity, worst_verdict
from changelens_store.noop import NoOpCacheStore

console = Console()

# --fail-on value → lowest verdict that makes the command exit non-zero.
_FAIL_THRESHOLDS = {
    "mismatch": Verdict.POTENTIAL_MISMATCH,
    "not-found": Verdict.NOT_FOUND,
    "never": None,
}

_VERDICT_STYLE = {
    Verdict.GOOD_MATCH: "green",
    Verdict.POTENTIAL_MISMATCH: "yellow",
    Verdict.NOT_FOUND: "red",
}


def _print_report(results: list[PRResult], title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=7)
    table.add_column("Verdict", width=24)
    table.add_column("Changelog", max_width=50)
    table.add_column("PR title", max_width=50)
    table.add_column("Note", max_width=40, style="dim")

    for r in sort_by_severity(results):
        style = _VERDICT_STYLE[r.verdict]
        table.add_row(
            f"#{r.number}",
            f"[{style}]{r.verdict.label}[/{style}]",
            escape(r.changelog_description),
            escape(r.pr_title),
            escape(str(r.error)) if r.error else "",
        )
    console.print(table)

    counts = {v: sum(1 for r in results if r.verdict is v) for v in Verdict}
    console.print(
        f"[bold]{len(results)}[/bold] PR(s) checked · "
        f"[green]{counts[Verdict.GOOD_MATCH]} good[/green] · "
        f"[yellow]{counts[Verdict.POTENTIAL_MISMATCH]} potential mismatch[/yellow] · "
        f"[red]{counts[Verdict.NOT_FOUND]} not found[/red]"
    )


@click.command("check")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to config, then git remote.")
@click.option("--changelog", "changelog_path", default=None, help="Path to the changelog file. Overrides config file.")
@click.option(
    "--version",
    "version",
    default=None,
    help='Section to check, e.g. v1.2.0. Defaults to "Unreleased", then the latest release.',
)
@click.option(
    "--limit",
    type=int,
    default=None,
    help="Check at most N PRs. 3 checks the first, middle and last PR.",
)
@click.option(
    "--oracle",
    type=click.Choice(ORACLE_CHOICES),
    default=None,
    help="LLM used as a second opinion when titles don't match textually. Overrides config file.",
)
@click.option("--no-cache", is_flag=True, help="Ignore and don't update the local cache.")
@click.option(
    "--fail-on",
    type=click.Choice(list(_FAIL_THRESHOLDS)),
    default="not-found",
    show_default=True,
    help="Exit with status 1 when any PR has this verdict or worse.",
)
@click.pass_context
def check_cmd(
    ctx,
    repo: str | None,
    changelog_path: str | None,
    version: str | None,
    limit: int | None,
    oracle: str | None,
    no_cache: bool,
    fail_on: str,
):
    """Check changelog entries against the titles of their pull requests.

    Every PR referenced as [\\#123] in the section is looked up on GitHub and
    its title compared with the changelog description. Entries that don't
    plausibly describe their PR are flagged.

    \b
    Environment variables:
      GITHUB_TOKEN         GitHub token (or GH_TOKEN, or a gh CLI session)
      OPENAI_API_KEY       Required when using --oracle openai
      ANTHROPIC_API_KEY    Required when using --oracle anthropic
    """
    from changelens_cli.repo import resolve_repo

    overrides = {"changelog": changelog_path, "version": version, "limit": limit, "oracle": oracle}
    config = {**ctx.obj["config"], **{k: v for k, v in overrides.items() if v is not None}}

    slug = resolve_repo(repo, config)
    if not slug:
        raise click.UsageError("No repository given. Pass --repo owner/name or set 'repo' in .changelens.yml.")
    try:
        owner, name = split_repo(slug)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--repo")

    if config["oracle"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")
    if config["oracle"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    try:
        oracle_client = build_oracle(config)
    except ImportError as e:
        raise click.UsageError(str(e))

    token = config.get("github_token")
    if not token:
        console.print("[yellow]No GitHub token found; using the unauthenticated API (low rate limit).[/yellow]")

    store = NoOpCacheStore() if no_cache else ctx.obj["open_store"]()
    pr_client = PullRequestClient(token, store=store, timeout=config.get("timeout", 10))
    checker = ChangelogChecker(pr_client, owner, name, oracle=oracle_client, store=store)

    try:
        results = checker.check_changelog(config["changelog"], version=config["version"], limit=config["limit"])
    except FileNotFoundError:
        raise click.ClickException(f"Changelog file not found: {config['changelog']}")
    except ChangelensError as e:
        raise click.ClickException(str(e))

    section = config["version"] or "latest section"
    _print_report(results, title=f"Changelog check: {owner}/{name} ({section})")

    reset_at = pr_client.rate_limited_until
    if reset_at is not None:
        console.print(f"[yellow]GitHub rate limit reached; lookups resume at {reset_at:%Y-%m-%d %H:%M:%S} UTC.[/yellow]")

    threshold = _FAIL_THRESHOLDS[fail_on]
    worst = worst_verdict(results)
    if threshold is not None and worst is not None and worst >= threshold:
        ctx.exit(1)
