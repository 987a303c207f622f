"""verify command: check credentials before a long audit."""

from __future__ import annotations

import click
from rich.console import Console

from changelens_core.checker import build_oracle
from changelens_core.config import ORACLE_CHOICES, split_repo
from changelens_core.errors import ChangelensError
from changelens_core.gh.pull_request import PullRequestClient

console = Console()


@click.command("verify")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to config, then git remote.")
@click.option(
    "--oracle",
    type=click.Choice(ORACLE_CHOICES),
    default=None,
    help="Oracle whose API key to check. Overrides config file.",
)
@click.pass_context
def verify_cmd(ctx, repo: str | None, oracle: str | None):
    """Check that the GitHub token can read the repository and the oracle key works."""
    from changelens_cli.repo import resolve_repo

    config = dict(ctx.obj["config"])
    if oracle is not None:
        config["oracle"] = oracle

    slug = resolve_repo(repo, config)
    if not slug:
        raise click.UsageError("No repository given. Pass --repo owner/name or set 'repo' in .changelens.yml.")
    try:
        owner, name = split_repo(slug)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--repo")

    client = PullRequestClient(config.get("github_token"), timeout=config.get("timeout", 10))
    try:
        github_ok = client.check_access(owner, name)
    except ChangelensError as e:
        console.print(f"[red]✗ GitHub: {e}[/red]")
        github_ok = False
    else:
        if github_ok:
            console.print(f"[green]✓ GitHub: {owner}/{name} is readable[/green]")
        else:
            console.print(f"[red]✗ GitHub: cannot read {owner}/{name} with the current token[/red]")
    ok = github_ok

    if config.get("oracle", "none") == "none":
        console.print("[dim]- Oracle: disabled[/dim]")
    else:
        key_var = f"{config['oracle'].upper()}_API_KEY"
        if not config.get(f"{config['oracle']}_api_key"):
            console.print(f"[red]✗ Oracle: {key_var} is not set[/red]")
            ok = False
        else:
            try:
                oracle_client = build_oracle(config)
            except ImportError as e:
                raise click.UsageError(str(e))
            try:
                oracle_client.ping()
                console.print(f"[green]✓ Oracle: {config['oracle']} key accepted[/green]")
            except ChangelensError as e:
                console.print(f"[red]✗ Oracle: {e}[/red]")
                ok = False

    if not ok:
        ctx.exit(1)
