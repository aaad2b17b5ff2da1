"""review command: run AI review on a pull request."""

from __future__ import annotations

import asyncio

import click
from github import GithubException
from rich.console import Console

from patchwise_core.config import load_config
from patchwise_core.errors import PatchwiseError
from patchwise_core.gh.pull_request import get_pull_requests, get_repo
from patchwise_core.reviewer import run_review
from patchwise_cli.auth import resolve_github_token

console = Console()


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--suggestions/--no-suggestions",
    "include_suggestions",
    default=None,
    help="Also generate inline code fixes for each structured suggestion.",
)
@click.option(
    "--budget",
    "token_budget",
    type=click.IntRange(min=1),
    default=None,
    help="Token budget per review conversation. Overrides config file.",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print the review without posting to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    include_suggestions: bool | None,
    token_budget: int | None,
    yes: bool,
    shadow: bool,
):
    """Review a pull request and post a single GitHub review.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    config_path = (ctx.obj or {}).get("config_path", ".patchwise.yml")
    try:
        config = load_config(
            config_path,
            cli_overrides={
                "model": model,
                "include_suggestions": include_suggestions,
                "token_budget": token_budget,
            },
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    if config["model"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config["model"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")

    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        summary = asyncio.run(
            run_review(
                repo=repo,
                pr_number=pr_number,
                config=config,
                auto_confirm=yes,
                shadow=shadow,
                repo_obj=this_repo,
            )
        )
    except (PatchwiseError, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e))
    except GithubException as e:
        raise click.ClickException(f"GitHub rejected the request ({e.status}): {e.data}")

    if summary is not None:
        console.print(
            f"[dim]{len(summary.reviewed_files)} reviewed, {len(summary.skipped_files)} skipped, "
            f"{summary.total_suggestions} suggestion(s), {summary.total_fixes} fix(es)[/dim]"
        )
