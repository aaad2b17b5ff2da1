"""Core PR review orchestration.

Pipeline for one pull request:

    filter files → fetch old/current contents (concurrently)
      → for each strategy, until one succeeds:
            pack files into groups → review groups (concurrently) → build response
      → optionally generate inline fixes per structured suggestion (concurrently)

``run_review`` wraps the pipeline with the GitHub glue: reading the PR,
printing the result in shadow mode, or posting it as a single review.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, TypeVar

from github import GithubException
from rich.console import Console

from patchwise_core.config import load_guidelines
from patchwise_core.errors import StrategiesExhaustedError
from patchwise_core.gh.pull_request import (
    GithubContentFetcher,
    get_diff,
    get_pull,
    get_repo,
    post_review,
    to_changed_file,
)
from patchwise_core.inline_fix import generate_inline_fix
from patchwise_core.models import BuilderResponse, ChangedFile, InlineFix, ReviewResult, ReviewSummary, Turn
from patchwise_core.packer import ConvoBuilder, PatchBuilder, PromptPacker
from patchwise_core.prompts import build_review_conversation, build_xml_review_conversation, render_patch
from patchwise_core.providers.anthropic import AnthropicProvider
from patchwise_core.providers.base import BaseProvider
from patchwise_core.providers.openai import OpenAIProvider
from patchwise_core.reconciler import build_plain_response, build_xml_response
from patchwise_core.utils.code import is_excluded, is_reviewable_file

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")

ResponseBuilder = Callable[[list[str]], BuilderResponse]


@dataclass(frozen=True)
class ReviewStrategy:
    """A prompt style paired with the parser that understands its answers."""

    name: str
    convo_builder: ConvoBuilder
    response_builder: ResponseBuilder


class ContentFetcher(Protocol):
    async def fetch(self, ref: str, filename: str) -> str | None: ...


def default_strategies(owner: str, repo_name: str, guidelines: str) -> list[ReviewStrategy]:
    """Structured XML review first, plain narrative review as the fallback."""
    return [
        ReviewStrategy(
            name="xml",
            convo_builder=functools.partial(build_xml_review_conversation, guidelines=guidelines),
            response_builder=functools.partial(build_xml_response, owner, repo_name),
        ),
        ReviewStrategy(
            name="plain",
            convo_builder=functools.partial(build_review_conversation, guidelines=guidelines),
            response_builder=build_plain_response,
        ),
    ]


def _get_provider(config: dict) -> BaseProvider:
    model = config["model"]
    if model == "anthropic":
        return AnthropicProvider(api_key=config["anthropic_api_key"], model=config.get("model_name"))
    if model == "openai":
        return OpenAIProvider(api_key=config["openai_api_key"], model=config.get("model_name"))
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


async def _gather_bounded(awaitables: list[Awaitable[T]], limit: int | None) -> list[T]:
    """Await everything concurrently, at most ``limit`` at a time; results keep input order.

    The first failure cancels every task still running and is re-raised once
    they have all settled.
    """
    semaphore = asyncio.Semaphore(limit) if limit else None

    async def run(awaitable: Awaitable[T]) -> T:
        if semaphore is None:
            return await awaitable
        async with semaphore:
            return await awaitable

    tasks = [asyncio.ensure_future(run(a)) for a in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for awaitable in awaitables:
            # Coroutines cancelled before their turn at the semaphore never started.
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
        raise


# ---------------------------------------------------------------------- #
# Reviewing                                                               #
# ---------------------------------------------------------------------- #


async def review_diff(provider: BaseProvider, turns: list[Turn]) -> str:
    completion = await provider.complete(turns)
    return completion.text


async def review_changes(
    files: list[ChangedFile],
    provider: BaseProvider,
    strategy: ReviewStrategy,
    token_budget: int,
    max_parallel: int | None = None,
    patch_builder: PatchBuilder = render_patch,
) -> BuilderResponse:
    """Run one strategy end to end: pack, review every group, build the response.

    Any error (a failed model call, an unparsable answer) propagates to the
    caller untouched.
    """
    reviewable = [f for f in files if is_reviewable_file(f.filename)]
    packer = PromptPacker(strategy.convo_builder, token_budget, patch_builder=patch_builder)
    packed = packer.pack(reviewable)

    feedbacks = await _gather_bounded(
        [review_diff(provider, packer.build_conversation(group)) for group in packed.groups],
        max_parallel,
    )

    response = strategy.response_builder(feedbacks)
    response.skipped_files = [f.filename for f in packed.skipped]
    return response


async def review_changes_retry(
    files: list[ChangedFile],
    provider: BaseProvider,
    strategies: list[ReviewStrategy],
    token_budget: int,
    max_parallel: int | None = None,
) -> BuilderResponse:
    """Try each strategy in order and return the first complete response."""
    errors: dict[str, BaseException] = {}
    for strategy in strategies:
        logger.info("Reviewing with the %s strategy.", strategy.name)
        try:
            return await review_changes(files, provider, strategy, token_budget, max_parallel)
        except Exception as e:
            logger.warning("The %s strategy failed, trying the next one: %s", strategy.name, e)
            errors[strategy.name] = e
    raise StrategiesExhaustedError(errors)


async def preprocess_file(fetcher: ContentFetcher, file: ChangedFile, base_ref: str, head_ref: str) -> None:
    """Attach the base and head contents to the file; absent sides stay None."""
    file.old_contents, file.current_contents = await asyncio.gather(
        fetcher.fetch(base_ref, file.filename),
        fetcher.fetch(head_ref, file.filename),
    )


async def process_pull_request(
    files: list[ChangedFile],
    provider: BaseProvider,
    fetcher: ContentFetcher,
    *,
    base_ref: str,
    head_ref: str,
    strategies: list[ReviewStrategy],
    token_budget: int,
    include_suggestions: bool = False,
    max_parallel: int | None = None,
) -> ReviewResult:
    reviewable = [f for f in files if is_reviewable_file(f.filename)]
    if not reviewable:
        logger.info("Nothing to review: every changed file was filtered out.")
        return ReviewResult.nothing_to_review()

    await _gather_bounded([preprocess_file(fetcher, f, base_ref, head_ref) for f in reviewable], max_parallel)

    review = await review_changes_retry(reviewable, provider, strategies, token_budget, max_parallel)

    fixes: list[InlineFix] = []
    if include_suggestions and review.suggestions:
        files_by_name = {f.filename: f for f in reviewable}
        jobs = [
            generate_inline_fix(provider, suggestion, files_by_name[suggestion.filename])
            for suggestion in review.suggestions
            if suggestion.filename in files_by_name
        ]
        logger.info("Generating inline fixes for %d suggestion(s).", len(jobs))
        fixes = [fix for fix in await _gather_bounded(jobs, max_parallel) if fix is not None]

    return ReviewResult(review=review, fixes=fixes)


# ---------------------------------------------------------------------- #
# GitHub glue                                                             #
# ---------------------------------------------------------------------- #


def get_commentable_lines(patch_text: str) -> set[int]:
    """Return the new-file line numbers visible in a patch (added and context lines).

    GitHub only accepts line-addressed review comments on these lines.
    """
    lines: set[int] = set()
    file_line: int | None = None

    for line in patch_text.splitlines():
        if line.startswith("@@"):
            try:
                new_file_range = line.split("+")[1].split(" ")[0]
                file_line = int(new_file_range.split(",")[0])
            except (IndexError, ValueError):
                file_line = None
            continue

        if line.startswith("-"):
            continue  # removed lines do not exist in the new file
        if line.startswith("\\"):
            continue  # "\ No newline at end of file"
        if file_line is not None:
            lines.add(file_line)
            file_line += 1

    return lines


def _fix_to_comment(fix: InlineFix) -> dict:
    comment = {
        "path": fix.filename,
        "body": f"{fix.comment}\n\n```suggestion\n{fix.correction}\n```",
        "line": fix.line_end,
        "side": "RIGHT",
    }
    if fix.line_start < fix.line_end:
        comment["start_line"] = fix.line_start
        comment["start_side"] = "RIGHT"
    return comment


def _postable_fixes(fixes: list[InlineFix], patches: dict[str, str]) -> list[InlineFix]:
    postable = []
    for fix in fixes:
        visible = get_commentable_lines(patches.get(fix.filename, ""))
        if all(line in visible for line in range(fix.line_start, fix.line_end + 1)):
            postable.append(fix)
        else:
            logger.debug("Fix for %s:%d-%d is outside the diff; not posting it inline.", fix.filename, fix.line_start, fix.line_end)
    return postable


def _build_summary(
    result: ReviewResult,
    reviewed_files: list[str],
    posted_fixes: int,
    elapsed_seconds: float,
) -> str:
    """Build the top-level review body posted as the GitHub review description."""
    review = result.review
    skipped = review.skipped_files if review else []

    elapsed_min = elapsed_seconds / 60
    if elapsed_min < 1:
        time_str = f"{int(elapsed_seconds)}s"
    else:
        time_str = f"{elapsed_min:.1f} min"

    lines = ["## Review summary\n"]
    lines.append(
        f"**{len(reviewed_files)}** file(s) reviewed"
        + (f", **{len(skipped)}** skipped" if skipped else "")
        + (f" · **{len(review.suggestions)}** suggestion(s)" if review and review.suggestions else "")
        + (f" · **{posted_fixes}** inline fix(es)" if posted_fixes else "")
        + f" · reviewed in {time_str}\n"
    )

    comment = review.comment.strip() if review else ""
    lines.append(comment or "> No issues found. The changes look good.")

    if skipped:
        lines.append(f"\n_Skipped {len(skipped)} file(s) too large to review:_")
        for filename in skipped:
            lines.append(f"- `{filename}`")

    return "\n".join(lines)


def print_shadow_review(body: str, fixes: list[InlineFix]) -> None:
    """Print the review to the terminal without posting to GitHub."""
    console.print("\n[bold]Shadow review (not posted)[/bold]\n")
    console.print(body, markup=False)
    if not fixes:
        return
    console.print(f"\n[bold]{len(fixes)} inline fix(es)[/bold]\n")
    for fix in fixes:
        console.print(f"[bold cyan]{fix.filename}[/bold cyan]  lines [bold]{fix.line_start}-{fix.line_end}[/bold]")
        console.print(f"  {fix.comment}", markup=False)
        console.print(fix.correction, style="dim", markup=False, highlight=False)
        console.print()


async def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    auto_confirm: bool = False,
    shadow: bool = False,
    repo_obj=None,
) -> ReviewSummary | None:
    """Run the full PR review pipeline and return a ReviewSummary.

    Returns None only on early exits (draft skip, user declined to post).
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.get("review_draft_prs", False):
        console.print("[yellow]Skipping draft PR. Set review_draft_prs: true in .patchwise.yml to review drafts.[/yellow]")
        return None

    head_sha = this_pr.head.sha
    owner, _, repo_name = repo.partition("/")

    exclude_patterns = config.get("exclude", [])
    files = []
    for pr_file in sorted(get_diff(this_pr), key=lambda f: f.filename):
        if is_excluded(pr_file.filename, exclude_patterns):
            console.print(f"  Skipping: {pr_file.filename}")
            continue
        files.append(to_changed_file(pr_file))
    reviewed_files = [f.filename for f in files if is_reviewable_file(f.filename)]

    console.print(f"Reviewing {len(reviewed_files)} of {len(files)} changed file(s)...")
    review_start = time.monotonic()
    result = await process_pull_request(
        files,
        _get_provider(config),
        GithubContentFetcher(this_repo),
        base_ref=this_pr.base.sha,
        head_ref=head_sha,
        strategies=default_strategies(owner, repo_name, load_guidelines(config)),
        token_budget=config["token_budget"],
        include_suggestions=config.get("include_suggestions", False),
        max_parallel=config.get("max_parallel_requests"),
    )

    summary = ReviewSummary(repo=repo, pr_number=pr_number, head_sha=head_sha)
    if result.is_empty:
        console.print("[yellow]Nothing to review: all changed files were filtered out.[/yellow]")
        summary.skipped_files = [f.filename for f in files]
        return summary

    skipped = result.review.skipped_files
    summary.reviewed_files = [name for name in reviewed_files if name not in skipped]
    summary.skipped_files = skipped
    summary.total_suggestions = len(result.review.suggestions)
    summary.total_fixes = len(result.fixes)
    if skipped:
        console.print(f"[yellow]{len(skipped)} file(s) too large to review, skipped.[/yellow]")

    fixes = _postable_fixes(result.fixes, {f.filename: f.patch for f in files})
    body = _build_summary(result, summary.reviewed_files, len(fixes), time.monotonic() - review_start)

    if shadow:
        print_shadow_review(body, result.fixes)
        return summary

    if not auto_confirm:
        prompt = f"Post review with {len(fixes)} inline fix(es)? (y/n): "
        answer = await asyncio.to_thread(input, prompt)
        if answer.strip().lower() != "y":
            return None

    post_review(this_pr, body, [_fix_to_comment(fix) for fix in fixes])
    summary.posted = True
    console.print(f"\n[green]Review posted with {len(fixes)} inline fix(es).[/green]")
    return summary
