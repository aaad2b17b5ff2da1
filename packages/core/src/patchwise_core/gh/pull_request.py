from __future__ import annotations

import asyncio
import logging

from github import Github, GithubException

from patchwise_core.models import ChangedFile

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def to_changed_file(pr_file) -> ChangedFile:
    return ChangedFile(filename=pr_file.filename, patch=pr_file.patch or "", status=pr_file.status)


class GithubContentFetcher:
    """Fetch file contents at a ref, answering None when the file is absent there.

    PyGithub is blocking, so each request runs in a worker thread and many
    fetches can be awaited concurrently.
    """

    def __init__(self, repo):
        self.repo = repo

    def _fetch(self, ref: str, filename: str) -> str | None:
        try:
            content = self.repo.get_contents(filename, ref=ref)
        except GithubException as e:
            if e.status != 404:
                logger.warning("Could not fetch %s at %s: %s", filename, ref[:7], e)
            return None
        if isinstance(content, list):
            # A directory listing, not a file.
            return None
        return content.decoded_content.decode("utf-8", errors="replace")

    async def fetch(self, ref: str, filename: str) -> str | None:
        return await asyncio.to_thread(self._fetch, ref, filename)


def post_review(pr, body: str, comments: list[dict], event: str = "COMMENT"):
    """Create one pull request review; inline comments use line/start_line addressing."""
    if comments:
        return pr.create_review(body=body, event=event, comments=comments)
    return pr.create_review(body=body, event=event)
