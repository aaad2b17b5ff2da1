"""Locating a GitHub token for the review command.

Sources, first hit wins:
  1. GITHUB_TOKEN, then GH_TOKEN (the variable the gh CLI itself honours)
  2. the session stored by `gh auth login`, read with `gh auth token`
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
GH_TIMEOUT_SECONDS = 5


def _token_from_env() -> str | None:
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name, "").strip()
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token
    return None


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=GH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable: %s", e)
        return None

    token = result.stdout.strip() if result.returncode == 0 else ""
    if not token:
        logger.debug("gh CLI has no active session.")
        return None
    logger.debug("Using GitHub token from the gh CLI session.")
    return token


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one.

    Never raises; the review command turns None into a UsageError.
    """
    return _token_from_env() or _token_from_gh_cli()
