"""GitHub token resolution.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI, GitHub Actions)
  2. GH_TOKEN environment variable (the variable the gh CLI itself honours)
  3. `gh auth token` (GitHub CLI session, after `gh auth login`)

A token is optional: without one, lookups use the unauthenticated API
and hit its much lower rate limit sooner.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source provides one. Never raises."""
    for var in _TOKEN_ENV_VARS:
        token = os.environ.get(var)
        if token:
            logger.debug("Using GitHub token from %s.", var)
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    if result.returncode == 0:
        gh_token = result.stdout.strip()
        if gh_token:
            logger.debug("Resolved GitHub token via gh CLI session.")
            return gh_token
    return None
