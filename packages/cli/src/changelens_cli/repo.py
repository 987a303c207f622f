"""Repository slug resolution for commands that need an owner/name."""

from __future__ import annotations

import subprocess


def detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the origin remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if slug.count("/") == 1 else None


def resolve_repo(explicit: str | None, config: dict) -> str | None:
    """Pick the repository: --repo, then the config file, then the git remote."""
    return explicit or config.get("repo") or detect_repo_from_git()
