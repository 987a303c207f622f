"""GitHub PR-title lookups with read-through caching and rate-limit cooldown."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

import requests
from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException

from changelens_core.cache import read_through
from changelens_core.errors import PRNotFound, RateLimited, TitleTransportError, TransportError
from changelens_store.noop import NoOpCacheStore

if TYPE_CHECKING:
    from changelens_store.base import BaseCacheStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
_RATE_LIMIT_STATUSES = (403, 429)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_reset(headers: dict | None) -> datetime | None:
    """Read X-RateLimit-Reset (epoch seconds) from response headers."""
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == "x-ratelimit-reset":
            try:
                return datetime.fromtimestamp(int(value), tz=timezone.utc)
            except (TypeError, ValueError):
                return None
    return None


class PullRequestClient:
    """Fetches PR titles from GitHub.

    Every lookup goes through the store's title table first, and every
    successful fetch is written back to it. Once GitHub reports a rate
    limit with a reset time, all lookups fail fast with RateLimited until
    that instant, without touching the network or the cache.

    The cooldown lives on the instance and is lock-guarded so one client can
    be shared between threads.
    """

    def __init__(
        self,
        token: str | None,
        store: BaseCacheStore | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        github: Github | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if github is None:
            # retry=None: PyGithub's default retry sleeps through rate limits,
            # we want to fail fast and report instead.
            github = Github(auth=Auth.Token(token) if token else None, timeout=timeout, retry=None)
        self._gh = github
        self._store = store if store is not None else NoOpCacheStore()
        self._clock = clock
        self._lock = threading.Lock()
        self._rate_limited = False
        self._reset_time: datetime | None = None

    @property
    def rate_limited_until(self) -> datetime | None:
        """The cooldown deadline, or None when lookups are allowed."""
        with self._lock:
            if self._rate_limited and self._reset_time is not None and self._clock() < self._reset_time:
                return self._reset_time
            return None

    def get_title(self, owner: str, repo: str, pr_number: int) -> str:
        """Return the title of a PR.

        Raises PRNotFound, RateLimited or TitleTransportError.
        """
        reset_at = self.rate_limited_until
        if reset_at is not None:
            raise RateLimited(reset_at)

        return read_through(
            lookup=lambda: self._store.get_title(owner, repo, pr_number),
            fetch=lambda: self._fetch_title(owner, repo, pr_number),
            populate=lambda title: self._store.put_title(owner, repo, pr_number, title),
            what=f"title for PR #{pr_number}",
        )

    def check_access(self, owner: str, repo: str) -> bool:
        """Return True if the configured token can read the repository."""
        try:
            self._gh.get_repo(f"{owner}/{repo}")
        except GithubException as e:
            logger.debug("GitHub access check for %s/%s failed with status %s", owner, repo, e.status)
            return False
        except requests.exceptions.RequestException as e:
            raise TransportError(f"GitHub API request failed: {e}") from e
        return True

    def _fetch_title(self, owner: str, repo: str, pr_number: int) -> str:
        logger.debug("Fetching PR #%d from %s/%s", pr_number, owner, repo)
        try:
            pr = self._gh.get_repo(f"{owner}/{repo}", lazy=True).get_pull(pr_number)
            title = pr.title
        except UnknownObjectException:
            raise PRNotFound(owner, repo, pr_number)
        except RateLimitExceededException as e:
            raise self._enter_cooldown(e.headers)
        except GithubException as e:
            if e.status in _RATE_LIMIT_STATUSES:
                raise self._enter_cooldown(e.headers)
            raise TitleTransportError(f"GitHub API returned status {e.status}") from e
        except requests.exceptions.RequestException as e:
            raise TitleTransportError(f"GitHub API request failed: {e}") from e

        if not isinstance(title, str):
            raise TitleTransportError(f"GitHub API returned PR #{pr_number} without a title")
        return title

    def _enter_cooldown(self, headers: dict | None) -> RateLimited:
        reset_at = _parse_reset(headers)
        if reset_at is not None:
            with self._lock:
                self._rate_limited = True
                self._reset_time = reset_at
            logger.warning("GitHub rate limit hit; lookups paused until %s", reset_at.isoformat())
        return RateLimited(reset_at)
