"""Abstract cache store interface.

Two independently keyed tables back the checker, both keyed by
(owner, repo, pr_number):

    titles    PR titles fetched from GitHub
    verdicts  the last verdict computed for a changelog description

Concrete backends only load and upsert raw rows. The rules that decide
whether a row is still usable live here, once:

    get_title()   → miss when the row is older than the TTL
    get_verdict() → miss when the row is older than the TTL, or when the
                    stored description no longer matches the changelog

Stale rows are never deleted; the next put() overwrites them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from changelens_store.models import CachedTitle, CachedVerdict

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseCacheStore(ABC):
    """Pluggable persistence layer for PR titles and verdicts.

    ``clock`` is injectable so freshness can be tested without sleeping.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = utc_now):
        self.ttl = ttl
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def get_title(self, owner: str, repo: str, pr_number: int) -> str | None:
        """Return the cached title, or None on a miss or a stale row."""
        row = self._load_title(owner, repo, pr_number)
        if row is None:
            return None
        if not self._is_fresh(row.fetched_at):
            logger.debug("Title cache for PR #%d is older than %s, will refresh", pr_number, self.ttl)
            return None
        return row.title

    def get_verdict(self, owner: str, repo: str, pr_number: int, description: str) -> int | None:
        """Return the cached verdict code, or None unless the row is still valid.

        Valid means the stored description snapshot equals ``description``
        exactly and the row is within the TTL.
        """
        row = self._load_verdict(owner, repo, pr_number)
        if row is None:
            return None
        if row.description != description:
            logger.debug("Changelog description for PR #%d changed, cached verdict ignored", pr_number)
            return None
        if not self._is_fresh(row.validated_at):
            logger.debug("Verdict cache for PR #%d is older than %s, will refresh", pr_number, self.ttl)
            return None
        return row.verdict_code

    @abstractmethod
    def put_title(self, owner: str, repo: str, pr_number: int, title: str) -> None:
        """Upsert a title row stamped with the current time."""

    @abstractmethod
    def put_verdict(self, owner: str, repo: str, pr_number: int, description: str, verdict_code: int) -> None:
        """Upsert a verdict row and its description snapshot, stamped with the current time."""

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """

    # ------------------------------------------------------------------ #
    # Backend hooks                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _load_title(self, owner: str, repo: str, pr_number: int) -> CachedTitle | None:
        """Return the raw title row regardless of age, or None."""

    @abstractmethod
    def _load_verdict(self, owner: str, repo: str, pr_number: int) -> CachedVerdict | None:
        """Return the raw verdict row regardless of age or description, or None."""

    def _now(self) -> datetime:
        return self._clock()

    def _is_fresh(self, stamped_at: datetime) -> bool:
        return self._now() - stamped_at <= self.ttl
