"""No-op store, used when caching is disabled.

Using a NoOpCacheStore rather than None lets the checker and the GitHub
client always call the store without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from changelens_store.base import BaseCacheStore

if TYPE_CHECKING:
    from changelens_store.models import CachedTitle, CachedVerdict


class NoOpCacheStore(BaseCacheStore):
    """Every lookup misses and every write is discarded."""

    def put_title(self, owner: str, repo: str, pr_number: int, title: str) -> None:
        pass

    def put_verdict(self, owner: str, repo: str, pr_number: int, description: str, verdict_code: int) -> None:
        pass

    def _load_title(self, owner: str, repo: str, pr_number: int) -> CachedTitle | None:
        return None

    def _load_verdict(self, owner: str, repo: str, pr_number: int) -> CachedVerdict | None:
        return None
