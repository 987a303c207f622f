"""Cache row models.

Decoupled from changelens_core so the store layer has no knowledge of the
Verdict enum: verdicts are persisted as their integer code and mapped back
by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CachedTitle:
    """A PR title fetched from GitHub, keyed by (owner, repo, pr_number)."""

    owner: str
    repo: str
    pr_number: int
    title: str
    fetched_at: datetime  # timezone-aware UTC


@dataclass(frozen=True)
class CachedVerdict:
    """A verdict computed for one changelog description.

    The description snapshot is what makes the row valid: a cached verdict
    only applies while the changelog still says exactly the same thing.
    """

    owner: str
    repo: str
    pr_number: int
    description: str
    verdict_code: int
    validated_at: datetime  # timezone-aware UTC
