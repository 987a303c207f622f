"""Verdicts and per-PR results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Verdict(IntEnum):
    """Outcome of reconciling one changelog entry, ordered best to worst.

    The integer value is the code persisted in the verdict cache, and the
    ordering is what "worst verdict wins" aggregation relies on.
    """

    GOOD_MATCH = 0
    POTENTIAL_MISMATCH = 1
    NOT_FOUND = 2

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_code(cls, code: int) -> Verdict | None:
        """Map a stored verdict code back to a Verdict, or None if unknown."""
        try:
            return cls(code)
        except ValueError:
            return None


_LABELS = {
    Verdict.GOOD_MATCH: "✅ Good match",
    Verdict.POTENTIAL_MISMATCH: "⚠️ Potential mismatch",
    Verdict.NOT_FOUND: "❌ Not found",
}


@dataclass(frozen=True)
class PRResult:
    """Result of checking one PR, created once and never mutated.

    ``pr_title`` is empty when the GitHub lookup failed. ``error`` carries the
    cause of a NOT_FOUND verdict, or a non-fatal title lookup failure when
    the verdict came from the cache.
    """

    number: int
    changelog_description: str
    pr_title: str
    verdict: Verdict
    error: Exception | None = None


def worst_verdict(results: list[PRResult]) -> Verdict | None:
    """Return the most severe verdict across results, or None when empty."""
    if not results:
        return None
    return max(r.verdict for r in results)


def sort_by_severity(results: list[PRResult]) -> list[PRResult]:
    """Order results worst verdict first, keeping changelog order within a verdict."""
    return sorted(results, key=lambda r: r.verdict, reverse=True)
