"""Changelog description vs. PR title similarity.

Two tiers:
  1. A case-insensitive substring check, free and deterministic.
  2. An optional LLM oracle, consulted only when the substring check fails.

The pipeline can only return GOOD_MATCH or POTENTIAL_MISMATCH. NOT_FOUND is
reserved for parsing and lookup failures upstream.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from changelens_core.errors import ChangelensError
from changelens_core.models import Verdict

if TYPE_CHECKING:
    from changelens_core.providers.base import BaseOracle

logger = logging.getLogger(__name__)


def normalize_description(description: str) -> str:
    """Lower-case, drop backticks and cut at the first period.

    The period cut drops trailing qualifiers ("Fix bug. Closes #12") but also
    truncates abbreviations such as "e.g."; that is the established behaviour.
    """
    text = description.replace("`", "").lower()
    idx = text.find(".")
    if idx != -1:
        text = text[:idx]
    return text


def normalize_title(title: str) -> str:
    return title.lower()


def substring_match(a: str, b: str) -> bool:
    """Return True when either string contains the other. Symmetric."""
    return a in b or b in a


def check_similarity(description: str, title: str, oracle: BaseOracle | None = None) -> Verdict:
    """Decide whether a changelog description plausibly matches a PR title."""
    if substring_match(normalize_description(description), normalize_title(title)):
        return Verdict.GOOD_MATCH

    if oracle is not None:
        try:
            if oracle.are_equivalent(title, description):
                return Verdict.GOOD_MATCH
        except ChangelensError as e:
            # No extra evidence either way; fall through to the mismatch verdict.
            logger.warning("Similarity oracle failed (%s): %s", type(e).__name__, e)

    return Verdict.POTENTIAL_MISMATCH
