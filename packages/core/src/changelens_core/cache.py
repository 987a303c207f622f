"""Read-through caching on top of a changelens store.

The store is a side channel: a broken or locked cache database must never
fail a changelog audit. Store errors on read are treated as a miss, store
errors on write are logged and dropped. Errors from the real fetch always
propagate to the caller.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# What a cache backend may raise; anything else is a programming error.
STORE_ERRORS = (sqlite3.Error, OSError)


def safe_lookup(lookup: Callable[[], T | None], what: str) -> T | None:
    """Run a cache lookup, returning None on a miss or a store failure."""
    try:
        return lookup()
    except STORE_ERRORS as e:
        logger.warning("Error reading %s from cache (%s): %s", what, type(e).__name__, e)
        return None


def safe_populate(populate: Callable[[], None], what: str) -> None:
    """Run a cache write; failures are logged, never raised."""
    try:
        populate()
    except STORE_ERRORS as e:
        logger.warning("Error caching %s (%s): %s", what, type(e).__name__, e)


def read_through(
    lookup: Callable[[], T | None],
    fetch: Callable[[], T],
    populate: Callable[[T], None],
    what: str,
) -> T:
    """Return the cached value, or fetch it and populate the cache.

    ``what`` names the value in log messages, e.g. ``"title for PR #12"``.
    """
    cached = safe_lookup(lookup, what)
    if cached is not None:
        logger.debug("Cache hit for %s", what)
        return cached

    value = fetch()
    safe_populate(lambda: populate(value), what)
    return value
