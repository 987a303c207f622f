"""SQLiteCacheStore: local file-based cache for titles and verdicts.

Why SQLite:
- Ships with Python, no extra dependencies.
- Composite primary keys give us upsert-by-key for free via INSERT OR REPLACE.
- One file under ~/.changelens survives between runs, so a second audit of
  the same Unreleased section makes no GitHub or LLM calls at all.

Schema:
  pr_titles  (owner, repo, pr_number) → title, fetched_at
  verdicts   (owner, repo, pr_number) → description, verdict_code, validated_at

Timestamps are stored as ISO-8601 UTC strings.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from changelens_store.base import DEFAULT_TTL, BaseCacheStore, utc_now
from changelens_store.models import CachedTitle, CachedVerdict

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".changelens" / "cache.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pr_titles (
    owner       TEXT NOT NULL,
    repo        TEXT NOT NULL,
    pr_number   INTEGER NOT NULL,
    title       TEXT NOT NULL,
    fetched_at  TEXT NOT NULL,
    PRIMARY KEY (owner, repo, pr_number)
);
CREATE TABLE IF NOT EXISTS verdicts (
    owner         TEXT NOT NULL,
    repo          TEXT NOT NULL,
    pr_number     INTEGER NOT NULL,
    description   TEXT NOT NULL,
    verdict_code  INTEGER NOT NULL,
    validated_at  TEXT NOT NULL,
    PRIMARY KEY (owner, repo, pr_number)
);
"""


class SQLiteCacheStore(BaseCacheStore):
    """Stores the title and verdict caches in a local SQLite database file.

    The parent directory is created if it does not exist. Pass ``":memory:"``
    for a throwaway cache.
    """

    def __init__(
        self,
        db_path: str | Path = DEFAULT_DB_PATH,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(ttl=ttl, clock=clock)
        if str(db_path) != ":memory:":
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            db_path = Path(db_path).expanduser()
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.debug("Opened cache database %s", db_path)

    def put_title(self, owner: str, repo: str, pr_number: int, title: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO pr_titles (owner, repo, pr_number, title, fetched_at) VALUES (?, ?, ?, ?, ?)",
            (owner, repo, pr_number, title, self._now().isoformat()),
        )
        self._conn.commit()

    def put_verdict(self, owner: str, repo: str, pr_number: int, description: str, verdict_code: int) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO verdicts
              (owner, repo, pr_number, description, verdict_code, validated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (owner, repo, pr_number, description, int(verdict_code), self._now().isoformat()),
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def _load_title(self, owner: str, repo: str, pr_number: int) -> CachedTitle | None:
        row = self._conn.execute(
            "SELECT * FROM pr_titles WHERE owner=? AND repo=? AND pr_number=?",
            (owner, repo, pr_number),
        ).fetchone()
        if row is None:
            return None
        fetched_at = _parse_timestamp(row["fetched_at"], f"title for PR #{pr_number}")
        if fetched_at is None:
            return None
        return CachedTitle(
            owner=row["owner"],
            repo=row["repo"],
            pr_number=row["pr_number"],
            title=row["title"],
            fetched_at=fetched_at,
        )

    def _load_verdict(self, owner: str, repo: str, pr_number: int) -> CachedVerdict | None:
        row = self._conn.execute(
            "SELECT * FROM verdicts WHERE owner=? AND repo=? AND pr_number=?",
            (owner, repo, pr_number),
        ).fetchone()
        if row is None:
            return None
        validated_at = _parse_timestamp(row["validated_at"], f"verdict for PR #{pr_number}")
        if validated_at is None:
            return None
        return CachedVerdict(
            owner=row["owner"],
            repo=row["repo"],
            pr_number=row["pr_number"],
            description=row["description"],
            verdict_code=row["verdict_code"],
            validated_at=validated_at,
        )


def _parse_timestamp(value: str, what: str) -> datetime | None:
    """Parse a stored timestamp; naive values are taken to be UTC.

    An unreadable value makes the row a miss, the same as a stale one.
    """
    try:
        stamped = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring cached %s with unreadable timestamp %r", what, value)
        return None
    if stamped.tzinfo is None:
        stamped = stamped.replace(tzinfo=timezone.utc)
    return stamped
