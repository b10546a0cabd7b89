"""SQLite storage adapter.

Implements the seen-jobs ledger, the per-subscriber notification ledger, and
the subscription directory on a single SQLite database. Every write is a
single conditional statement or a single transaction, so overlapping runs
never race through a check-then-write.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Iterator, List

from core.matching import normalize_keyword
from core.models import ClaimResult, JobCandidate, StoredJob, Subscription


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the storage ports."""

    def __init__(self, db_path: str, page_size: int = 200) -> None:
        self._db_path = db_path
        self._page_size = page_size

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - jobs: global seen ledger, one row per link
        - subscriptions: one row per owner with timestamps
        - subscription_keywords: normalized keywords per owner
        - user_notifications: per-subscriber delivery ledger
        """

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            # jobs is written once per link by a successful claim and never
            # updated. Fields:
            # - link: natural identity of a listing (PRIMARY KEY)
            # - title, company, source: listing fields for search
            # - created_at: claim timestamp, used for "recent" ordering
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    link TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    company TEXT NOT NULL,
                    source TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS jobs_created_at ON jobs (created_at)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    owner_id INTEGER PRIMARY KEY,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            # Keywords keep insertion order through rowid.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subscription_keywords (
                    owner_id INTEGER NOT NULL,
                    keyword TEXT NOT NULL,
                    PRIMARY KEY (owner_id, keyword)
                )
                """
            )
            # user_notifications is independent from jobs: a subscriber can
            # be notified about a link regardless of how it was claimed.
            # Job fields are denormalized for auditing.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_notifications (
                    owner_id INTEGER NOT NULL,
                    link TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    title TEXT,
                    company TEXT,
                    source TEXT,
                    PRIMARY KEY (owner_id, link)
                )
                """
            )

    def claim_job(self, job: JobCandidate) -> ClaimResult:
        """Insert the job unless its link is already present."""

        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO jobs (link, title, company, source, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (job.link, job.title, job.company, job.source, _now()),
            )
        return ClaimResult.INSERTED if cur.rowcount == 1 else ClaimResult.ALREADY_EXISTS

    def claim_notification(self, owner_id: int, job: JobCandidate) -> ClaimResult:
        """Record that ``owner_id`` is being notified about ``job``."""

        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO user_notifications (
                    owner_id, link, created_at, title, company, source
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (owner_id, job.link, _now(), job.title, job.company, job.source),
            )
        return ClaimResult.INSERTED if cur.rowcount == 1 else ClaimResult.ALREADY_EXISTS

    def find_recent_jobs(self, keywords: Iterable[str], limit: int) -> List[StoredJob]:
        """Return the newest jobs whose title, company, or source contains a keyword."""

        needles = [k for k in (normalize_keyword(k) for k in keywords) if k]
        if not needles:
            return []

        clauses = []
        params: list = []
        for needle in needles:
            # instr() keeps matching literal; LIKE would treat % and _ as wildcards.
            clauses.append("(instr(lower(title), ?) > 0 OR instr(lower(company), ?) > 0 OR instr(lower(source), ?) > 0)")
            params.extend([needle, needle, needle])
        params.append(max(1, limit))

        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT link, title, company, source, created_at FROM jobs
                WHERE {" OR ".join(clauses)}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                params,
            ).fetchall()
        return [
            StoredJob(
                title=row["title"],
                company=row["company"],
                source=row["source"],
                link=row["link"],
                created_at=_parse_ts(row["created_at"]),
            )
            for row in rows
        ]

    def list_keywords(self, owner_id: int) -> List[str]:
        with self._connect() as conn:
            return self._keywords(conn, owner_id)

    def add_keyword(self, owner_id: int, keyword: str) -> List[str]:
        """Add a normalized keyword, creating the subscription on first use."""

        normalized = normalize_keyword(keyword)
        if not normalized:
            return self.list_keywords(owner_id)

        now = _now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO subscriptions (owner_id, created_at, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET updated_at = excluded.updated_at
                """,
                (owner_id, now, now),
            )
            conn.execute(
                "INSERT OR IGNORE INTO subscription_keywords (owner_id, keyword) VALUES (?, ?)",
                (owner_id, normalized),
            )
            return self._keywords(conn, owner_id)

    def remove_keyword(self, owner_id: int, keyword: str) -> List[str]:
        """Remove a keyword; removing an absent keyword is a no-op."""

        normalized = normalize_keyword(keyword)
        if not normalized:
            return self.list_keywords(owner_id)

        with self._connect() as conn:
            conn.execute(
                "DELETE FROM subscription_keywords WHERE owner_id = ? AND keyword = ?",
                (owner_id, normalized),
            )
            conn.execute(
                "UPDATE subscriptions SET updated_at = ? WHERE owner_id = ?",
                (_now(), owner_id),
            )
            return self._keywords(conn, owner_id)

    def iter_subscriptions(self) -> Iterator[Subscription]:
        """Yield every subscription, one page at a time.

        Keyset pagination keeps memory bounded and never holds a read cursor
        open while callers write notification claims.
        """

        last_owner = None
        while True:
            with self._connect() as conn:
                if last_owner is None:
                    rows = conn.execute(
                        "SELECT owner_id, created_at, updated_at FROM subscriptions ORDER BY owner_id LIMIT ?",
                        (self._page_size,),
                    ).fetchall()
                else:
                    rows = conn.execute(
                        """
                        SELECT owner_id, created_at, updated_at FROM subscriptions
                        WHERE owner_id > ? ORDER BY owner_id LIMIT ?
                        """,
                        (last_owner, self._page_size),
                    ).fetchall()
                page = [self._subscription(row, self._keywords(conn, row["owner_id"])) for row in rows]

            yield from page
            if len(rows) < self._page_size:
                return
            last_owner = rows[-1]["owner_id"]

    @staticmethod
    def _keywords(conn: sqlite3.Connection, owner_id: int) -> List[str]:
        rows = conn.execute(
            "SELECT keyword FROM subscription_keywords WHERE owner_id = ? ORDER BY rowid",
            (owner_id,),
        ).fetchall()
        return [row["keyword"] for row in rows]

    @staticmethod
    def _subscription(row: sqlite3.Row, keywords: List[str]) -> Subscription:
        return Subscription(
            owner_id=int(row["owner_id"]),
            keywords=tuple(keywords),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )
