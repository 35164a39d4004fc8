"""SQLite database schema and queries for devfeed."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import Post, PostStatus, Source, UpsertResult, utcnow

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    provider TEXT NOT NULL,
    url TEXT NOT NULL,
    config TEXT NOT NULL DEFAULT '{}',
    active INTEGER NOT NULL DEFAULT 1,
    auto_fetch_enabled INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'idle',
    last_fetched_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL DEFAULT '',
    author TEXT NOT NULL DEFAULT 'unknown',
    summary TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    posted_at TEXT NOT NULL,
    priority_score REAL NOT NULL DEFAULT 0.0,
    status TEXT NOT NULL DEFAULT 'unread',
    metrics TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(source, external_id)
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id TEXT PRIMARY KEY,
    post_retention_days INTEGER CHECK (
        post_retention_days IS NULL
        OR post_retention_days BETWEEN 1 AND 365
    ),
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sources_provider ON sources(provider, active);
CREATE INDEX IF NOT EXISTS idx_posts_source ON posts(source);
CREATE INDEX IF NOT EXISTS idx_posts_status ON posts(status);
CREATE INDEX IF NOT EXISTS idx_posts_score ON posts(priority_score DESC);
CREATE INDEX IF NOT EXISTS idx_posts_posted ON posts(posted_at);
"""


def to_timestamp(dt: datetime) -> str:
    """Fixed-format UTC string so lexical order matches time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


class FeedDB:
    """SQLite database for sources, posts and retention settings."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        row = self.conn.execute(
            "SELECT version FROM schema_info LIMIT 1"
        ).fetchone()
        if row is None:
            self.conn.execute(
                "INSERT INTO schema_info (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            self.conn.commit()

    # ── Sources ─────────────────────────────────────────────────────

    def save_source(self, source: Source) -> Source:
        """Insert a source, or update its definition when the name exists.

        Status and last_fetched_at are left alone on update; only the runner
        changes those.
        """
        now = to_timestamp(utcnow())
        self.conn.execute(
            """INSERT INTO sources
               (name, provider, url, config, active, auto_fetch_enabled,
                status, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(name) DO UPDATE SET
                   provider = excluded.provider,
                   url = excluded.url,
                   config = excluded.config,
                   active = excluded.active,
                   auto_fetch_enabled = excluded.auto_fetch_enabled,
                   updated_at = excluded.updated_at""",
            (
                source.name,
                source.provider,
                source.url,
                json.dumps(source.config or {}),
                int(source.active),
                int(source.auto_fetch_enabled),
                source.status or "idle",
                now,
                now,
            ),
        )
        self.conn.commit()
        return self.get_source_by_name(source.name)

    def get_source(self, source_id: int) -> Source | None:
        row = self.conn.execute(
            "SELECT * FROM sources WHERE id = ?", (source_id,)
        ).fetchone()
        return Source.from_row(dict(row)) if row else None

    def get_source_by_name(self, name: str) -> Source | None:
        row = self.conn.execute(
            "SELECT * FROM sources WHERE name = ?", (name,)
        ).fetchone()
        return Source.from_row(dict(row)) if row else None

    def list_sources(
        self,
        *,
        provider: str | None = None,
        active: bool | None = None,
        auto_fetch_enabled: bool | None = None,
    ) -> list[Source]:
        query = "SELECT * FROM sources WHERE 1 = 1"
        params: list[Any] = []
        if provider:
            query += " AND provider = ?"
            params.append(provider)
        if active is not None:
            query += " AND active = ?"
            params.append(int(active))
        if auto_fetch_enabled is not None:
            query += " AND auto_fetch_enabled = ?"
            params.append(int(auto_fetch_enabled))
        query += " ORDER BY id"
        rows = self.conn.execute(query, params).fetchall()
        return [Source.from_row(dict(r)) for r in rows]

    def update_source_status(self, source_id: int, status: str) -> None:
        self.conn.execute(
            "UPDATE sources SET status = ?, updated_at = ? WHERE id = ?",
            (status, to_timestamp(utcnow()), source_id),
        )
        self.conn.commit()

    def mark_fetched(self, source_id: int, at: datetime | None = None) -> None:
        stamp = to_timestamp(at or utcnow())
        self.conn.execute(
            "UPDATE sources SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (stamp, stamp, source_id),
        )
        self.conn.commit()

    # ── Posts ───────────────────────────────────────────────────────

    def upsert_post(self, post: Post) -> UpsertResult:
        """Insert a post unless (source, external_id) already exists.

        An existing row is never modified; the unique index decides which
        writer wins.
        """
        now = to_timestamp(utcnow())
        try:
            self.conn.execute(
                """INSERT INTO posts
                   (source, external_id, title, url, author, summary, tags,
                    posted_at, priority_score, status, metrics, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    post.source,
                    post.external_id,
                    post.title,
                    post.url,
                    post.author,
                    post.summary,
                    json.dumps(post.tags),
                    to_timestamp(post.posted_at),
                    post.priority_score,
                    PostStatus.UNREAD,
                    json.dumps(post.metrics, default=str),
                    now,
                    now,
                ),
            )
            self.conn.commit()
            created = True
        except sqlite3.IntegrityError:
            self.conn.rollback()
            created = False
        return UpsertResult(created, self.get_post(post.source, post.external_id))

    def get_post(self, source: str, external_id: str) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM posts WHERE source = ? AND external_id = ?",
            (source, str(external_id)),
        ).fetchone()
        return _post_row(row) if row else None

    def list_posts(
        self,
        *,
        source: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        query = "SELECT * FROM posts WHERE 1 = 1"
        params: list[Any] = []
        if source:
            query += " AND source = ?"
            params.append(source)
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY priority_score DESC, posted_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        rows = self.conn.execute(query, params).fetchall()
        return [_post_row(r) for r in rows]

    def count_posts(self, source: str | None = None) -> int:
        if source:
            return self.conn.execute(
                "SELECT COUNT(*) FROM posts WHERE source = ?", (source,)
            ).fetchone()[0]
        return self.conn.execute("SELECT COUNT(*) FROM posts").fetchone()[0]

    def update_post_status(self, post_id: int, status: str) -> None:
        """Change the read state of a post. Used by the UI, never by ingestion."""
        if status not in PostStatus.ALL:
            raise ValueError(f"Invalid post status: {status}")
        self.conn.execute(
            "UPDATE posts SET status = ?, updated_at = ? WHERE id = ?",
            (status, to_timestamp(utcnow()), post_id),
        )
        self.conn.commit()

    def delete_posts_before(self, cutoff: datetime, batch_size: int = 100) -> int:
        """Delete posts with posted_at < cutoff in batches. Returns count deleted."""
        stamp = to_timestamp(cutoff)
        deleted = 0
        while True:
            cur = self.conn.execute(
                """DELETE FROM posts WHERE id IN (
                       SELECT id FROM posts WHERE posted_at < ? LIMIT ?
                   )""",
                (stamp, batch_size),
            )
            self.conn.commit()
            deleted += cur.rowcount
            if cur.rowcount < batch_size:
                return deleted

    # ── User settings ───────────────────────────────────────────────

    def set_retention_days(self, user_id: str, days: int | None) -> None:
        self.conn.execute(
            """INSERT INTO user_settings (user_id, post_retention_days, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   post_retention_days = excluded.post_retention_days,
                   updated_at = excluded.updated_at""",
            (user_id, days, to_timestamp(utcnow())),
        )
        self.conn.commit()

    def delete_user_settings(self) -> None:
        self.conn.execute("DELETE FROM user_settings")
        self.conn.commit()

    def max_retention_days(self) -> int | None:
        row = self.conn.execute(
            "SELECT MAX(post_retention_days) FROM user_settings"
        ).fetchone()
        return row[0] if row and row[0] is not None else None

    # ── Stats ───────────────────────────────────────────────────────

    def get_stats(self) -> dict:
        total = self.count_posts()
        by_status = {}
        for row in self.conn.execute(
            "SELECT status, COUNT(*) as cnt FROM posts GROUP BY status"
        ).fetchall():
            by_status[row["status"]] = row["cnt"]
        by_source = {}
        for row in self.conn.execute(
            "SELECT source, COUNT(*) as cnt FROM posts GROUP BY source"
        ).fetchall():
            by_source[row["source"]] = row["cnt"]
        return {"total_posts": total, "by_status": by_status, "by_source": by_source}


def _post_row(row: sqlite3.Row) -> dict:
    result = dict(row)
    result["tags"] = json.loads(result["tags"] or "[]")
    result["metrics"] = json.loads(result["metrics"] or "{}")
    return result
