"""SQLite storage for credentials and ingested emails."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .constants import DB_PATH, LIST_LIMIT, RECENT_WINDOW_DAYS, SYNC_LOCK_TIMEOUT
from .errors import PersistenceError
from .models import Category, Credential, NormalizedEmail

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS credentials (
    user_id TEXT PRIMARY KEY,
    access_token TEXT,
    refresh_token TEXT,
    token_expiry TEXT,
    connected INTEGER NOT NULL DEFAULT 0,
    account_email TEXT,
    sync_started_at TEXT
);

CREATE TABLE IF NOT EXISTS emails (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    provider_message_id TEXT NOT NULL,
    thread_id TEXT,
    sender TEXT NOT NULL,
    recipient TEXT,
    subject TEXT NOT NULL,
    snippet TEXT,
    body TEXT,
    date TEXT NOT NULL,
    labels_json TEXT,
    is_read INTEGER NOT NULL DEFAULT 0,
    category TEXT NOT NULL DEFAULT 'other',
    company TEXT,
    starred INTEGER NOT NULL DEFAULT 0,
    fetched_at TEXT NOT NULL,
    UNIQUE (user_id, provider_message_id)
);

CREATE INDEX IF NOT EXISTS idx_emails_user_date ON emails (user_id, date);
"""

# starred is user-owned and deliberately absent from the update list.
_UPSERT_SQL = """
INSERT INTO emails (
    user_id, provider_message_id, thread_id, sender, recipient, subject,
    snippet, body, date, labels_json, is_read, category, company, fetched_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (user_id, provider_message_id) DO UPDATE SET
    thread_id = excluded.thread_id,
    sender = excluded.sender,
    recipient = excluded.recipient,
    subject = excluded.subject,
    snippet = excluded.snippet,
    body = excluded.body,
    date = excluded.date,
    labels_json = excluded.labels_json,
    is_read = excluded.is_read,
    category = excluded.category,
    company = excluded.company,
    fetched_at = excluded.fetched_at
"""

_CREDENTIAL_FIELDS = ("access_token", "refresh_token", "token_expiry", "connected", "account_email")


def _dt_to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _text_to_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class _SQLiteStore:
    """Shared connection handling for the stores."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Sync runs may call in from worker threads; access is serialised by _lock.
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._conn.executescript(_CREATE_TABLES_SQL)
            self._migrate()

    def _migrate(self) -> None:
        # Databases created before the sync lock existed lack its column.
        columns = {row["name"] for row in self._conn.execute("PRAGMA table_info(credentials)")}
        if "sync_started_at" not in columns:
            with self._conn:
                self._conn.execute("ALTER TABLE credentials ADD COLUMN sync_started_at TEXT")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()


class CredentialStore(_SQLiteStore):
    """Per-user OAuth credentials."""

    def get(self, user_id: str) -> Credential | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM credentials WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return Credential(
            user_id=row["user_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            token_expiry=_text_to_dt(row["token_expiry"]),
            connected=bool(row["connected"]),
            account_email=row["account_email"],
        )

    def update(self, user_id: str, **fields) -> Credential:
        """Set the given credential fields, creating the row if needed."""
        unknown = set(fields) - set(_CREDENTIAL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown credential fields: {', '.join(sorted(unknown))}")

        values = dict(fields)
        if "token_expiry" in values:
            values["token_expiry"] = _dt_to_text(values["token_expiry"])
        if "connected" in values:
            values["connected"] = int(bool(values["connected"]))

        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO credentials (user_id) VALUES (?)", (user_id,)
            )
            if values:
                assignments = ", ".join(f"{name} = ?" for name in values)
                self._conn.execute(
                    f"UPDATE credentials SET {assignments} WHERE user_id = ?",
                    (*values.values(), user_id),
                )
        return self.get(user_id)

    def disconnect(self, user_id: str) -> Credential:
        """Forget every token and mark the mailbox disconnected."""
        return self.update(
            user_id,
            access_token=None,
            refresh_token=None,
            token_expiry=None,
            connected=False,
            account_email=None,
        )

    def claim_sync(
        self,
        user_id: str,
        now: datetime | None = None,
        stale_after: timedelta = SYNC_LOCK_TIMEOUT,
    ) -> bool:
        """Take the user's sync lock; return False if another run holds it.

        The lock lives in the database so separate processes see it.  A claim
        older than *stale_after* is treated as abandoned and taken over.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO credentials (user_id) VALUES (?)", (user_id,)
            )
            cursor = self._conn.execute(
                "UPDATE credentials SET sync_started_at = ? "
                "WHERE user_id = ? AND (sync_started_at IS NULL OR sync_started_at < ?)",
                (_dt_to_text(now), user_id, _dt_to_text(now - stale_after)),
            )
        return cursor.rowcount == 1

    def release_sync(self, user_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE credentials SET sync_started_at = NULL WHERE user_id = ?", (user_id,)
            )


class EmailStore(_SQLiteStore):
    """Ingested emails, unique per (user_id, provider message id)."""

    @staticmethod
    def _row_to_email(row: sqlite3.Row) -> NormalizedEmail:
        return NormalizedEmail(
            record_id=row["id"],
            message_id=row["provider_message_id"],
            thread_id=row["thread_id"],
            sender=row["sender"],
            recipient=row["recipient"] or "",
            subject=row["subject"],
            snippet=row["snippet"] or "",
            body=row["body"] or "",
            date=_text_to_dt(row["date"]),
            labels=json.loads(row["labels_json"] or "[]"),
            is_read=bool(row["is_read"]),
            category=Category(row["category"]),
            company=row["company"],
            starred=bool(row["starred"]),
            fetched_at=_text_to_dt(row["fetched_at"]),
        )

    def _fetch_one(self, user_id: str, record_id: int) -> NormalizedEmail | None:
        row = self._conn.execute(
            "SELECT * FROM emails WHERE user_id = ? AND id = ?", (user_id, record_id)
        ).fetchone()
        return self._row_to_email(row) if row else None

    def upsert(self, user_id: str, email: NormalizedEmail) -> NormalizedEmail:
        """Insert the email, or overwrite the stored copy keeping its starred flag."""
        fetched_at = email.fetched_at or datetime.now(timezone.utc)
        params = (
            user_id,
            email.message_id,
            email.thread_id,
            email.sender,
            email.recipient,
            email.subject,
            email.snippet,
            email.body,
            _dt_to_text(email.date),
            json.dumps(email.labels),
            int(email.is_read),
            Category(email.category).value,
            email.company,
            _dt_to_text(fetched_at),
        )
        try:
            with self._lock, self._conn:
                self._conn.execute(_UPSERT_SQL, params)
                row = self._conn.execute(
                    "SELECT * FROM emails WHERE user_id = ? AND provider_message_id = ?",
                    (user_id, email.message_id),
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not store message {email.message_id}: {exc}") from exc
        return self._row_to_email(row)

    def get(self, user_id: str, message_id: str) -> NormalizedEmail | None:
        """Return the stored copy of a Gmail message, if any."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM emails WHERE user_id = ? AND provider_message_id = ?",
                (user_id, message_id),
            ).fetchone()
        return self._row_to_email(row) if row else None

    def list_emails(
        self,
        user_id: str,
        category: Category | str | None = None,
        starred: bool = False,
        search: str | None = None,
        limit: int = LIST_LIMIT,
    ) -> list[NormalizedEmail]:
        """List a user's emails, newest first.

        *search* matches subject, sender or company case-insensitively.
        """
        clauses = ["user_id = ?"]
        params: list = [user_id]
        if category is not None:
            clauses.append("category = ?")
            params.append(Category(category).value)
        if starred:
            clauses.append("starred = 1")
        if search:
            escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{escaped}%"
            clauses.append(
                "(LOWER(subject) LIKE ? ESCAPE '\\' OR LOWER(sender) LIKE ? ESCAPE '\\'"
                " OR LOWER(COALESCE(company, '')) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])

        sql = f"SELECT * FROM emails WHERE {' AND '.join(clauses)} ORDER BY date DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_email(r) for r in rows]

    def get_stats(self, user_id: str, now: datetime | None = None) -> dict:
        """Return totals by category and company for a user."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            rows = self._conn.execute(
                "SELECT is_read, category, company, date FROM emails WHERE user_id = ?",
                (user_id,),
            ).fetchall()

        week_ago = now - timedelta(days=RECENT_WINDOW_DAYS)
        by_category: dict[str, int] = {}
        by_company: dict[str, int] = {}
        unread = 0
        recent = 0
        for row in rows:
            if not row["is_read"]:
                unread += 1
            by_category[row["category"]] = by_category.get(row["category"], 0) + 1
            if row["company"]:
                by_company[row["company"]] = by_company.get(row["company"], 0) + 1
            if _text_to_dt(row["date"]) > week_ago:
                recent += 1

        return {
            "total": len(rows),
            "unread": unread,
            "by_category": by_category,
            "by_company": by_company,
            "recent": recent,
        }

    def toggle_star(self, user_id: str, record_id: int) -> NormalizedEmail | None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE emails SET starred = 1 - starred WHERE user_id = ? AND id = ?",
                (user_id, record_id),
            )
            return self._fetch_one(user_id, record_id)

    def mark_read(self, user_id: str, record_id: int) -> NormalizedEmail | None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE emails SET is_read = 1 WHERE user_id = ? AND id = ?",
                (user_id, record_id),
            )
            return self._fetch_one(user_id, record_id)

    def set_category(
        self,
        user_id: str,
        record_id: int,
        category: Category | str,
    ) -> NormalizedEmail | None:
        """Override the category; the next sync recomputes it."""
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE emails SET category = ? WHERE user_id = ? AND id = ?",
                (Category(category).value, user_id, record_id),
            )
            return self._fetch_one(user_id, record_id)

    def delete(self, user_id: str, record_id: int) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM emails WHERE user_id = ? AND id = ?", (user_id, record_id)
            )
        return cursor.rowcount > 0

    def delete_all(self, user_id: str) -> int:
        """Delete every email of a user and return how many were removed."""
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM emails WHERE user_id = ?", (user_id,))
        return cursor.rowcount
