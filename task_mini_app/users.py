"""SQLite store for Mini App users, keyed by Telegram id."""

import sqlite3
from dataclasses import dataclass
from pathlib import Path


SQLITE_BUSY_TIMEOUT_MS = 5000

CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tg_id INTEGER NOT NULL UNIQUE,
    username TEXT,
    first_name TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


@dataclass
class User:
    id: int
    tg_id: int
    username: str | None
    first_name: str | None

    def as_profile(self) -> dict:
        return {
            "id": self.id,
            "tg_id": self.tg_id,
            "username": self.username,
            "first_name": self.first_name,
        }


def _row_to_user(row: sqlite3.Row | None) -> User | None:
    if row is None:
        return None
    return User(
        id=row["id"],
        tg_id=row["tg_id"],
        username=row["username"],
        first_name=row["first_name"],
    )


class UserStore:
    """Users table on a single SQLite file.

    One connection per call, so handlers running concurrently never share
    a cursor.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path), timeout=SQLITE_BUSY_TIMEOUT_MS / 1000,
        )
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS};")
        return conn

    def init(self) -> None:
        """Create the database file and schema if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.execute(CREATE_USERS_TABLE)
            conn.commit()
        finally:
            conn.close()

    def upsert_telegram_user(
        self, tg_id: int, username: str | None = None, first_name: str | None = None,
    ) -> User:
        """Insert the user or refresh username/first_name on tg_id conflict."""
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO users (tg_id, username, first_name)
                VALUES (?, ?, ?)
                ON CONFLICT(tg_id) DO UPDATE SET
                    username = excluded.username,
                    first_name = excluded.first_name,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (tg_id, username, first_name),
            )
            conn.commit()
            row = conn.execute(
                "SELECT id, tg_id, username, first_name FROM users WHERE tg_id = ?",
                (tg_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_user(row)

    def get(self, user_id: int) -> User | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, tg_id, username, first_name FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_user(row)

    def get_by_tg_id(self, tg_id: int) -> User | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, tg_id, username, first_name FROM users WHERE tg_id = ?",
                (tg_id,),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_user(row)

    def delete(self, user_id: int) -> bool:
        conn = self._connect()
        try:
            cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()
        return cur.rowcount > 0
