from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from domain.models import UserRecord
from domain.repositories import UserRepository

_COLUMNS = (
    "id, channel, display_name, tokens, streak, "
    "last_token_reward, last_activity, streak_date, referral_id"
)


class SqliteUserRepository(UserRepository):
    """
    SQLite-backed implementation of `UserRepository`.

    This repository owns the `users` table and maps rows to the
    `UserRecord` domain model. It is self-initialising: the table is
    created if needed. Rows are scoped by `channel`, so one database file
    can hold both channels without their IDs colliding. Timestamps are
    stored as ISO-8601 text including the UTC offset.
    """

    def __init__(self, db_path: str, channel: str) -> None:
        self._db_path = db_path
        self._channel = channel
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    tokens INTEGER NOT NULL DEFAULT 0,
                    streak INTEGER NOT NULL DEFAULT 0,
                    last_token_reward TEXT NOT NULL,
                    last_activity TEXT NOT NULL,
                    streak_date TEXT NOT NULL,
                    referral_id TEXT,
                    PRIMARY KEY (channel, id)
                )
                """
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=str(row[0]),
            channel=row[1],
            display_name=row[2],
            tokens=int(row[3]),
            streak=int(row[4]),
            last_token_reward=datetime.fromisoformat(row[5]),
            last_activity=datetime.fromisoformat(row[6]),
            streak_date=datetime.fromisoformat(row[7]),
            referral_id=row[8],
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {_COLUMNS} FROM users WHERE channel = ? AND id = ?",
                (self._channel, user_id),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def put_user(self, user: UserRecord) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                INSERT OR REPLACE INTO users ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    self._channel,
                    user.display_name,
                    user.tokens,
                    user.streak,
                    user.last_token_reward.isoformat(),
                    user.last_activity.isoformat(),
                    user.streak_date.isoformat(),
                    user.referral_id,
                ),
            )
            conn.commit()

    def delete_user(self, user_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM users WHERE channel = ? AND id = ?",
                (self._channel, user_id),
            )
            conn.commit()
