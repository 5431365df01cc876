from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from domain.repositories import PaymentRequestRepository


class SqlitePaymentRequestRepository(PaymentRequestRepository):
    """
    SQLite-backed implementation of `PaymentRequestRepository`.

    Stores one row per (channel, user) in a `payment_requests` table.
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
                CREATE TABLE IF NOT EXISTS payment_requests (
                    channel TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    requested_at TEXT NOT NULL,
                    PRIMARY KEY (channel, user_id)
                )
                """
            )
            conn.commit()

    def get_request(self, user_id: str) -> Optional[datetime]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT requested_at
                FROM payment_requests
                WHERE channel = ? AND user_id = ?
                """,
                (self._channel, user_id),
            )
            row = cur.fetchone()
            if not row:
                return None
            return datetime.fromisoformat(row[0])

    def put_request(self, user_id: str, requested_at: datetime) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO payment_requests (channel, user_id, requested_at)
                VALUES (?, ?, ?)
                ON CONFLICT (channel, user_id)
                DO UPDATE SET requested_at = excluded.requested_at
                """,
                (self._channel, user_id, requested_at.isoformat()),
            )
            conn.commit()

    def delete_request(self, user_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                DELETE FROM payment_requests
                WHERE channel = ? AND user_id = ?
                """,
                (self._channel, user_id),
            )
            conn.commit()
