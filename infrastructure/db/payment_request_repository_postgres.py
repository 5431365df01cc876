from __future__ import annotations

from datetime import datetime
from typing import Optional

import psycopg2

from domain.repositories import PaymentRequestRepository


class PostgresPaymentRequestRepository(PaymentRequestRepository):
    def __init__(self, db_params: dict, channel: str) -> None:
        self._db_params = db_params
        self._channel = channel
        self._ensure_table()

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS payment_requests (
                        channel TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        requested_at TIMESTAMPTZ NOT NULL,
                        PRIMARY KEY (channel, user_id)
                    )
                    """
                )
                conn.commit()

    def get_request(self, user_id: str) -> Optional[datetime]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT requested_at
                    FROM payment_requests
                    WHERE channel = %s AND user_id = %s
                    """,
                    (self._channel, user_id),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return row[0]

    def put_request(self, user_id: str, requested_at: datetime) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO payment_requests (channel, user_id, requested_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (channel, user_id)
                    DO UPDATE SET requested_at = EXCLUDED.requested_at
                    """,
                    (self._channel, user_id, requested_at),
                )
                conn.commit()

    def delete_request(self, user_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM payment_requests
                    WHERE channel = %s AND user_id = %s
                    """,
                    (self._channel, user_id),
                )
                conn.commit()
