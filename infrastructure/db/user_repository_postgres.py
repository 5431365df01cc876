from __future__ import annotations

from typing import Optional

import psycopg2

from domain.models import UserRecord
from domain.repositories import UserRepository

_COLUMNS = (
    "id, channel, display_name, tokens, streak, "
    "last_token_reward, last_activity, streak_date, referral_id"
)


class PostgresUserRepository(UserRepository):
    """
    Postgres-backed implementation of `UserRepository`.

    Same layout as the SQLite table, with `TIMESTAMPTZ` columns so that
    psycopg2 hands back timezone-aware datetimes directly.
    """

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
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT NOT NULL,
                        channel TEXT NOT NULL,
                        display_name TEXT NOT NULL,
                        tokens INTEGER NOT NULL DEFAULT 0,
                        streak INTEGER NOT NULL DEFAULT 0,
                        last_token_reward TIMESTAMPTZ NOT NULL,
                        last_activity TIMESTAMPTZ NOT NULL,
                        streak_date TIMESTAMPTZ NOT NULL,
                        referral_id TEXT,
                        PRIMARY KEY (channel, id)
                    )
                    """
                )
                conn.commit()

    @staticmethod
    def _to_domain(row: tuple) -> UserRecord:
        return UserRecord(
            id=str(row[0]),
            channel=row[1],
            display_name=row[2],
            tokens=int(row[3]),
            streak=int(row[4]),
            last_token_reward=row[5],
            last_activity=row[6],
            streak_date=row[7],
            referral_id=row[8],
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM users WHERE channel = %s AND id = %s",
                    (self._channel, user_id),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def put_user(self, user: UserRecord) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO users ({_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (channel, id) DO UPDATE SET
                        display_name = EXCLUDED.display_name,
                        tokens = EXCLUDED.tokens,
                        streak = EXCLUDED.streak,
                        last_token_reward = EXCLUDED.last_token_reward,
                        last_activity = EXCLUDED.last_activity,
                        streak_date = EXCLUDED.streak_date,
                        referral_id = EXCLUDED.referral_id
                    """,
                    (
                        user.id,
                        self._channel,
                        user.display_name,
                        user.tokens,
                        user.streak,
                        user.last_token_reward,
                        user.last_activity,
                        user.streak_date,
                        user.referral_id,
                    ),
                )
                conn.commit()

    def delete_user(self, user_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM users WHERE channel = %s AND id = %s",
                    (self._channel, user_id),
                )
                conn.commit()
