from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from domain.models import UserRecord
from domain.repositories import UserRepository


class UserLedger:
    """
    Owns every change to a channel's user balances and streak state.

    Records are read from and written back to the injected repository;
    callers mutate a record only through the ledger or the reward policy
    and then `save` it.

    The ledger itself does no locking around individual calls. Event
    handlers take `lock(user_id)` for the whole event so that two
    concurrent webhook deliveries for one user cannot interleave.
    """

    def __init__(self, channel: str, user_repo: UserRepository) -> None:
        self.channel = channel
        self._user_repo = user_repo
        # user_id -> [lock, holders]; entries are dropped once nobody holds or waits.
        self._locks: Dict[str, List] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def lock(self, user_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def is_new_user(self, user_id: str) -> bool:
        return self._user_repo.get_user(user_id) is None

    def create_user(
        self,
        user_id: str,
        display_name: str,
        initial_tokens: int,
        initial_streak: int,
        now: datetime,
        referral_id: Optional[str] = None,
    ) -> UserRecord:
        user = UserRecord(
            id=user_id,
            channel=self.channel,
            display_name=display_name,
            tokens=initial_tokens,
            streak=initial_streak,
            last_token_reward=now,
            last_activity=now,
            streak_date=now,
            referral_id=referral_id,
        )
        self._user_repo.put_user(user)
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._user_repo.get_user(user_id)

    def save(self, user: UserRecord) -> None:
        self._user_repo.put_user(user)

    @staticmethod
    def touch_activity(user: UserRecord, now: datetime) -> datetime:
        """Record `now` as the latest activity and return the previous value."""

        previous = user.last_activity
        user.last_activity = now
        return previous

    @staticmethod
    def spend(user: UserRecord, amount: int) -> bool:
        """
        Deduct `amount` tokens if the balance covers it.

        Returns False and leaves the balance untouched otherwise.
        """

        if user.tokens < 0:
            user.tokens = 0
        if amount <= 0 or user.tokens < amount:
            return False
        user.tokens -= amount
        return True

    @staticmethod
    def credit(user: UserRecord, amount: int) -> None:
        if amount < 0:
            raise ValueError("Credit amount must not be negative.")
        user.tokens += amount

    @staticmethod
    def refund(user: UserRecord, amount: int) -> None:
        """Give back tokens taken by a `spend` whose request then failed."""

        UserLedger.credit(user, amount)
