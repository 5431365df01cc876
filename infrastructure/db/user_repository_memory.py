from __future__ import annotations

from typing import Dict, Optional

from domain.models import UserRecord
from domain.repositories import UserRepository


class InMemoryUserRepository(UserRepository):
    """
    Process-lifetime user store.

    Nothing survives a restart. Records are handed out by reference, so
    a caller's mutations are visible before `put_user` is called.
    """

    def __init__(self) -> None:
        self.users: Dict[str, UserRecord] = {}

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def put_user(self, user: UserRecord) -> None:
        self.users[user.id] = user

    def delete_user(self, user_id: str) -> None:
        self.users.pop(user_id, None)
