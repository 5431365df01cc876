from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from .models import UserRecord


class UserRepository(Protocol):
    """
    Abstraction over user persistence for one channel.

    Implementations are responsible for:
    - Mapping between storage rows and the `UserRecord` domain model.
    - Hiding any SQL / driver details from the application layer.
    - Keeping channels apart: a repository only ever sees its own channel.
    """

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Return the user with the given channel-scoped ID, or None if not found."""

        ...

    def put_user(self, user: UserRecord) -> None:
        """Insert or replace the stored state of `user`."""

        ...

    def delete_user(self, user_id: str) -> None:
        ...


class PaymentRequestRepository(Protocol):
    """
    Persistence for open `/payments` declarations, keyed by user ID.

    At most one timestamp is kept per user; `put_request` replaces it.
    """

    def get_request(self, user_id: str) -> Optional[datetime]:
        ...

    def put_request(self, user_id: str, requested_at: datetime) -> None:
        ...

    def delete_request(self, user_id: str) -> None:
        ...
