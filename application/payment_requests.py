from __future__ import annotations

from datetime import datetime
from typing import Optional

from domain.repositories import PaymentRequestRepository


class RequestWindowTracker:
    """
    Remembers when each user last announced a payment with /payments.

    A new declaration replaces the old one. The marker is removed only
    once a proof has been accepted, so a rejected proof can be resent
    without declaring again.
    """

    def __init__(self, request_repo: PaymentRequestRepository) -> None:
        self._request_repo = request_repo

    def open_request(self, user_id: str, now: datetime) -> None:
        self._request_repo.put_request(user_id, now)

    def has_open_request(self, user_id: str) -> Optional[datetime]:
        return self._request_repo.get_request(user_id)

    def close_request(self, user_id: str) -> None:
        self._request_repo.delete_request(user_id)
