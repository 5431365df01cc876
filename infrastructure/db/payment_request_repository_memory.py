from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from domain.repositories import PaymentRequestRepository


class InMemoryPaymentRequestRepository(PaymentRequestRepository):
    def __init__(self) -> None:
        self.requests: Dict[str, datetime] = {}

    def get_request(self, user_id: str) -> Optional[datetime]:
        return self.requests.get(user_id)

    def put_request(self, user_id: str, requested_at: datetime) -> None:
        self.requests[user_id] = requested_at

    def delete_request(self, user_id: str) -> None:
        self.requests.pop(user_id, None)
