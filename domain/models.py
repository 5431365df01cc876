from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class UserRecord:
    """
    Domain representation of a gateway user on a single channel.

    This model is intentionally simple and independent of any
    particular transport (Telegram, WhatsApp) or database schema.
    The same person on two channels is two unrelated records.
    """

    id: str
    channel: str
    display_name: str
    tokens: int
    streak: int
    last_token_reward: datetime
    last_activity: datetime
    streak_date: datetime
    referral_id: Optional[str] = None


@dataclass
class PaymentDetails:
    amount: str
    platform: str


@dataclass
class VerificationResult:
    """Outcome of checking a payment-proof document."""

    valid: bool
    reason: Optional[str] = None
    date: Optional[datetime] = None
    details: Optional[PaymentDetails] = None
