from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from domain.models import UserRecord

IDLE_REWARD_INTERVAL_HOURS = 8
IDLE_REWARD_TOKENS = 10
IDLE_REWARD_MAX_BALANCE = 4

STREAK_BREAK_AFTER = timedelta(hours=48)
STREAK_MILESTONE = 10
STREAK_MILESTONE_TOKENS = 10


@dataclass
class StreakOutcome:
    streak_broken: bool = False
    streak_reward: int = 0


def evaluate_idle_reward(user: UserRecord, now: datetime) -> int:
    """
    Top up a nearly empty balance once enough time has passed.

    Only users holding `IDLE_REWARD_MAX_BALANCE` tokens or fewer qualify;
    a larger balance earns nothing no matter how long the user was away.
    Returns the number of tokens awarded (0 when nothing changed).
    """

    hours = (now - user.last_token_reward).total_seconds() / 3600
    if user.tokens > IDLE_REWARD_MAX_BALANCE or hours < IDLE_REWARD_INTERVAL_HOURS:
        return 0

    reward_count = int(hours // IDLE_REWARD_INTERVAL_HOURS)
    awarded = reward_count * IDLE_REWARD_TOKENS
    user.tokens += awarded
    user.last_token_reward = now
    return awarded


def evaluate_streak(
    user: UserRecord,
    now: datetime,
    previous_activity: Optional[datetime] = None,
) -> StreakOutcome:
    """
    Advance, keep or break the user's daily streak.

    `previous_activity` is the activity timestamp from before the current
    message was recorded; it defaults to `user.last_activity`.

    Day boundaries are calendar dates in `now`'s timezone, not rolling
    24 hour windows, so two messages 20 hours apart either side of
    midnight count as two days while the same gap within one date does not.
    """

    last_seen = previous_activity if previous_activity is not None else user.last_activity
    if now - last_seen > STREAK_BREAK_AFTER:
        user.streak = 0
        user.streak_date = now
        return StreakOutcome(streak_broken=True)

    streak_day = user.streak_date.astimezone(now.tzinfo).date() if now.tzinfo else user.streak_date.date()
    if now.date() == streak_day:
        return StreakOutcome()

    user.streak += 1
    user.streak_date = now
    if user.streak % STREAK_MILESTONE == 0:
        user.tokens += STREAK_MILESTONE_TOKENS
        return StreakOutcome(streak_reward=STREAK_MILESTONE_TOKENS)
    return StreakOutcome()
