from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Bounded exponential backoff: initial_delay, then doubled per attempt."""

    max_attempts: int = 5
    initial_delay: float = 5.0
    multiplier: float = 2.0

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""

        return self.initial_delay * self.multiplier ** (attempt - 1)


def register_webhook_with_retry(
    register: Callable[[], object],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Call `register` until it succeeds or the policy's attempts run out.

    Returns True once registered and False when every attempt failed, in
    which case the caller is expected to fall back to long polling.
    """

    for attempt in range(1, policy.max_attempts + 1):
        try:
            register()
            return True
        except Exception as exc:
            logger.error(
                "Attempt %s/%s failed to set webhook: %s", attempt, policy.max_attempts, exc
            )
            if attempt == policy.max_attempts:
                logger.error("Max retries reached. Continuing without webhook setup...")
                return False
            delay = policy.delay_after(attempt)
            logger.info("Retrying in %s seconds...", delay)
            sleep(delay)
    return False
