"""
Settlement circuit breaker.

Counts consecutive settlement failures and pauses settlement for a fixed
cooldown once the limit is reached.
"""

import time
from typing import Any, Callable, Dict, Optional

from .utils import get_logger

logger = get_logger(__name__)


class SafetyManager:
    """
    Pause settlement after a run of consecutive failures.

    After max_consecutive_failures failed settlements in a row, the manager
    reports a cooldown for cooldown_seconds. The failure streak resets on the
    next success or when the cooldown expires.
    """

    def __init__(
        self,
        max_consecutive_failures: int = 3,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self.max_consecutive_failures = max_consecutive_failures
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.consecutive_failures = 0
        self.last_failure_reason: Optional[str] = None
        self._cooldown_started: Optional[float] = None

    def record_failure(self, reason: str) -> None:
        self.consecutive_failures += 1
        self.last_failure_reason = reason
        if (
            self.consecutive_failures >= self.max_consecutive_failures
            and self._cooldown_started is None
        ):
            self._cooldown_started = self._clock()
            logger.warning(
                f"{self.consecutive_failures} consecutive settlement failures "
                f"(last: {reason}); pausing settlement for {self.cooldown_seconds}s"
            )

    def record_success(self) -> None:
        self.consecutive_failures = 0
        self.last_failure_reason = None
        self._cooldown_started = None

    def in_cooldown(self) -> bool:
        if self._cooldown_started is None:
            return False

        elapsed = self._clock() - self._cooldown_started
        if elapsed >= self.cooldown_seconds:
            logger.info("Settlement cooldown expired")
            self._cooldown_started = None
            self.consecutive_failures = 0
            return False

        return True

    def cooldown_remaining(self) -> float:
        if self._cooldown_started is None:
            return 0.0
        elapsed = self._clock() - self._cooldown_started
        return max(0.0, self.cooldown_seconds - elapsed)

    def status(self) -> Dict[str, Any]:
        return {
            "in_cooldown": self.in_cooldown(),
            "consecutive_failures": self.consecutive_failures,
            "cooldown_remaining": self.cooldown_remaining(),
            "last_failure_reason": self.last_failure_reason,
        }
