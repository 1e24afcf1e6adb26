"""
Retry Manager for the domain enforcer system.

The apply transaction never retries by itself. After a failed cycle the
orchestrator asks this module when the next automatic attempt is allowed,
with exponentially increasing waits so a persistent failure (for example a
dismissed authorization prompt) does not re-prompt every tick.
"""

from dataclasses import dataclass
from typing import Optional

from .config import RetryConfig


@dataclass
class RetryState:
    """Failure bookkeeping between cycles."""

    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None


class RetryManager:
    """
    Manages backoff after failed synchronization cycles.

    delay(n) = base_delay * 2^(n-1) for the n-th consecutive failure,
    capped at max_delay.
    """

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Retry configuration with base and maximum delays
        """
        self._config = config or RetryConfig()
        self._state = RetryState()

    @property
    def state(self) -> RetryState:
        return self._state

    def _calculate_delay(self, consecutive_failures: int) -> float:
        """
        Calculate wait time with exponential backoff.

        Args:
            consecutive_failures: Number of failures in a row (1 after the first)

        Returns:
            The delay in seconds before the next automatic attempt
        """
        if consecutive_failures <= 0:
            return 0.0
        delay = self._config.base_delay_seconds * (2 ** (consecutive_failures - 1))
        return min(delay, self._config.max_delay_seconds)

    def record_failure(self, now: float) -> float:
        """
        Register a failed cycle.

        Returns:
            Seconds until the next automatic attempt is allowed
        """
        self._state.consecutive_failures += 1
        self._state.last_failure_at = now
        return self._calculate_delay(self._state.consecutive_failures)

    def record_success(self) -> None:
        self._state = RetryState()

    def seconds_until_retry(self, now: float) -> float:
        """Remaining wait before an automatic attempt; 0 when allowed now."""
        if self._state.last_failure_at is None:
            return 0.0
        ready_at = self._state.last_failure_at + self._calculate_delay(
            self._state.consecutive_failures
        )
        return max(0.0, ready_at - now)

    def can_retry(self, now: float) -> bool:
        return self.seconds_until_retry(now) <= 0.0
