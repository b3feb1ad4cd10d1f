"""
Backoff policies for the stream supervisor.

The supervisor asks its policy how long to wait before the next attempt.
Two situations are distinguished:

- restart: the recorder process failed to spawn or exited
- setup retry: the destination directory could not be created

``attempt`` is the 1-based count of consecutive failures of that kind.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod

RESTART_DELAY = 1.0
SETUP_RETRY_DELAY = 60.0


class BackoffPolicy(ABC):
    """Decides the cooldown between supervision attempts."""

    @abstractmethod
    def restart_delay(self, attempt: int) -> float:
        """Seconds to wait after the recorder exited or failed to start."""

    @abstractmethod
    def setup_retry_delay(self, attempt: int) -> float:
        """Seconds to wait after the output directory could not be created."""


class FixedBackoff(BackoffPolicy):
    """Constant delays regardless of how often a stream has failed."""

    def __init__(
        self,
        restart: float = RESTART_DELAY,
        setup_retry: float = SETUP_RETRY_DELAY,
    ):
        if restart < 0 or setup_retry < 0:
            raise ValueError("Backoff delays must be non-negative")
        self.restart = restart
        self.setup_retry = setup_retry

    def restart_delay(self, attempt: int) -> float:
        return self.restart

    def setup_retry_delay(self, attempt: int) -> float:
        return self.setup_retry

    def __repr__(self) -> str:
        return f"FixedBackoff(restart={self.restart}, setup_retry={self.setup_retry})"


class ExponentialBackoff(BackoffPolicy):
    """
    Exponential restart backoff with jitter.

    Usage:
        policy = ExponentialBackoff(base_delay=1.0, max_delay=60.0)
        policy.restart_delay(1)   # ~1s
        policy.restart_delay(4)   # ~8s
    """

    def __init__(
        self,
        base_delay: float = RESTART_DELAY,
        max_delay: float = 60.0,
        backoff_factor: float = 2.0,
        jitter: float = 0.1,
        setup_retry: float = SETUP_RETRY_DELAY,
    ):
        """
        Args:
            base_delay: Delay after the first failure (seconds)
            max_delay: Upper bound for any restart delay (seconds)
            backoff_factor: Multiplier applied per consecutive failure
            jitter: Random jitter factor (0.1 = +/-10%)
            setup_retry: Delay after a directory creation failure (seconds)
        """
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self.setup_retry = setup_retry

    def get_delay(self, attempt: int) -> float:
        attempt = max(1, attempt)
        delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def restart_delay(self, attempt: int) -> float:
        return self.get_delay(attempt)

    def setup_retry_delay(self, attempt: int) -> float:
        return self.setup_retry


DEFAULT_BACKOFF = FixedBackoff()

__all__ = [
    "BackoffPolicy",
    "DEFAULT_BACKOFF",
    "ExponentialBackoff",
    "FixedBackoff",
    "RESTART_DELAY",
    "SETUP_RETRY_DELAY",
]
