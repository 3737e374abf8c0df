"""Bounded retry policy for rate-limited API calls"""

import time
from typing import Callable, Optional

from .models import RateLimitEvent


PRIMARY = 'primary'
SECONDARY = 'secondary'

# Retries allowed per request before the rate limit becomes fatal
DEFAULT_MAX_RETRIES = {
    PRIMARY: 5,
    SECONDARY: 3,
}


class RetryPolicy:
    """
    Decides whether a rate-limited request is retried and waits out the backoff

    The policy holds no per-request state: callers pass the 1-based attempt
    number for the request being retried. Every decision, including the final
    refusal, is reported to ``on_rate_limit``.

    Args:
        max_primary_retries: Retries allowed on a primary rate-limit signal
        max_secondary_retries: Retries allowed on a secondary (abuse) signal
        sleep: Callable that blocks for the given number of seconds
        on_rate_limit: Observer receiving a RateLimitEvent per decision
    """

    def __init__(self,
                 max_primary_retries: int = DEFAULT_MAX_RETRIES[PRIMARY],
                 max_secondary_retries: int = DEFAULT_MAX_RETRIES[SECONDARY],
                 sleep: Callable[[float], None] = time.sleep,
                 on_rate_limit: Optional[Callable[[RateLimitEvent], None]] = None):
        self.max_retries = {
            PRIMARY: max_primary_retries,
            SECONDARY: max_secondary_retries,
        }
        self.sleep = sleep
        self.on_rate_limit = on_rate_limit

    def should_retry(self, kind: str, attempt: int, retry_after: float, **metadata) -> bool:
        """
        Report a rate-limit hit and decide whether to retry

        Args:
            kind: 'primary' or 'secondary'
            attempt: 1-based count of rate-limit hits for this request
            retry_after: Seconds the server asked us to wait
            **metadata: Extra context forwarded to the observer (url, ...)

        Returns:
            True if the caller should wait and retry, False to give up
        """
        if kind not in self.max_retries:
            raise ValueError(f"Unknown rate limit kind: {kind}")

        if self.on_rate_limit:
            self.on_rate_limit(RateLimitEvent(
                kind=kind, retry_after=retry_after, attempt=attempt, metadata=metadata))

        return attempt <= self.max_retries[kind]

    def wait(self, retry_after: float):
        """Block until the backoff window elapses"""
        if retry_after > 0:
            self.sleep(retry_after)
