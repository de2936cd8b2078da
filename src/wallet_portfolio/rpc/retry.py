"""Retry policy with rate-limit aware backoff for outbound calls."""

import random


class RetryConfig:
    """
    Configuration for retry behavior.

    Rate-limited responses (HTTP 429) back off exponentially with random
    jitter; every other failure backs off linearly.

    Parameters
    ----------
    max_retries : int
        Maximum number of retry attempts after the first request
    backoff : float
        Base delay in seconds
    max_jitter : float
        Upper bound of the uniform jitter added to rate-limit delays
    max_delay : float
        Maximum delay between retries

    """

    def __init__(
        self,
        max_retries: int = 2,
        backoff: float = 1.0,
        max_jitter: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        self.max_retries = max_retries
        self.backoff = backoff
        self.max_jitter = max_jitter
        self.max_delay = max_delay

    @property
    def max_attempts(self) -> int:
        """Total number of requests issued before giving up."""
        return self.max_retries + 1

    def get_delay(self, attempt: int, *, rate_limited: bool = False) -> float:
        """
        Calculate delay for a given retry attempt.

        Parameters
        ----------
        attempt : int
            Current attempt number (0-indexed)
        rate_limited : bool
            Whether the failed attempt was answered with HTTP 429

        Returns
        -------
        float
            Delay in seconds

        """
        if rate_limited:
            jitter = random.uniform(0, self.max_jitter) if self.max_jitter > 0 else 0.0
            delay = self.backoff * (2**attempt) + jitter
        else:
            delay = self.backoff * (attempt + 1)
        return min(delay, self.max_delay)
