"""
Reconnection backoff policy.

delay(attempt) = min(base_delay * multiplier ** attempt, max_delay)

Delays are non-decreasing in ``attempt`` and never exceed ``max_delay``.
"""

from pydantic import BaseModel, Field


class BackoffPolicy(BaseModel):
    """
    Exponential backoff settings.

    Attributes:
        base_delay: Delay before the first retry, in seconds.
        multiplier: Growth factor per attempt.
        max_delay: Upper bound on any single delay.
        max_attempts: Failed cycles allowed before the channel is Failed.

    Example:
        >>> policy = BackoffPolicy(base_delay=1.0, multiplier=2.0, max_delay=30.0)
        >>> [policy.delay(n) for n in range(7)]
        [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    """

    model_config = {"frozen": True, "extra": "forbid"}

    base_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    max_delay: float = Field(default=30.0, ge=0)
    max_attempts: int = Field(default=10, ge=0)

    def delay(self, attempt: int) -> float:
        """
        Delay before reconnect attempt number ``attempt`` (0-based).

        Args:
            attempt: Attempts already made since the last successful connect.

        Returns:
            float: Seconds to wait.
        """
        if attempt < 0:
            attempt = 0
        # Cap the exponent growth before it overflows a float.
        try:
            raw = self.base_delay * (self.multiplier ** attempt)
        except OverflowError:
            return self.max_delay
        return min(raw, self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        """Check if no further automatic attempts are allowed."""
        return attempt >= self.max_attempts
