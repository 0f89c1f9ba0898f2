"""Client side throttling and server side quota parsing for the GitHub API."""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional

DEFAULT_RETRY_AFTER = 60


class RateLimiter:
    """Token bucket limiting outgoing requests per second."""

    def __init__(
        self,
        requests_per_second: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
            clock: Monotonic clock, injectable for tests
            sleep: Blocking sleep, injectable for tests
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self._clock = clock
        self._sleep = sleep
        self.last_update = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_update
        self.tokens = min(
            self.requests_per_second, self.tokens + elapsed * self.requests_per_second
        )
        self.last_update = now

    def acquire(self) -> None:
        """Take a token, blocking until one is available."""
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            return

        self._sleep((1 - self.tokens) / self.requests_per_second)
        self._refill()
        self.tokens = max(0.0, self.tokens - 1)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def quota_reset_time(
    status_code: int, headers: Mapping[str, str], message: str = ''
) -> Optional[datetime]:
    """Work out when an exhausted quota resets from a GitHub response.

    Primary limits answer 403 or 429 with ``X-RateLimit-Remaining: 0`` and an
    epoch ``X-RateLimit-Reset``. Secondary limits answer with ``Retry-After``
    or only a message mentioning the rate limit.

    Args:
        status_code: HTTP status code
        headers: Response headers
        message: Error message from the response body

    Returns:
        Timezone-aware reset time, or None if the response is not a quota signal
    """
    if status_code not in (403, 429):
        return None

    now = datetime.now(timezone.utc)
    remaining = _header(headers, 'X-RateLimit-Remaining')
    reset = _header(headers, 'X-RateLimit-Reset')
    retry_after = _header(headers, 'Retry-After')

    if retry_after and retry_after.isdigit():
        return now + timedelta(seconds=int(retry_after))

    if remaining == '0' and reset and reset.isdigit():
        return datetime.fromtimestamp(int(reset), tz=timezone.utc)

    if status_code == 429 or 'rate limit' in message.lower():
        return now + timedelta(seconds=DEFAULT_RETRY_AFTER)

    return None
