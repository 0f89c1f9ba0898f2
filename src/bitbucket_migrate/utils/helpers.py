"""Small helpers shared by the migration components."""

import asyncio
import re
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from loguru import logger

T = TypeVar('T')

_URL_CREDENTIALS = re.compile(r'(://)[^/@\s]+@')
_BEARER = re.compile(r'(Bearer\s+)\S+')


def sanitize_for_log(text: str) -> str:
    """Mask credentials embedded in URLs or authorization headers."""
    text = _URL_CREDENTIALS.sub(r'\1***@', text)
    return _BEARER.sub(r'\1***', text)


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a short human string."""
    if seconds < 60:
        return f'{round(seconds)}s'
    if seconds < 3600:
        minutes, secs = divmod(round(seconds), 60)
        return f'{minutes}m {secs}s'
    hours, rest = divmod(round(seconds), 3600)
    return f'{hours}h {rest // 60}m'


def estimate_time_remaining(completed: int, total: int, elapsed: float) -> str:
    """Estimate remaining time from the average time per completed item."""
    if completed <= 0:
        return 'calculating...'
    remaining = max(0, total - completed)
    return format_duration(elapsed / completed * remaining)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 1.0,
    no_retry: Tuple[Type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call an async function, retrying on failure.

    Args:
        func: Zero-argument coroutine function
        attempts: Maximum number of attempts
        delay: Seconds between attempts
        no_retry: Exception types that are re-raised immediately
        sleep: Sleep coroutine, injectable for tests

    Returns:
        Result of the first successful call
    """
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except no_retry:
            raise
        except Exception as e:
            if attempt == attempts:
                raise
            logger.warning(
                f'Attempt {attempt}/{attempts} failed, retrying in {delay}s: {e}'
            )
            await sleep(delay)

    raise RuntimeError('retry_async called with no attempts')
