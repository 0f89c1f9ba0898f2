"""Human-readable size threshold parsing."""

import re

from .exceptions import MalformedSizeError

UNITS = {
    'B': 1,
    'KB': 1024,
    'MB': 1024 * 1024,
    'GB': 1024 * 1024 * 1024,
}

_SIZE_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)$', re.IGNORECASE)


def parse_size(text: str) -> int:
    """Convert a size string such as ``50MB`` into a byte count.

    Args:
        text: Size string of the form ``<number><unit>``

    Returns:
        Size in bytes

    Raises:
        MalformedSizeError: If the string does not match the expected form
    """
    if not isinstance(text, str):
        raise MalformedSizeError(f'Invalid size format: {text!r}')

    match = _SIZE_PATTERN.match(text.strip())
    if not match:
        raise MalformedSizeError(f'Invalid size format: {text!r}')

    number, unit = match.groups()
    return int(float(number) * UNITS[unit.upper()])


def format_size(size: int) -> str:
    """Format a byte count for log output."""
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f'{value:.1f} {unit}'
        value /= 1024
    return f'{value:.1f} GB'
