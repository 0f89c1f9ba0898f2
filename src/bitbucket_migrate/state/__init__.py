"""Persistent repository state."""

from .exceptions import (
    MaxRetriesExceededError,
    RepositoryNotFoundError,
    StateStoreError,
    StoreUnavailableError,
)
from .store import RepositoryStateStore

__all__ = [
    'MaxRetriesExceededError',
    'RepositoryNotFoundError',
    'RepositoryStateStore',
    'StateStoreError',
    'StoreUnavailableError',
]
