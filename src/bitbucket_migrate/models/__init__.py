"""Data models for repository migration state."""

from .repository import MAX_RETRIES, RepositoryRecord, RepositoryStatistics

__all__ = ['MAX_RETRIES', 'RepositoryRecord', 'RepositoryStatistics']
