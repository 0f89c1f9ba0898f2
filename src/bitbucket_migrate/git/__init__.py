"""Git operations module for repository migration."""

from .exceptions import GitCommandError
from .executor import GitExecutor

__all__ = ['GitCommandError', 'GitExecutor']
