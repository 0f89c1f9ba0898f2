"""LFS detection and migration exceptions."""

from typing import Optional


class MalformedSizeError(ValueError):
    """Size threshold string could not be parsed."""

    pass


class ScanFailure(Exception):
    """A single file or revision could not be inspected during a scan."""

    def __init__(self, message: str, target: Optional[str] = None):
        """Initialize scan failure.

        Args:
            message: Error message
            target: File path or revision that failed
        """
        super().__init__(message)
        self.target = target


class StrategyExecutionError(Exception):
    """History rewrite or tracking rule setup failed."""

    def __init__(self, message: str, strategy: Optional[str] = None):
        """Initialize strategy execution error.

        Args:
            message: Error message
            strategy: Strategy that was being executed
        """
        super().__init__(message)
        self.strategy = strategy
