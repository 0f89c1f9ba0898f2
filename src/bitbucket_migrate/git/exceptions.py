"""Git command exceptions."""

from typing import List, Optional


class GitCommandError(Exception):
    """A git or git-lfs command exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        """Initialize git command error.

        Args:
            message: Error message
            command: Command that failed (credentials already masked)
            returncode: Process exit status
            stderr: Captured standard error
        """
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
