"""Hosting provider API exceptions."""

from datetime import datetime, timezone
from typing import Optional


class HostingAPIError(Exception):
    """Base exception for hosting provider API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        """Initialize hosting API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class GitHubAPIError(HostingAPIError):
    """Base exception for GitHub API errors."""

    pass


class GitHubAuthenticationError(GitHubAPIError):
    """Authentication error with GitHub API."""

    pass


class GitHubRateLimitError(GitHubAPIError):
    """API quota exhausted until a known reset time."""

    def __init__(self, message: str, reset_at: datetime, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_at: Time at which the quota resets (timezone-aware)
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.reset_at = reset_at

    @property
    def wait_seconds(self) -> float:
        """Seconds remaining until the quota resets, never negative."""
        remaining = (self.reset_at - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, remaining)


class GitHubNotFoundError(GitHubAPIError):
    """Resource not found error."""

    pass


class GitHubValidationError(GitHubAPIError):
    """Validation error for API requests (HTTP 422)."""

    pass


class DestinationNotEmptyError(GitHubAPIError):
    """Destination repository exists and already holds content."""

    pass


class BitbucketAPIError(HostingAPIError):
    """Error returned by the Bitbucket API."""

    pass
