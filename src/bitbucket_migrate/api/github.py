"""GitHub API client implementation."""

from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitHubConfig
from .exceptions import (
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubValidationError,
)
from .rate_limiter import RateLimiter, quota_reset_time


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class GitHubClient:
    """GitHub REST client covering the destination repository lifecycle."""

    def __init__(self, config: GitHubConfig, rate_limiter: Optional[RateLimiter] = None):
        """Initialize GitHub client.

        Args:
            config: GitHub destination configuration
            rate_limiter: Optional request throttle
        """
        self.config = config
        self.base_url = config.api_url.rstrip('/')
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_second)
        self.session = requests.Session()

        if not config.token:
            raise GitHubAuthenticationError('No authentication token provided')

        self.session.headers.update(
            {
                'Authorization': f'Bearer {config.token}',
                'Accept': 'application/vnd.github+json',
                'X-GitHub-Api-Version': '2022-11-28',
                'User-Agent': 'bitbucket-migrate/0.1.0',
            }
        )

        self.logger = logger.bind(component='GitHubClient')
        self.logger.debug(f'Initialized GitHub client for {self.base_url}')

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            GitHubAPIError: For various API errors
        """
        headers = dict(response.headers)
        error_data = None

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get('message', f'HTTP {response.status_code}')
            except (ValueError, AttributeError):
                message = f'HTTP {response.status_code}: {response.text}'

            reset_at = quota_reset_time(response.status_code, headers, message)
            if reset_at is not None:
                raise GitHubRateLimitError(
                    f'Rate limit exceeded, resets at {reset_at.isoformat()}',
                    reset_at=reset_at,
                    status_code=response.status_code,
                    response_data=error_data,
                )

            if response.status_code == 401:
                raise GitHubAuthenticationError(
                    'Authentication failed', status_code=401
                )

            if response.status_code == 404:
                raise GitHubNotFoundError(
                    message, status_code=404, response_data=error_data
                )

            if response.status_code == 422:
                raise GitHubValidationError(
                    f'Validation failed: {message}',
                    status_code=422,
                    response_data=error_data,
                )

            raise GitHubAPIError(
                f'API request failed: {message}',
                status_code=response.status_code,
                response_data=error_data,
            )

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        url = self._build_url(endpoint)
        self.rate_limiter.acquire()

        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except requests.RequestException as e:
            self.logger.error(f'Network error during {method} request: {e}')
            raise GitHubAPIError(f'Network error: {e}') from e

        return self._handle_response(response)

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        return self._request('GET', endpoint, params=params, **kwargs)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        return self._request('POST', endpoint, json=data, **kwargs)

    def put(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        return self._request('PUT', endpoint, json=data, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> APIResponse:
        return self._request('DELETE', endpoint, **kwargs)

    def _repo_endpoint(self, name: str) -> str:
        return f'/repos/{self.config.owner}/{name}'

    def repository_exists(self, name: str) -> bool:
        """Check whether the destination repository exists."""
        try:
            self.get(self._repo_endpoint(name))
            return True
        except GitHubNotFoundError:
            return False

    def is_repository_empty(self, name: str) -> bool:
        """Check whether the destination repository has no content.

        GitHub answers 404 or 409 on the contents endpoint of an empty
        repository.
        """
        try:
            response = self.get(f'{self._repo_endpoint(name)}/contents')
        except GitHubNotFoundError:
            return True
        except GitHubRateLimitError:
            raise
        except GitHubAPIError as e:
            if e.status_code == 409:
                return True
            raise

        return isinstance(response.data, list) and len(response.data) == 0

    def create_repository(
        self, name: str, description: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create the destination repository.

        Args:
            name: Repository name
            description: Repository description

        Returns:
            Created repository data
        """
        endpoint = (
            f'/orgs/{self.config.owner}/repos'
            if self.config.organization
            else '/user/repos'
        )
        response = self.post(
            endpoint,
            data={
                'name': name,
                'private': self.config.private,
                'description': description or f'Migrated from Bitbucket: {name}',
                'has_issues': True,
                'has_projects': True,
                'has_wiki': True,
                'auto_init': False,
            },
        )
        self.logger.info(f'Created GitHub repository: {name}')
        return response.data or {}

    def enable_lfs(self, name: str) -> None:
        self.put(f'{self._repo_endpoint(name)}/lfs')
        self.logger.info(f'Enabled LFS for GitHub repository: {name}')

    def delete_repository(self, name: str) -> None:
        self.delete(self._repo_endpoint(name))
        self.logger.info(f'Deleted GitHub repository: {name}')

    def test_connection(self) -> bool:
        """Test connection to GitHub.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except GitHubAPIError as e:
            self.logger.error(f'Connection test failed: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
