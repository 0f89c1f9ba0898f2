"""Bitbucket Cloud API client used to list source repositories."""

from typing import Any, Dict, Iterator, List, Optional

import requests
from loguru import logger

from ..config.config import BitbucketConfig
from ..models.repository import RepositoryRecord
from .exceptions import BitbucketAPIError

DEFAULT_BRANCH = 'master'
PAGE_LENGTH = 100


class BitbucketClient:
    """Read-only client for a Bitbucket workspace."""

    def __init__(self, config: BitbucketConfig):
        """Initialize Bitbucket client.

        Args:
            config: Bitbucket source configuration
        """
        self.config = config
        self.base_url = config.api_url.rstrip('/')
        self.session = requests.Session()
        self.session.auth = (config.user, config.app_password)
        self.session.headers.update(
            {'Accept': 'application/json', 'User-Agent': 'bitbucket-migrate/0.1.0'}
        )
        self.logger = logger.bind(component='BitbucketClient')

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise BitbucketAPIError(f'Network error: {e}') from e

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get('error', {}).get(
                    'message', f'HTTP {response.status_code}'
                )
            except (ValueError, AttributeError):
                error_data = None
                message = f'HTTP {response.status_code}: {response.text}'
            raise BitbucketAPIError(
                f'Bitbucket request failed: {message}',
                status_code=response.status_code,
                response_data=error_data,
            )

        try:
            return response.json()
        except ValueError as e:
            raise BitbucketAPIError(f'Invalid JSON from Bitbucket: {e}') from e

    def iter_repositories(self) -> Iterator[Dict[str, Any]]:
        """Yield raw repository objects, following pagination links."""
        url: Optional[str] = f'{self.base_url}/repositories/{self.config.workspace}'
        params: Optional[Dict[str, Any]] = {'pagelen': PAGE_LENGTH}
        page = 0

        while url:
            page += 1
            data = self._get(url, params=params)
            values = data.get('values', [])
            self.logger.debug(f'Page {page}: {len(values)} repositories')
            yield from values

            # the next link already carries the query string
            url = data.get('next')
            params = None

    def list_repositories(self) -> List[RepositoryRecord]:
        """List every repository in the workspace as fresh state records.

        Returns:
            Records with name and main branch, in API order
        """
        records = []
        for repo in self.iter_repositories():
            main_branch = repo.get('mainbranch') or {}
            records.append(
                RepositoryRecord(
                    name=repo['slug'],
                    branch=main_branch.get('name') or DEFAULT_BRANCH,
                )
            )

        self.logger.info(
            f'Found {len(records)} repositories in workspace {self.config.workspace}'
        )
        return records

    def test_connection(self) -> bool:
        """Test connection to Bitbucket.

        Returns:
            True if the workspace is reachable, False otherwise
        """
        try:
            self._get(f'{self.base_url}/workspaces/{self.config.workspace}')
            return True
        except BitbucketAPIError as e:
            self.logger.error(f'Connection test failed: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
