"""Hosting provider API clients."""

from .bitbucket import BitbucketClient
from .github import GitHubClient

__all__ = ['BitbucketClient', 'GitHubClient']
