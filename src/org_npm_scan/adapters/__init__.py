"""Source and ecosystem adapters"""

from .base import SourceAdapter, ProgressSpinner, branch_matches
from .github_client import GitHubClient, GitHubApiError, RateLimitExceeded
from .github_source import GitHubSource
from .npm_adapter import NpmAdapter, parse_manifest, parse_lockfile
from .artifactory_client import ArtifactoryClient, CacheStatus

__all__ = [
    'SourceAdapter',
    'ProgressSpinner',
    'branch_matches',
    'GitHubClient',
    'GitHubApiError',
    'RateLimitExceeded',
    'GitHubSource',
    'NpmAdapter',
    'parse_manifest',
    'parse_lockfile',
    'ArtifactoryClient',
    'CacheStatus',
]
