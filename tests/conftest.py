"""Shared fixtures: in-memory source and fake HTTP session."""

import json
from typing import Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from org_npm_scan.adapters.base import SourceAdapter, branch_matches
from org_npm_scan.adapters.npm_adapter import is_manifest_path
from org_npm_scan.core import RepositoryRef


class FakeSource(SourceAdapter):
    """
    In-memory organization

    ``repos`` maps repository name -> branch name -> {path: content}.
    Every call is recorded in ``calls``.
    """

    def __init__(self, repos: Dict[str, Dict[str, Dict[str, str]]]):
        self.repos = repos
        self.calls: List[tuple] = []

    def list_repositories(self) -> List[RepositoryRef]:
        self.calls.append(('list_repositories',))
        return [RepositoryRef(name=name) for name in self.repos]

    def list_matching_branches(self, repo: str) -> List[str]:
        self.calls.append(('list_matching_branches', repo))
        return [b for b in self.repos.get(repo, {}) if branch_matches(b)]

    def find_manifest_paths(self, repo: str, branch: str) -> List[str]:
        self.calls.append(('find_manifest_paths', repo, branch))
        files = self.repos.get(repo, {}).get(branch, {})
        return [path for path in files if is_manifest_path(path)]

    def get_file_content(self, repo: str, branch: str, path: str) -> Optional[str]:
        self.calls.append(('get_file_content', repo, branch, path))
        return self.repos.get(repo, {}).get(branch, {}).get(path)


class FakeSession:
    """Stands in for requests.Session, replaying queued responses."""

    def __init__(self, responses=None):
        self.headers = {}
        self.auth = None
        self.responses = list(responses or [])
        self.requests: List[dict] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def build_response(status: int = 200, body=None, headers: Optional[dict] = None,
                   url: str = "https://api.github.com/test", raw: Optional[bytes] = None):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(body).encode('utf-8') if body is not None else b''
    response.headers = CaseInsensitiveDict(headers or {})
    response.url = url
    response.reason = {200: 'OK', 401: 'Unauthorized', 403: 'Forbidden', 404: 'Not Found',
                       409: 'Conflict', 429: 'Too Many Requests', 500: 'Internal Server Error'}.get(status, '')
    response.encoding = 'utf-8'
    return response


@pytest.fixture
def make_source():
    """Factory for in-memory sources."""
    return FakeSource


@pytest.fixture
def fake_session():
    """Empty fake HTTP session; queue responses with .queue()."""
    return FakeSession()


@pytest.fixture
def make_response():
    """Factory for requests.Response objects."""
    return build_response
