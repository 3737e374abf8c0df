"""GitHub organization source: repositories, branches, manifests, file content"""

import base64
from typing import List, Optional
from urllib.parse import quote

import click

from org_npm_scan.core import RepositoryRef
from .base import SourceAdapter, branch_matches
from .github_client import GitHubApiError, GitHubClient
from .npm_adapter import is_manifest_path


RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


class GitHubSource(SourceAdapter):
    """
    Repository source backed by a GitHub organization

    Uses:
    - /orgs/{org}/repos for repositories (paginated)
    - /repos/{org}/{repo}/branches for branches (paginated)
    - /repos/{org}/{repo}/git/trees/{branch}?recursive=1 for the full file
      tree in a single round trip
    - /repos/{org}/{repo}/contents/{path}?ref={branch} for file content
    """

    def __init__(self, client: GitHubClient, org: str):
        self.client = client
        self.org = org

    def list_repositories(self) -> List[RepositoryRef]:
        """List every repository of the organization"""
        return [
            RepositoryRef.from_api(item)
            for item in self.client.paginate(f"/orgs/{quote(self.org)}/repos", params={"type": "all"})
        ]

    def list_matching_branches(self, repo: str) -> List[str]:
        """
        List branches under the retention policy

        A 404/409 (empty repository, no access) ends the listing quietly with
        whatever was collected so far.
        """
        branches = []
        try:
            for branch in self.client.paginate(f"/repos/{quote(self.org)}/{quote(repo)}/branches"):
                name = branch.get('name', '')
                if branch_matches(name):
                    branches.append(name)
        except GitHubApiError as e:
            if not e.is_absent:
                raise
        return branches

    def find_manifest_paths(self, repo: str, branch: str) -> List[str]:
        """List package.json blobs of a branch, excluding node_modules"""
        try:
            data = self.client.get_json(
                f"/repos/{quote(self.org)}/{quote(repo)}/git/trees/{quote(branch, safe='')}",
                params={"recursive": "1"})
        except GitHubApiError as e:
            if e.is_absent:
                return []
            raise

        if data.get('truncated'):
            click.echo(click.style(
                f"⚠️  Warning: File tree of {self.org}/{repo}@{branch} is truncated; "
                f"some manifests may be missed",
                fg='yellow'), err=True)

        return [
            item['path']
            for item in data.get('tree', [])
            if item.get('type') == 'blob' and is_manifest_path(item.get('path', ''))
        ]

    def get_file_content(self, repo: str, branch: str, path: str) -> Optional[str]:
        """Fetch a file's text at a branch, or None if it does not exist"""
        url = f"/repos/{quote(self.org)}/{quote(repo)}/contents/{quote(path)}"
        try:
            data = self.client.get_json(url, params={"ref": branch})
        except GitHubApiError as e:
            if e.status == 404:
                return None
            raise

        if not isinstance(data, dict) or data.get('type') != 'file':
            return None

        if data.get('encoding') == 'base64':
            return base64.b64decode(data.get('content') or '').decode('utf-8', errors='replace')

        # Files over 1 MB come back without inline content
        response = self.client.get(url, params={"ref": branch}, headers={"Accept": RAW_MEDIA_TYPE})
        return response.content.decode('utf-8', errors='replace')
