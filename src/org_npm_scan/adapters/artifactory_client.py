"""Artifactory npm remote cache lookup"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests


DEFAULT_TIMEOUT = 15


@dataclass
class CacheStatus:
    """Whether a package tarball sits in the Artifactory cache"""

    package: str
    version: str
    exists_in_cache: bool
    last_downloaded: Optional[str] = None      # ISO-8601, UTC
    download_count: Optional[int] = None
    last_downloaded_by: Optional[str] = None
    size: Optional[str] = None
    remote_url: Optional[str] = None
    uri: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization, dropping empty fields"""
        result = {
            'package': self.package,
            'version': self.version,
            'exists_in_cache': self.exists_in_cache,
        }
        for key in ('last_downloaded', 'download_count', 'last_downloaded_by',
                    'size', 'remote_url', 'uri', 'error'):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


class ArtifactoryClient:
    """
    Queries an Artifactory npm remote/virtual repository for cached tarballs

    Authentication prefers an access token, then username/password, then
    anonymous access.
    """

    def __init__(self, base_url: str, repository: str,
                 access_token: Optional[str] = None,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.repository = repository
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers["Accept"] = "application/json"
        if access_token:
            self.session.headers["Authorization"] = f"Bearer {access_token}"
        elif username and password:
            self.session.auth = (username, password)

    @staticmethod
    def tarball_path(package_name: str, version: str) -> str:
        """
        Tarball location in the npm remote cache layout

        Unscoped: <name>/-/<name>-<version>.tgz
        Scoped: @<scope>/<name>/-/<name>-<version>.tgz
        """
        if package_name.startswith('@'):
            scope, _, name = package_name.partition('/')
            return f"{scope}/{name}/-/{name}-{version}.tgz"
        return f"{package_name}/-/{package_name}-{version}.tgz"

    def _get_json(self, url: str) -> Dict[str, Any]:
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            return {}
        if not response.ok:
            detail = response.text.strip()
            raise requests.HTTPError(
                f"{response.status_code} {response.reason}" + (f" - {detail}" if detail else ""),
                response=response)
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def check_cache(self, package_name: str, version: str) -> CacheStatus:
        """
        Look up a package version in the cache

        Transport and HTTP failures are reported in ``error`` rather than
        raised so one bad lookup does not end a batch.
        """
        path = self.tarball_path(package_name, version)
        encoded_path = '/'.join(quote(segment, safe='') for segment in path.split('/'))
        storage_url = f"{self.base_url}/api/storage/{self.repository}/{encoded_path}"

        try:
            storage = self._get_json(storage_url)
            if not storage.get('repo'):
                return CacheStatus(package=package_name, version=version, exists_in_cache=False)

            stats = self._get_json(f"{storage_url}?stats")
            last_downloaded = None
            if stats.get('lastDownloaded'):
                last_downloaded = datetime.fromtimestamp(
                    stats['lastDownloaded'] / 1000, tz=timezone.utc).isoformat()

            return CacheStatus(
                package=package_name,
                version=version,
                exists_in_cache=True,
                last_downloaded=last_downloaded,
                download_count=stats.get('downloadCount'),
                last_downloaded_by=stats.get('lastDownloadedBy'),
                size=storage.get('size'),
                remote_url=storage.get('remoteUrl'),
                uri=storage.get('uri'),
            )

        except requests.RequestException as e:
            return CacheStatus(package=package_name, version=version, exists_in_cache=False, error=str(e))
