"""GitHub REST transport with pagination and rate-limit handling"""

import math
import time
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import requests

from org_npm_scan.core.retry import PRIMARY, SECONDARY, RetryPolicy


DEFAULT_API_URL = "https://api.github.com"
GITHUB_API_PAGE_SIZE = 100
DEFAULT_SECONDARY_WAIT_SECONDS = 60
DEFAULT_TIMEOUT = 30

# Statuses GitHub uses for "nothing here": missing repo/ref, empty repository
ABSENT_STATUSES = frozenset({404, 409})
RATE_LIMIT_STATUSES = frozenset({403, 429})


class GitHubApiError(Exception):
    """Non-success response from the GitHub API"""

    def __init__(self, status: int, message: str, url: Optional[str] = None):
        super().__init__(f"{status} {message}" + (f" ({url})" if url else ""))
        self.status = status
        self.message = message
        self.url = url

    @property
    def is_absent(self) -> bool:
        """True for not-found or conflict (empty repository) responses"""
        return self.status in ABSENT_STATUSES


class RateLimitExceeded(GitHubApiError):
    """Rate limit still in effect after the retry ceiling"""

    def __init__(self, status: int, message: str, url: Optional[str] = None,
                 kind: str = PRIMARY, attempts: int = 0):
        super().__init__(status, message, url)
        self.kind = kind
        self.attempts = attempts


def _response_message(response: requests.Response) -> str:
    """Best-effort error message from a GitHub response body"""
    try:
        data = response.json()
    except ValueError:
        return (response.text or response.reason or '').strip()
    if isinstance(data, dict) and data.get('message'):
        return str(data['message'])
    return (response.reason or '').strip()


class GitHubClient:
    """
    Minimal authenticated client for the GitHub REST API

    Every GET goes through the retry policy: rate-limited responses are
    retried after the server-provided backoff until the policy gives up, at
    which point RateLimitExceeded is raised. Any other non-success response
    raises GitHubApiError.

    Args:
        token: Personal access or app token
        api_url: API root (GitHub Enterprise installs use their own)
        retry_policy: Rate-limit retry policy
        session: requests session (injected in tests)
        timeout: Per-request timeout in seconds
        clock: Returns the current epoch time in seconds
    """

    def __init__(self, token: Optional[str] = None,
                 api_url: str = DEFAULT_API_URL,
                 retry_policy: Optional[RetryPolicy] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 clock: Callable[[], float] = time.time):
        self.api_url = api_url.rstrip('/')
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.clock = clock

        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "org-npm-scan",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        if path.startswith(('http://', 'https://')):
            return path
        return f"{self.api_url}/{path.lstrip('/')}"

    def _rate_limit(self, response: requests.Response) -> Optional[Tuple[str, float]]:
        """
        Detect a rate-limit response

        Returns:
            (kind, retry_after seconds), or None if not rate limited
        """
        if response.status_code not in RATE_LIMIT_STATUSES:
            return None

        headers = response.headers
        retry_after_header = headers.get('retry-after')
        message = _response_message(response).lower()

        if 'secondary rate' in message or 'abuse' in message:
            return SECONDARY, float(retry_after_header or DEFAULT_SECONDARY_WAIT_SECONDS)

        if headers.get('x-ratelimit-remaining') == '0':
            if retry_after_header:
                return PRIMARY, float(retry_after_header)
            reset = headers.get('x-ratelimit-reset')
            if reset:
                return PRIMARY, float(max(math.ceil(int(reset) - self.clock()), 0))
            return PRIMARY, float(DEFAULT_SECONDARY_WAIT_SECONDS)

        if retry_after_header:
            return SECONDARY, float(retry_after_header)

        return None

    def get(self, path: str, params: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """
        GET with rate-limit retries

        Args:
            path: API path (``/orgs/x/repos``) or absolute URL
            params: Query parameters
            headers: Extra request headers

        Returns:
            Successful response

        Raises:
            RateLimitExceeded: Rate limit persisted past the retry ceiling
            GitHubApiError: Any other non-success status
        """
        url = self._url(path)
        attempts = 0

        while True:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)

            limited = self._rate_limit(response)
            if limited is not None:
                kind, retry_after = limited
                attempts += 1
                if self.retry_policy.should_retry(kind, attempts, retry_after, url=url):
                    self.retry_policy.wait(retry_after)
                    continue
                raise RateLimitExceeded(
                    response.status_code, _response_message(response), url,
                    kind=kind, attempts=attempts)

            if not response.ok:
                raise GitHubApiError(response.status_code, _response_message(response), url)

            return response

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET and decode the JSON body"""
        return self.get(path, params=params).json()

    def paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """
        Iterate items across every page of a list endpoint

        Follows ``Link: rel="next"`` until exhausted. Single pass, lazily
        fetched: an error on page N raises after the items of pages 1..N-1
        were yielded.

        Args:
            path: API path of a list endpoint
            params: Query parameters for the first page

        Yields:
            Items of each page in order
        """
        params = dict(params or {})
        params.setdefault("per_page", GITHUB_API_PAGE_SIZE)
        url: Optional[str] = self._url(path)

        while url:
            response = self.get(url, params=params)
            data = response.json()

            if isinstance(data, list):
                yield from data
            else:
                yield data

            # The next link already carries the query string
            url = response.links.get('next', {}).get('url')
            params = None
