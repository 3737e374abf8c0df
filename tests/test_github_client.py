"""Unit tests for GitHubClient transport behaviour."""

import pytest
import requests

from org_npm_scan.adapters.github_client import (
    GitHubApiError,
    GitHubClient,
    RateLimitExceeded,
)
from org_npm_scan.core.retry import RetryPolicy


NOW = 1_700_000_000


@pytest.fixture
def waits():
    return []


@pytest.fixture
def events():
    return []


@pytest.fixture
def client(fake_session, waits, events):
    """Client over a fake session with a deterministic clock."""
    policy = RetryPolicy(sleep=waits.append, on_rate_limit=events.append)
    return GitHubClient(token='ghp_test', retry_policy=policy, session=fake_session, clock=lambda: NOW)


def primary_limited(make_response, reset_in=30):
    return make_response(403, {'message': 'API rate limit exceeded for user.'}, headers={
        'x-ratelimit-remaining': '0',
        'x-ratelimit-reset': str(NOW + reset_in),
    })


def secondary_limited(make_response, retry_after='5'):
    headers = {'retry-after': retry_after} if retry_after else {}
    return make_response(403, {'message': 'You have exceeded a secondary rate limit.'}, headers=headers)


def test_session_headers(client, fake_session):
    """Test authentication and API headers are set on the session."""
    assert fake_session.headers['Authorization'] == 'Bearer ghp_test'
    assert fake_session.headers['Accept'] == 'application/vnd.github+json'


def test_get_builds_url(client, fake_session, make_response):
    """Test relative paths are joined to the API root."""
    fake_session.queue(make_response(200, {'ok': True}))

    assert client.get_json('/orgs/acme/repos', params={'page': 2}) == {'ok': True}
    assert fake_session.requests[0]['url'] == 'https://api.github.com/orgs/acme/repos'
    assert fake_session.requests[0]['params'] == {'page': 2}


def test_custom_api_url(fake_session, make_response):
    """Test GitHub Enterprise API roots are honoured."""
    client = GitHubClient(api_url='https://ghe.example.com/api/v3/', session=fake_session)
    fake_session.queue(make_response(200, []))

    client.get('orgs/acme/repos')
    assert fake_session.requests[0]['url'] == 'https://ghe.example.com/api/v3/orgs/acme/repos'
    assert 'Authorization' not in fake_session.headers


def test_error_status_raises(client, fake_session, make_response):
    """Test non-rate-limit failures raise GitHubApiError with the status."""
    fake_session.queue(make_response(500, {'message': 'Server Error'}))

    with pytest.raises(GitHubApiError) as exc:
        client.get('/orgs/acme/repos')

    assert exc.value.status == 500
    assert exc.value.message == 'Server Error'
    assert not exc.value.is_absent


@pytest.mark.parametrize('status', [404, 409])
def test_absent_statuses(client, fake_session, make_response, status):
    """Test not-found and conflict errors are flagged as absence."""
    fake_session.queue(make_response(status, {'message': 'Not Found'}))

    with pytest.raises(GitHubApiError) as exc:
        client.get('/repos/acme/empty/branches')

    assert exc.value.is_absent


def test_forbidden_without_rate_limit_is_plain_error(client, fake_session, make_response, events):
    """Test a 403 that is not a rate limit raises immediately."""
    fake_session.queue(make_response(403, {'message': 'Resource not accessible by integration'},
                                     headers={'x-ratelimit-remaining': '4999'}))

    with pytest.raises(GitHubApiError) as exc:
        client.get('/orgs/acme/repos')

    assert not isinstance(exc.value, RateLimitExceeded)
    assert exc.value.status == 403
    assert events == []


def test_primary_rate_limit_retried(client, fake_session, make_response, waits, events):
    """Test a primary rate limit waits until reset and retries."""
    fake_session.queue(primary_limited(make_response, reset_in=30), make_response(200, {'ok': 1}))

    assert client.get_json('/orgs/acme/repos') == {'ok': 1}
    assert waits == [30]
    assert len(events) == 1
    assert (events[0].kind, events[0].retry_after, events[0].attempt) == ('primary', 30, 1)


def test_primary_rate_limit_gives_up_after_five_retries(client, fake_session, make_response, waits, events):
    """Test the sixth consecutive primary rate limit is fatal."""
    fake_session.queue(*[primary_limited(make_response) for _ in range(6)])

    with pytest.raises(RateLimitExceeded) as exc:
        client.get('/orgs/acme/repos')

    assert exc.value.kind == 'primary'
    assert exc.value.attempts == 6
    assert len(waits) == 5
    assert [e.attempt for e in events] == [1, 2, 3, 4, 5, 6]
    assert len(fake_session.requests) == 6


def test_secondary_rate_limit_gives_up_after_three_retries(client, fake_session, make_response, waits, events):
    """Test the fourth consecutive secondary rate limit is fatal."""
    fake_session.queue(*[secondary_limited(make_response) for _ in range(4)])

    with pytest.raises(RateLimitExceeded) as exc:
        client.get('/orgs/acme/repos')

    assert exc.value.kind == 'secondary'
    assert waits == [5, 5, 5]
    assert all(e.kind == 'secondary' for e in events)


def test_secondary_rate_limit_default_wait(client, fake_session, make_response, waits):
    """Test a secondary limit without retry-after waits 60 seconds."""
    fake_session.queue(secondary_limited(make_response, retry_after=None), make_response(200, {}))

    client.get('/orgs/acme/repos')
    assert waits == [60]


def test_429_with_retry_after_is_secondary(client, fake_session, make_response, events):
    """Test a bare 429 carrying retry-after is treated as secondary."""
    fake_session.queue(make_response(429, {'message': 'Too many'}, headers={'retry-after': '2'}),
                       make_response(200, {}))

    client.get('/orgs/acme/repos')
    assert events[0].kind == 'secondary'
    assert events[0].retry_after == 2


def test_reset_in_the_past_does_not_wait(client, fake_session, make_response, waits):
    """Test a reset time already elapsed retries without sleeping."""
    fake_session.queue(primary_limited(make_response, reset_in=-10), make_response(200, {}))

    client.get('/orgs/acme/repos')
    assert waits == []


def test_network_errors_propagate(client, fake_session):
    """Test transport exceptions are not swallowed."""
    fake_session.queue(requests.ConnectionError('boom'))

    with pytest.raises(requests.ConnectionError):
        client.get('/orgs/acme/repos')


def test_paginate_follows_link_header(client, fake_session, make_response):
    """Test pagination follows rel=next to exhaustion."""
    next_url = 'https://api.github.com/organizations/1/repos?per_page=100&page=2'
    fake_session.queue(
        make_response(200, [{'id': 1}, {'id': 2}], headers={'Link': f'<{next_url}>; rel="next", <{next_url}>; rel="last"'}),
        make_response(200, [{'id': 3}]),
    )

    items = list(client.paginate('/orgs/acme/repos', params={'type': 'all'}))

    assert [item['id'] for item in items] == [1, 2, 3]
    assert fake_session.requests[0]['params'] == {'type': 'all', 'per_page': 100}
    assert fake_session.requests[1]['url'] == next_url
    assert fake_session.requests[1]['params'] is None


def test_paginate_is_lazy(client, fake_session, make_response):
    """Test pages are fetched only as items are consumed."""
    fake_session.queue(make_response(200, [{'id': 1}]))

    iterator = client.paginate('/orgs/acme/repos')
    assert fake_session.requests == []

    assert next(iterator) == {'id': 1}
    assert len(fake_session.requests) == 1


def test_paginate_retries_rate_limited_page(client, fake_session, make_response, waits):
    """Test a rate-limited second page is retried transparently."""
    next_url = 'https://api.github.com/orgs/acme/repos?page=2'
    fake_session.queue(
        make_response(200, [{'id': 1}], headers={'Link': f'<{next_url}>; rel="next"'}),
        secondary_limited(make_response, retry_after='1'),
        make_response(200, [{'id': 2}]),
    )

    assert [item['id'] for item in client.paginate('/orgs/acme/repos')] == [1, 2]
    assert waits == [1]
