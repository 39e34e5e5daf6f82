"""Tests for the shared retrying HTTP client."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.core import http_client  # noqa: E402
from newsdesk.core.http_client import RetryableHTTPClient  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, headers=None):
        self.status_code = status_code
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Replays queued responses; queued exceptions are raised instead."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.headers = {}
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff sleeps; the clock jumps ahead so rate limiting never waits."""
    recorded = []
    clock = {"now": 1000.0}

    def fake_time():
        clock["now"] += 100.0
        return clock["now"]

    monkeypatch.setattr(http_client.time, "time", fake_time)
    monkeypatch.setattr(http_client.time, "sleep", recorded.append)
    return recorded


def test_success_needs_a_single_attempt(sleeps):
    session = FakeSession(FakeResponse(200))
    client = RetryableHTTPClient(session=session, user_agent="Mozilla/5.0 test")

    response = client.get_with_retry("https://diario.example.com/rss", params={"page": 2})

    assert response.status_code == 200
    [(method, url, kwargs)] = session.calls
    assert (method, url) == ("GET", "https://diario.example.com/rss")
    assert kwargs["params"] == {"page": 2}
    assert kwargs["timeout"] == 10
    assert session.headers["User-Agent"] == "Mozilla/5.0 test"
    assert sleeps == []


def test_network_errors_back_off_then_succeed(sleeps):
    session = FakeSession(requests.ConnectionError("reset"), requests.Timeout("slow"), FakeResponse(200))

    response = RetryableHTTPClient(session=session).post_with_retry("https://api.example/x", json={"a": 1})

    assert response.status_code == 200
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_network_errors_raise_after_last_attempt(sleeps):
    session = FakeSession(*[requests.ConnectionError("down")] * 3)

    with pytest.raises(requests.ConnectionError):
        RetryableHTTPClient(session=session).get_with_retry("https://api.example/x")

    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_server_errors_are_retried(sleeps):
    session = FakeSession(FakeResponse(503), FakeResponse(502), FakeResponse(200))

    response = RetryableHTTPClient(session=session).get_with_retry("https://api.example/x")

    assert response.status_code == 200
    assert sleeps == [1.0, 2.0]


def test_retry_after_header_is_respected(sleeps):
    session = FakeSession(
        FakeResponse(429, {"Retry-After": "5"}),
        FakeResponse(429, {"Retry-After": "0"}),
        FakeResponse(200),
    )

    RetryableHTTPClient(session=session).get_with_retry("https://api.example/x")

    assert sleeps == [5.0, 1.0]


def test_client_errors_are_not_retried(sleeps):
    session = FakeSession(FakeResponse(404))

    with pytest.raises(requests.HTTPError):
        RetryableHTTPClient(session=session).get_with_retry("https://api.example/missing")

    assert len(session.calls) == 1
    assert sleeps == []


def test_error_responses_returned_without_raise_for_status(sleeps):
    not_found = RetryableHTTPClient(session=FakeSession(FakeResponse(404))).get_with_retry(
        "https://api.example/missing", raise_for_status=False)
    assert not_found.status_code == 404

    session = FakeSession(FakeResponse(503), FakeResponse(503), FakeResponse(500))
    last = RetryableHTTPClient(session=session).get_with_retry("https://api.example/x", raise_for_status=False)

    assert last.status_code == 500
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_single_attempt_client_does_not_retry(sleeps):
    session = FakeSession(FakeResponse(503))
    client = RetryableHTTPClient(session=session, max_retries=0)

    with pytest.raises(requests.HTTPError):
        client.get_with_retry("https://api.example/x")

    assert client.max_retries == 1
    assert len(session.calls) == 1
    assert sleeps == []


def test_context_manager_closes_session():
    session = FakeSession()
    with RetryableHTTPClient(session=session, timeout=3) as client:
        assert client.timeout == 3
    assert session.closed is True
