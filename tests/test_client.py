"""Tests for reqtrace/client.py"""

import pytest
import requests

from reqtrace.client import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RedmineClient,
    RedmineClientError,
)

BASE = "https://redmine.example.com"


@pytest.fixture
def client() -> RedmineClient:
    return RedmineClient(url=BASE, api_key="key_test")


# ---------------------------------------------------------------------------
# get(): happy path and authentication
# ---------------------------------------------------------------------------

def test_get_returns_parsed_json(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", json={"issues": [], "total_count": 0})
    data = client.get("/issues.json")
    assert data == {"issues": [], "total_count": 0}


def test_trailing_slash_stripped_from_base_url(requests_mock):
    requests_mock.get(f"{BASE}/issues.json", json={})
    RedmineClient(url=BASE + "/").get("/issues.json")
    assert requests_mock.last_request.url.startswith(f"{BASE}/issues.json")


def test_api_key_sent_as_header(client, requests_mock):
    adapter = requests_mock.get(f"{BASE}/issues.json", json={})
    client.get("/issues.json")
    assert adapter.last_request.headers["X-Redmine-API-Key"] == "key_test"
    assert "Authorization" not in adapter.last_request.headers


def test_username_password_sent_as_basic_auth(requests_mock):
    adapter = requests_mock.get(f"{BASE}/issues.json", json={})
    RedmineClient(url=BASE, username="alice", password="secret").get("/issues.json")
    assert adapter.last_request.headers["Authorization"].startswith("Basic ")
    assert "X-Redmine-API-Key" not in adapter.last_request.headers


def test_api_key_wins_over_username(requests_mock):
    adapter = requests_mock.get(f"{BASE}/issues.json", json={})
    RedmineClient(url=BASE, api_key="k", username="alice", password="p").get("/issues.json")
    assert adapter.last_request.headers["X-Redmine-API-Key"] == "k"
    assert "Authorization" not in adapter.last_request.headers


def test_anonymous_sends_no_credentials(requests_mock):
    adapter = requests_mock.get(f"{BASE}/issues.json", json={})
    RedmineClient(url=BASE).get("/issues.json")
    assert "Authorization" not in adapter.last_request.headers
    assert "X-Redmine-API-Key" not in adapter.last_request.headers


# ---------------------------------------------------------------------------
# get(): HTTP error codes
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", [401, 403])
def test_get_auth_failure_raises_authentication_error(client, requests_mock, status):
    requests_mock.get(f"{BASE}/issues.json", status_code=status)
    with pytest.raises(AuthenticationError):
        client.get("/issues.json")


def test_get_404_raises_not_found_error(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", status_code=404)
    with pytest.raises(NotFoundError):
        client.get("/issues.json")


def test_get_500_raises_redmine_client_error(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", status_code=500, text="Internal Server Error")
    with pytest.raises(RedmineClientError, match="500"):
        client.get("/issues.json")


def test_get_non_json_body_raises_redmine_client_error(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", text="<html>login</html>")
    with pytest.raises(RedmineClientError, match="not valid JSON"):
        client.get("/issues.json")


# ---------------------------------------------------------------------------
# get(): network errors
# ---------------------------------------------------------------------------

def test_get_timeout_raises_network_error(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", exc=requests.exceptions.Timeout)
    with pytest.raises(NetworkError, match="timed out"):
        client.get("/issues.json")


def test_get_connection_error_raises_network_error(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", exc=requests.exceptions.ConnectionError)
    with pytest.raises(NetworkError, match="Unable to reach"):
        client.get("/issues.json")


# ---------------------------------------------------------------------------
# get_paginated(): pagination logic
# ---------------------------------------------------------------------------

def _page(items: list, total: int, offset: int) -> dict:
    return {"issues": items, "total_count": total, "offset": offset, "limit": 100}


def test_paginated_single_page(client, requests_mock):
    requests_mock.get(
        f"{BASE}/issues.json",
        json=_page([{"id": 1}, {"id": 2}], total=2, offset=0),
    )
    results = client.get_paginated("/issues.json", {}, results_key="issues")
    assert results == [{"id": 1}, {"id": 2}]


def test_paginated_multiple_pages(client, requests_mock):
    responses = [
        {"json": _page([{"id": i} for i in range(1, 101)], total=150, offset=0)},
        {"json": _page([{"id": i} for i in range(101, 151)], total=150, offset=100)},
    ]
    adapter = requests_mock.get(f"{BASE}/issues.json", responses)
    results = client.get_paginated("/issues.json", {"project_id": "p"}, results_key="issues")
    assert len(results) == 150
    assert results[0]["id"] == 1
    assert results[-1]["id"] == 150
    assert adapter.request_history[1].qs["offset"] == ["100"]
    assert adapter.request_history[1].qs["project_id"] == ["p"]


@pytest.mark.parametrize("body, message", [
    ([], "JSON object"),
    ({"issues": {"id": 1}, "total_count": 1}, "not a list"),
    ({"issues": [{"id": 1}], "total_count": "many"}, "not an integer"),
])
def test_paginated_malformed_body_raises_redmine_client_error(client, requests_mock, body, message):
    requests_mock.get(f"{BASE}/issues.json", json=body)
    with pytest.raises(RedmineClientError, match=message):
        client.get_paginated("/issues.json", {}, results_key="issues")


def test_paginated_stops_on_empty_page(client, requests_mock):
    requests_mock.get(f"{BASE}/issues.json", json=_page([], total=5, offset=0))
    results = client.get_paginated("/issues.json", {}, results_key="issues")
    assert results == []
    assert requests_mock.call_count == 1
