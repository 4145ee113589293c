"""Redmine REST API client.

Usage:
    client = RedmineClient(url="https://redmine.example.com", api_key="abc")
    data   = client.get("/issues.json", {"project_id": "my-project"})
    issues = client.get_paginated("/issues.json", params, results_key="issues")
"""

import logging
from typing import Any

import requests

PAGE_SIZE = 100  # Redmine caps ``limit`` at 100 by default

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RedmineClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(RedmineClientError):
    """Raised on HTTP 401/403: invalid credentials or access denied."""


class NotFoundError(RedmineClientError):
    """Raised on HTTP 404: project or resource not found."""


class NetworkError(RedmineClientError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class RedmineClient:
    """Thin wrapper around the Redmine REST API.

    Authentication is by API key when one is given, else by username and
    password, else anonymous.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: int = 30,
    ) -> None:
        self.base_url = url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["Accept"] = "application/json"

        if api_key:
            logger.info("Connecting to Redmine '%s' with an API key", self.base_url)
            self._session.headers["X-Redmine-API-Key"] = api_key
        elif username:
            logger.info("Connecting to Redmine '%s' as user '%s'", self.base_url, username)
            self._session.auth = (username, password or "")
        else:
            logger.info("Connecting to Redmine '%s' without authentication", self.base_url)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """Perform a single GET request and return the parsed JSON response.

        Raises:
            AuthenticationError: HTTP 401 / 403
            NotFoundError:       HTTP 404
            RedmineClientError:  Any other non-2xx response or a non-JSON body
            NetworkError:        Timeout or connection failure
        """
        return self._request(endpoint, params or {})

    def get_paginated(
        self,
        endpoint: str,
        params: dict[str, Any],
        results_key: str,
    ) -> list[dict]:
        """Fetch all pages for an endpoint and return a flat list of results.

        Redmine paginates via ``offset`` and ``limit``; the total result
        count is in ``response["total_count"]``.

        Args:
            endpoint:    API path, e.g. ``/issues.json``
            params:      Query parameters (do not include ``offset`` or ``limit``)
            results_key: Key in the response JSON that holds the results list
        """
        all_results: list[dict] = []

        while True:
            page_params = {**params, "offset": len(all_results), "limit": PAGE_SIZE}
            data = self._request(endpoint, page_params)
            if not isinstance(data, dict):
                raise RedmineClientError(
                    f"Unexpected response from {endpoint}: expected a JSON object"
                )

            results = data.get(results_key, [])
            if not isinstance(results, list):
                raise RedmineClientError(
                    f"Unexpected response from {endpoint}: '{results_key}' is not a list"
                )
            all_results.extend(results)

            total = data.get("total_count", len(all_results))
            if not isinstance(total, int):
                raise RedmineClientError(
                    f"Unexpected response from {endpoint}: 'total_count' is not an integer"
                )
            logger.debug("Fetched %d/%d %s", len(all_results), total, results_key)

            if len(all_results) >= total or not results:
                break

        return all_results

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, endpoint: str, params: dict[str, Any]) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(
                f"Unable to reach Redmine server at '{self.base_url}'"
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}): check the API key or credentials."
            )
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if not response.ok:
            raise RedmineClientError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise RedmineClientError(f"Response from {url} is not valid JSON") from exc
