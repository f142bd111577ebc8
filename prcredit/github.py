"""
GitHub REST API client for prcredit.

Fetches the commits of a pull request one page at a time.
Uses GITHUB_TOKEN environment variable for authentication.

Errors are mapped onto a small taxonomy so the traversal can decide what is
retryable:
- PRNotFoundError: the PR does not exist in the repository (404)
- RateLimitError: quota exhausted, carries the server's retry-after hint
- TransientNetworkError: connection failures, timeouts and 5xx responses
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any

import requests


GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_RATE_LIMIT_WAIT = 60.0
UNKNOWN_AUTHOR = "unknown"


@dataclass(frozen=True)
class Commit:
    """A commit belonging to a pull request."""
    sha: str
    author_login: str
    message: str


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PRNotFoundError(GitHubAPIError):
    """Pull request does not exist in the repository."""
    def __init__(self, owner: str, repo: str, pr: int):
        super().__init__(f"Pull request #{pr} not found in {owner}/{repo}", 404)
        self.pr = pr


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, retry_after: float, status_code: int = 403):
        super().__init__(
            f"GitHub API rate limit exceeded (retry after {retry_after:.0f}s)",
            status_code,
        )
        self.retry_after = retry_after


class TransientNetworkError(GitHubAPIError):
    """Connectivity failure or server-side error worth retrying."""


class GitHubClient:
    """GitHub REST API client for pull request commit history."""

    def __init__(
        self,
        token: str | None = None,
        api_base: str = GITHUB_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

        if self.token:
            self.session.headers["Authorization"] = f"token {self.token}"

        self.session.headers["Accept"] = "application/vnd.github.v3+json"
        self.session.headers["User-Agent"] = "prcredit/0.1.0"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Make a single API request, translating failures into GitHubAPIError."""
        url = f"{self.api_base}{endpoint}"

        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientNetworkError(f"Request failed: {e}") from e

        if response.status_code in (403, 429):
            retry_after = _retry_after(response)
            if retry_after is not None:
                raise RateLimitError(retry_after, response.status_code)

        if response.status_code >= 500:
            raise TransientNetworkError(
                f"GitHub API error: {response.status_code} - {response.text}",
                response.status_code,
            )

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {response.text}",
                response.status_code,
            )

        return response

    def fetch_commits_page(self, owner: str, repo: str, pr: int, page: int) -> list[Commit]:
        """
        Fetch one page of commits for a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr: Pull request number
            page: 1-based page number

        Returns:
            Commits in server order; an empty list marks the end of history
        """
        endpoint = f"/repos/{owner}/{repo}/pulls/{pr}/commits"
        params = {"per_page": DEFAULT_PER_PAGE, "page": page}

        try:
            response = self._request("GET", endpoint, params=params)
        except GitHubAPIError as e:
            if e.status_code == 404:
                raise PRNotFoundError(owner, repo, pr) from e
            raise

        return [self._parse_commit(item) for item in response.json()]

    def _parse_commit(self, data: dict[str, Any]) -> Commit:
        """Parse raw commit data into a Commit object."""
        author = data.get("author") or {}
        details = data.get("commit") or {}

        return Commit(
            sha=data.get("sha", ""),
            author_login=author.get("login") or UNKNOWN_AUTHOR,
            message=details.get("message") or "",
        )

    def check_rate_limit(self) -> dict[str, Any]:
        """Check current rate limit status."""
        response = self._request("GET", "/rate_limit")
        return response.json()


def _retry_after(response: requests.Response) -> float | None:
    """
    Work out how long to wait from a 403/429 response.

    Returns None when the response is a plain permission error rather than
    a rate limit.
    """
    header = response.headers.get("Retry-After")
    if header:
        try:
            return max(float(header), 0.0)
        except ValueError:
            return DEFAULT_RATE_LIMIT_WAIT

    if response.headers.get("X-RateLimit-Remaining") == "0":
        reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
        if reset_time:
            return max(reset_time - time.time(), 0.0)
        return DEFAULT_RATE_LIMIT_WAIT

    if response.status_code == 429:
        return DEFAULT_RATE_LIMIT_WAIT

    return None
