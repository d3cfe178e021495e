"""GitHub API client for starring operations."""

import asyncio
import os
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Optional

import httpx

from thanks_stars import __version__
from thanks_stars.core.models import RepositoryReference
from thanks_stars.errors import (
    AuthError,
    GitHubApiError,
    GitHubError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)
from thanks_stars.utils.http import (
    AsyncHttpClient,
    Clock,
    GitHubRateLimiter,
    RetryPolicy,
    Sleep,
    server_wait_seconds,
)
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_BASE_ENV = "THANKS_STARS_API_BASE"

VIEWER_HAS_STARRED_QUERY = """
query($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    viewerHasStarred
  }
}
"""


@dataclass
class GitHubConfig:
    """Configuration for GitHub client."""

    token: Optional[str] = None
    base_url: str = DEFAULT_API_URL
    timeout: float = AsyncHttpClient.DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "GitHubConfig":
        """Create config from environment variables."""
        return cls(
            token=os.environ.get("GITHUB_TOKEN"),
            base_url=os.environ.get(API_BASE_ENV, DEFAULT_API_URL),
        )


def _is_rate_limited(response: httpx.Response) -> bool:
    """Detect primary and secondary rate limiting on a 403/429 response."""
    if response.status_code == 429:
        return True
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    if "retry-after" in response.headers:
        return True
    return "rate limit" in response.text.lower()


class GitHubClient:
    """Client for the GitHub starring API.

    ``is_starred`` asks GraphQL for ``viewerHasStarred`` so that "not starred"
    is an ordinary ``False`` rather than a 404; ``star`` uses the REST
    ``PUT /user/starred/{owner}/{repo}`` endpoint.
    """

    def __init__(
        self,
        config: Optional[GitHubConfig] = None,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: GitHubRateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.time,
    ):
        """Initialize the GitHub client.

        Args:
            config: GitHub configuration. If None, reads from environment.
            retry_policy: Backoff settings for rate limits and network errors.
            rate_limiter: Limiter shared with other clients of the same run.
            transport: Optional httpx transport (used by tests).
            sleep: Coroutine used for waits.
            clock: Epoch-seconds clock.
        """
        self._config = config or GitHubConfig.from_env()
        if not self._config.token:
            raise AuthError(message="No GitHub token configured")

        self._clock = clock
        self.rate_limiter = rate_limiter or GitHubRateLimiter(clock=clock, sleep=sleep)
        self._http = AsyncHttpClient(
            base_url=self._config.base_url.rstrip("/"),
            timeout=self._config.timeout,
            retry_policy=retry_policy,
            rate_limiter=self.rate_limiter,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._config.token}",
                "User-Agent": f"thanks-stars/{__version__}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            transport=transport,
            sleep=sleep,
        )

    async def __aenter__(self) -> "GitHubClient":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    async def is_starred(self, ref: RepositoryReference) -> bool:
        """Check whether the authenticated user has starred a repository.

        Args:
            ref: Repository to check.

        Returns:
            True if the repository is already starred.

        Raises:
            AuthError: Token rejected.
            NotFoundError: Repository missing or unexpected 404.
            RateLimitedError: Rate limit persisted through all retries.
            NetworkError: Transport failure persisted through all retries.
        """
        response = await self._http.request(
            "POST",
            "/graphql",
            resource="graphql",
            json={
                "query": VIEWER_HAS_STARRED_QUERY,
                "variables": {"owner": ref.owner, "name": ref.repo},
            },
            error_mapper=partial(self._graphql_error, repo=ref.full_name),
        )
        repository = response.json()["data"]["repository"]
        starred = bool(repository.get("viewerHasStarred"))
        logger.debug("%s starred: %s", ref.full_name, starred)
        return starred

    async def star(self, ref: RepositoryReference) -> None:
        """Star a repository for the authenticated user.

        Args:
            ref: Repository to star.

        Raises:
            AuthError: Token rejected.
            NotFoundError: Repository does not exist.
            RateLimitedError: Rate limit persisted through all retries.
            NetworkError: Transport failure persisted through all retries.
            GitHubApiError: Any other unexpected status.
        """
        await self._http.request(
            "PUT",
            f"/user/starred/{ref.owner}/{ref.repo}",
            resource="core",
            error_mapper=partial(self._rest_error, repo=ref.full_name),
        )
        logger.debug("Starred %s", ref.full_name)

    def _rest_error(self, response: httpx.Response, repo: str) -> GitHubError | None:
        """Map a REST response to an error, or None when it succeeded."""
        status = response.status_code
        if status < 300 or status == 304:
            return None
        if status == 401:
            return AuthError(status)
        if status in (403, 429):
            if _is_rate_limited(response):
                return RateLimitedError(server_wait_seconds(response.headers, self._clock()))
            return AuthError(status)
        if status == 404:
            return NotFoundError(repo)
        if status >= 500:
            return NetworkError(message=f"GitHub returned HTTP {status}")
        return GitHubApiError(status, response.text)

    def _graphql_error(self, response: httpx.Response, repo: str) -> GitHubError | None:
        """Map a GraphQL response to an error, or None when it succeeded."""
        if response.status_code == 404:
            return NotFoundError(
                repo,
                message=f"GitHub GraphQL endpoint returned 404 while checking '{repo}'",
                hint="Check the API base URL (THANKS_STARS_API_BASE).",
            )

        error = self._rest_error(response, repo)
        if error is not None:
            return error

        try:
            payload = response.json()
        except ValueError:
            return GitHubApiError(response.status_code, response.text, message="GitHub returned invalid JSON")

        errors = payload.get("errors") or []
        for item in errors:
            error_type = item.get("type")
            if error_type == "RATE_LIMITED":
                return RateLimitedError(server_wait_seconds(response.headers, self._clock()))
            if error_type == "NOT_FOUND":
                return NotFoundError(repo)

        data = payload.get("data") or {}
        if errors or data.get("repository") is None:
            if not errors:
                return NotFoundError(repo)
            messages = "; ".join(str(item.get("message", "")) for item in errors)
            return GitHubApiError(response.status_code, messages)

        return None
