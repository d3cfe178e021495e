"""Tests for the GitHub starring client."""

import json

import httpx
import pytest

from thanks_stars.core.models import RepositoryReference
from thanks_stars.errors import (
    AuthError,
    GitHubApiError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)
from thanks_stars.github import GitHubClient, GitHubConfig
from thanks_stars.utils.http import RetryPolicy

REF = RepositoryReference(owner="Foo", repo="Bar", canonical_key="foo/bar")


def graphql_response(starred: bool | None) -> httpx.Response:
    repository = None if starred is None else {"viewerHasStarred": starred}
    return httpx.Response(200, json={"data": {"repository": repository}})


def make_client(handler, clock, **kwargs) -> GitHubClient:
    return GitHubClient(
        GitHubConfig(token="ghp_test", base_url="https://api.test"),
        transport=httpx.MockTransport(handler),
        sleep=clock.sleep,
        clock=clock.time,
        **kwargs,
    )


class TestGitHubConfig:
    """Tests for GitHubConfig."""

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test token and API base read from the environment."""
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("THANKS_STARS_API_BASE", "http://localhost:8080")

        config = GitHubConfig.from_env()

        assert config.token == "ghp_env"
        assert config.base_url == "http://localhost:8080"

    def test_missing_token(self) -> None:
        """Test that a client cannot be built without a token."""
        with pytest.raises(AuthError):
            GitHubClient(GitHubConfig(token=None))


class TestIsStarred:
    """Tests for GitHubClient.is_starred."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("starred", [True, False])
    async def test_viewer_has_starred(self, clock, starred: bool) -> None:
        """Test that the GraphQL answer is returned as a boolean."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return graphql_response(starred)

        async with make_client(handler, clock) as client:
            assert await client.is_starred(REF) is starred

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/graphql"
        assert request.headers["Authorization"] == "Bearer ghp_test"
        assert request.headers["User-Agent"].startswith("thanks-stars/")
        body = json.loads(request.content)
        assert body["variables"] == {"owner": "Foo", "name": "Bar"}
        assert "viewerHasStarred" in body["query"]

    @pytest.mark.asyncio
    async def test_missing_repository(self, clock) -> None:
        """Test that a GraphQL NOT_FOUND error maps to NotFoundError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "data": {"repository": None},
                    "errors": [{"type": "NOT_FOUND", "message": "Could not resolve to a Repository"}],
                },
            )

        async with make_client(handler, clock) as client:
            with pytest.raises(NotFoundError):
                await client.is_starred(REF)

    @pytest.mark.asyncio
    async def test_null_repository_without_errors(self, clock) -> None:
        """Test that a null repository is treated as not found."""
        async with make_client(lambda request: graphql_response(None), clock) as client:
            with pytest.raises(NotFoundError):
                await client.is_starred(REF)

    @pytest.mark.asyncio
    async def test_bad_credentials(self, clock) -> None:
        """Test that 401 maps to AuthError without retrying."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401, json={"message": "Bad credentials"})

        async with make_client(handler, clock) as client:
            with pytest.raises(AuthError):
                await client.is_starred(REF)

        assert calls == 1

    @pytest.mark.asyncio
    async def test_graphql_rate_limit_is_retried(self, clock) -> None:
        """Test that a RATE_LIMITED GraphQL error is retried."""
        responses = iter(
            [
                httpx.Response(200, json={"errors": [{"type": "RATE_LIMITED", "message": "limit"}]}),
                graphql_response(True),
            ]
        )

        async with make_client(lambda request: next(responses), clock) as client:
            assert await client.is_starred(REF) is True

        assert clock.sleeps == [1.0]


class TestStar:
    """Tests for GitHubClient.star."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [204, 304])
    async def test_star_success(self, clock, status: int) -> None:
        """Test that 204 and 304 are both successful."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(status)

        async with make_client(handler, clock) as client:
            await client.star(REF)

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/user/starred/Foo/Bar"

    @pytest.mark.asyncio
    async def test_star_not_found(self, clock) -> None:
        """Test that 404 maps to NotFoundError."""
        async with make_client(lambda request: httpx.Response(404), clock) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.star(REF)

        assert exc_info.value.repo == "Foo/Bar"

    @pytest.mark.asyncio
    async def test_forbidden_without_rate_limit(self, clock) -> None:
        """Test that a plain 403 is an authorization failure."""
        response = httpx.Response(
            403,
            headers={"X-RateLimit-Remaining": "4999"},
            json={"message": "Resource not accessible by personal access token"},
        )

        async with make_client(lambda request: response, clock) as client:
            with pytest.raises(AuthError) as exc_info:
                await client.star(REF)

        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_retry_after_then_success(self, clock) -> None:
        """Test that a 429 with Retry-After waits, then succeeds."""
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "2"}),
                httpx.Response(204),
            ]
        )

        async with make_client(lambda request: next(responses), clock) as client:
            await client.star(REF)

        assert clock.slept >= 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self, clock) -> None:
        """Test that a persistent secondary rate limit surfaces as RateLimitedError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "You have exceeded a secondary rate limit"})

        async with make_client(
            handler,
            clock,
            retry_policy=RetryPolicy(max_attempts=2),
        ) as client:
            with pytest.raises(RateLimitedError):
                await client.star(REF)

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, clock) -> None:
        """Test that repeated 5xx responses surface as NetworkError."""
        async with make_client(
            lambda request: httpx.Response(502),
            clock,
            retry_policy=RetryPolicy(max_attempts=3),
        ) as client:
            with pytest.raises(NetworkError):
                await client.star(REF)

        assert clock.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unexpected_status(self, clock) -> None:
        """Test that other statuses map to GitHubApiError."""
        async with make_client(lambda request: httpx.Response(422, text="Unprocessable"), clock) as client:
            with pytest.raises(GitHubApiError) as exc_info:
                await client.star(REF)

        assert exc_info.value.status == 422
