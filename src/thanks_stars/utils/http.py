"""Async HTTP client with shared rate limiting and retries."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from thanks_stars.errors import GitHubError, NetworkError
from thanks_stars.utils.logging import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]
ErrorMapper = Callable[[httpx.Response], GitHubError | None]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings applied uniformly to every request.

    Attributes:
        max_attempts: Total attempts per request, including the first one.
        base_delay: Delay in seconds after the first failed attempt.
        max_delay: Upper bound for the computed backoff delay.
        factor: Multiplier applied per failed attempt.
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 60.0
    factor: float = 2.0

    def backoff(self, attempt: int, minimum: float | None = None) -> float:
        """Compute the wait before the next attempt.

        Args:
            attempt: Zero-based index of the attempt that just failed.
            minimum: Server-provided wait that must be honored.

        Returns:
            Delay in seconds.
        """
        delay = min(self.base_delay * (self.factor**attempt), self.max_delay)
        if minimum is not None and minimum > delay:
            delay = minimum
        return delay


def server_wait_seconds(headers: Mapping[str, str], now: float | None = None) -> float | None:
    """Extract the wait GitHub asks for from response headers.

    ``Retry-After`` (seconds or HTTP date) wins; otherwise an exhausted
    ``X-RateLimit-Remaining`` is paired with ``X-RateLimit-Reset``.

    Args:
        headers: Response headers.
        now: Current epoch time (defaults to ``time.time()``).

    Returns:
        Seconds to wait, or None when the response carries no hint.
    """
    if now is None:
        now = time.time()

    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            try:
                return max(parsedate_to_datetime(retry_after).timestamp() - now, 0.0)
            except (TypeError, ValueError):
                logger.debug("Ignoring unparsable Retry-After header: %s", retry_after)

    if headers.get("x-ratelimit-remaining") == "0":
        reset = headers.get("x-ratelimit-reset")
        if reset:
            try:
                return max(float(reset) - now, 0.0)
            except ValueError:
                return None

    return None


class GitHubRateLimiter:
    """Quota tracker shared by every worker of a run.

    GitHub reports the remaining quota and its reset time on every response,
    separately per resource (``core`` for REST, ``graphql`` for GraphQL).
    All state changes go through one lock, so when a quota is exhausted or the
    server asks for a pause, every worker waits on the same deadline.
    """

    def __init__(
        self,
        reserve: int = 0,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            reserve: Requests kept in hand; workers pause once the remaining
                quota drops to this value.
            clock: Epoch-seconds clock.
            sleep: Coroutine used to wait.
        """
        self.reserve = reserve
        self._clock = clock
        self._sleep = sleep
        self._remaining: dict[str, int] = {}
        self._reset_at: dict[str, float] = {}
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    def remaining(self, resource: str = "core") -> int | None:
        """Last known remaining quota for a resource."""
        return self._remaining.get(resource)

    def _wait_time(self, resource: str) -> float:
        now = self._clock()
        wait = max(self._blocked_until - now, 0.0)

        remaining = self._remaining.get(resource)
        reset_at = self._reset_at.get(resource)
        if remaining is not None and remaining <= self.reserve and reset_at is not None:
            wait = max(wait, reset_at - now)

        return wait

    async def acquire(self, resource: str = "core") -> None:
        """Wait until a request against ``resource`` may be sent."""
        async with self._lock:
            wait = self._wait_time(resource)
            if wait > 0:
                logger.warning("GitHub rate limit reached, pausing requests for %.1f seconds", wait)
                await self._sleep(wait)
                remaining = self._remaining.get(resource)
                if remaining is not None and remaining <= self.reserve:
                    del self._remaining[resource]

            if resource in self._remaining:
                self._remaining[resource] -= 1

    async def update(self, headers: Mapping[str, str], resource: str | None = None) -> None:
        """Record quota information from a response."""
        resource = headers.get("x-ratelimit-resource") or resource or "core"
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")

        async with self._lock:
            try:
                if remaining is not None:
                    self._remaining[resource] = int(remaining)
                if reset is not None:
                    self._reset_at[resource] = float(reset)
            except ValueError:
                logger.debug("Ignoring malformed rate limit headers: %s / %s", remaining, reset)

    async def block_for(self, seconds: float) -> None:
        """Pause every worker for at least ``seconds``."""
        async with self._lock:
            self._blocked_until = max(self._blocked_until, self._clock() + seconds)


class AsyncHttpClient:
    """Async HTTP client with retry and rate limiting support.

    Features:
    - Configurable timeout
    - Exponential backoff retries driven by a RetryPolicy
    - Shared rate limiting
    - Pluggable mapping of responses to typed errors
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: GitHubRateLimiter | None = None,
        headers: dict[str, str] | None = None,
        error_mapper: ErrorMapper | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL for requests.
            timeout: Per-request timeout in seconds.
            retry_policy: Backoff settings (defaults to RetryPolicy()).
            rate_limiter: Optional shared rate limiter.
            headers: Default headers for all requests.
            error_mapper: Turns a response into an error, or None on success.
            transport: Optional httpx transport (used by tests).
            sleep: Coroutine used for backoff waits.
        """
        self.base_url = base_url
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter
        self.default_headers = headers or {}
        self._error_mapper = error_mapper
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncHttpClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self.default_headers,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying httpx client."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async with statement.")
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        resource: str = "core",
        error_mapper: ErrorMapper | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method.
            url: Request URL.
            resource: Rate limit resource the request counts against.
            error_mapper: Per-request override of the client's error mapper.
            **kwargs: Additional arguments for httpx.

        Returns:
            HTTP response accepted by the error mapper.

        Raises:
            GitHubError: Mapped error; retryable errors are raised once
                the retry policy is exhausted.
        """
        policy = self.retry_policy
        mapper = error_mapper or self._error_mapper
        last_error: GitHubError | None = None

        for attempt in range(policy.max_attempts):
            if self.rate_limiter:
                await self.rate_limiter.acquire(resource)

            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: GitHubError | None = NetworkError(original_error=e)
            else:
                if self.rate_limiter:
                    await self.rate_limiter.update(response.headers, resource)
                error = mapper(response) if mapper else None
                if error is None:
                    return response

            if not error.retryable:
                raise error

            last_error = error
            if attempt + 1 >= policy.max_attempts:
                break

            retry_after = getattr(error, "retry_after", None)
            if retry_after and self.rate_limiter:
                await self.rate_limiter.block_for(retry_after)

            delay = policy.backoff(attempt, minimum=retry_after)
            logger.warning(
                "%s %s failed (attempt %d/%d): %s. Retrying in %.1f seconds",
                method,
                url,
                attempt + 1,
                policy.max_attempts,
                error.message,
                delay,
            )
            await self._sleep(delay)

        if last_error:
            raise last_error
        raise RuntimeError("Unexpected retry loop exit")
