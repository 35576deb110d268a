"""
HTTP infrastructure layer with retry logic for upstream feed hosts.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with automatic retry and a browser-like
  default User-Agent (several feed hosts reject bare library agents)

This layer separates HTTP concerns (retries, backoff, headers) from
domain logic (feed normalization) in the fetcher and discovery providers.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from signal_digest.config.settings import get_settings
from signal_digest.errors import SignalDigestError

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 1
    max_backoff_seconds: float = 10.0
    base_delay: float = 0.5
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        """429 and the transient 5xx family are retried."""
        return status_code in {429, 500, 502, 503, 504}


class HTTPClientError(SignalDigestError):
    """Request failed with a non-success status or after retries were exhausted."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code


class HTTPClient:
    """
    Async HTTP client with retry logic.

    Features:
    - Exponential backoff with jitter on retryable errors
    - Automatic retry on 429, 5xx status codes and timeout/connect errors
    - Redirects followed (feed hosts move a lot)
    - Context manager for proper resource cleanup

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=10) as client:
            response = await client.get("https://hnrss.org/frontpage")
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 10.0,
        user_agent: str | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Request timeout in seconds.
            user_agent: Overrides the configured default User-Agent.
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent or get_settings().http_user_agent
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform GET request with retry logic.

        Raises:
            HTTPClientError: On non-retryable errors or after retries exhausted
        """
        return await self._request_with_retry("GET", url, params=params, headers=headers)

    async def head(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform HEAD request with retry logic."""
        return await self._request_with_retry("HEAD", url, headers=headers)

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        retries = self.retry_config.max_retries
        attempts = retries + 1
        last_status: int | None = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method, url, params=params or None, headers=headers or None
                )
            except _TRANSIENT_ERRORS as e:
                if attempt == retries:
                    raise HTTPClientError(
                        f"Request failed after {attempts} attempts: {type(e).__name__}",
                        status_code=last_status,
                    ) from e
                await self._back_off(url, attempt, reason=type(e).__name__)
                continue

            status = response.status_code
            if self.retry_config.is_retryable_status(status):
                last_status = status
                if attempt == retries:
                    raise HTTPClientError(
                        f"Request failed with status {status} after {attempts} attempts",
                        status_code=status,
                    )
                await self._back_off(
                    url, attempt, reason=str(status), retry_after=_retry_after(response)
                )
                continue

            if status >= 400:
                raise HTTPClientError(f"Request failed with status {status}", status_code=status)
            return response

        raise HTTPClientError(f"Request failed after {attempts} attempts", status_code=last_status)

    async def _back_off(
        self,
        url: str,
        attempt: int,
        reason: str,
        retry_after: float | None = None,
    ) -> None:
        delay = self.retry_config.calculate_backoff(attempt)
        if retry_after is not None:
            delay = min(max(delay, retry_after), self.retry_config.max_backoff_seconds)
        logger.warning(
            "Retrying feed request",
            url=url,
            reason=reason,
            attempt=attempt + 1,
            backoff_seconds=round(delay, 2),
        )
        await asyncio.sleep(delay)


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds from a numeric ``Retry-After`` header; HTTP-date forms are ignored."""
    value = response.headers.get("Retry-After", "").strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None
