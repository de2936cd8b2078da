"""Shared async HTTP client with bounded retry for every outbound call."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from wallet_portfolio.core.errors import MalformedResponseError, RateLimitedError, TransportError
from wallet_portfolio.rpc.retry import RetryConfig

logger = logging.getLogger(__name__)


class ResilientHttpClient:
    """
    Async JSON-over-HTTP client used by every data source.

    Wraps a single ``httpx.AsyncClient`` and applies the retry policy to each
    request. Sources receive this client by injection so tests can swap the
    transport or the sleep function.

    Parameters
    ----------
    retry_config : RetryConfig | None
        Retry policy. Uses default policy if None.
    timeout : float
        Request timeout in seconds
    headers : dict[str, str] | None
        Default headers sent with every request
    transport : httpx.AsyncBaseTransport | None
        Custom transport (e.g. ``httpx.MockTransport`` in tests)
    sleep : Callable[[float], Awaitable[None]]
        Coroutine used to wait between attempts

    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retry_config = retry_config or RetryConfig()
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)
        self._sleep = sleep

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Issue a GET request and return the decoded JSON body."""
        return await self.request_json("GET", url, params=params, headers=headers)

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        """Issue a POST request with a JSON body and return the decoded JSON body."""
        return await self.request_json("POST", url, json=payload)

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Make an HTTP request with retry logic.

        Parameters
        ----------
        method : str
            HTTP method
        url : str
            Absolute URL
        params : dict[str, Any] | None
            Query parameters
        json : dict[str, Any] | None
            JSON request body
        headers : dict[str, str] | None
            Extra headers for this request

        Returns
        -------
        Any
            Decoded JSON response

        Raises
        ------
        RateLimitedError
            If the last attempt was answered with HTTP 429
        TransportError
            If the last attempt failed for any other network or status reason
        MalformedResponseError
            If a successful response body is not valid JSON (not retried)

        """
        last_exception: TransportError | None = None
        max_attempts = self.retry_config.max_attempts

        for attempt in range(max_attempts):
            rate_limited = False
            try:
                response = await self.client.request(method, url, params=params, json=json, headers=headers)
            except httpx.HTTPError as e:
                last_exception = TransportError(f"{method} {url} failed: {e}")
            else:
                if response.is_success:
                    return self._decode(response)

                if response.status_code == 429:
                    rate_limited = True
                    last_exception = RateLimitedError(
                        f"{method} {url} rate limited",
                        retry_after=_parse_retry_after(response),
                    )
                else:
                    last_exception = TransportError(
                        f"{method} {url} returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )

            # Don't retry on last attempt
            if attempt == max_attempts - 1:
                break

            delay = self.retry_config.get_delay(attempt, rate_limited=rate_limited)
            logger.debug(
                "%s (attempt %d/%d), retrying in %.2fs",
                last_exception,
                attempt + 1,
                max_attempts,
                delay,
            )
            await self._sleep(delay)

        logger.debug("%s %s failed after %d attempts", method, url, max_attempts)
        raise last_exception  # type: ignore[misc]

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            msg = f"Invalid JSON from {response.request.url}: {e}"
            raise MalformedResponseError(msg) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "ResilientHttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.aclose()


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
