"""Tests for the retry policy and the shared HTTP client."""

import json

import httpx
import pytest

from wallet_portfolio.core.errors import MalformedResponseError, RateLimitedError, TransportError
from wallet_portfolio.rpc.retry import RetryConfig

URL = "https://api.example.test/data"


def test_retry_config_defaults():
    """Test the default policy allows three attempts."""
    config = RetryConfig()

    assert config.max_retries == 2
    assert config.max_attempts == 3


def test_linear_backoff():
    """Test non rate-limited failures back off linearly."""
    config = RetryConfig(backoff=1.0, max_jitter=0.0)

    assert config.get_delay(0) == 1.0
    assert config.get_delay(1) == 2.0
    assert config.get_delay(2) == 3.0


def test_rate_limit_backoff_is_exponential():
    """Test rate-limited failures back off exponentially."""
    config = RetryConfig(backoff=1.0, max_jitter=0.0)

    assert config.get_delay(0, rate_limited=True) == 1.0
    assert config.get_delay(1, rate_limited=True) == 2.0
    assert config.get_delay(3, rate_limited=True) == 8.0


def test_rate_limit_jitter_bounds():
    """Test jitter stays within the configured bound."""
    config = RetryConfig(backoff=1.0, max_jitter=1.0)

    for _ in range(50):
        delay = config.get_delay(1, rate_limited=True)
        assert 2.0 <= delay <= 3.0


def test_delay_capped():
    """Test delays never exceed max_delay."""
    config = RetryConfig(backoff=10.0, max_jitter=0.0, max_delay=15.0)

    assert config.get_delay(5, rate_limited=True) == 15.0
    assert config.get_delay(5) == 15.0


@pytest.mark.asyncio
async def test_rate_limited_then_success(make_http, sleep_recorder):
    """Test a 429 followed by a success returns the successful body."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429)
        return httpx.Response(200, json={"price": 1.5})

    http = make_http(handler)

    data = await http.get_json(URL)

    assert data == {"price": 1.5}
    assert len(calls) == 2
    assert sleep_recorder.delays == [1.0]


@pytest.mark.asyncio
async def test_rate_limited_exhausts_attempts(make_http, sleep_recorder):
    """Test persistent 429s raise after the final attempt."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429, headers={"retry-after": "7"})

    http = make_http(handler)

    with pytest.raises(RateLimitedError) as exc_info:
        await http.get_json(URL)

    assert len(calls) == 3
    assert sleep_recorder.delays == [1.0, 2.0]
    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 7.0


@pytest.mark.asyncio
async def test_server_error_linear_backoff(make_http, sleep_recorder):
    """Test other status failures retry with linear backoff."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    http = make_http(handler)

    with pytest.raises(TransportError) as exc_info:
        await http.get_json(URL)

    assert len(calls) == 3
    assert sleep_recorder.delays == [1.0, 2.0]
    assert exc_info.value.status_code == 503
    assert not isinstance(exc_info.value, RateLimitedError)


@pytest.mark.asyncio
async def test_network_error_retried(make_http, sleep_recorder):
    """Test connection errors are retried and then surfaced."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    http = make_http(handler, max_retries=1)

    with pytest.raises(TransportError):
        await http.get_json(URL)

    assert len(calls) == 2
    assert sleep_recorder.delays == [1.0]


@pytest.mark.asyncio
async def test_malformed_json_not_retried(make_http, sleep_recorder):
    """Test an unparsable body fails immediately."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=b"<html>not json</html>")

    http = make_http(handler)

    with pytest.raises(MalformedResponseError):
        await http.get_json(URL)

    assert len(calls) == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_get_json_params_and_headers(make_http):
    """Test query parameters and per-request headers are sent."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    http = make_http(handler)

    await http.get_json(URL, params={"ids": "a,b"}, headers={"x-cg-demo-api-key": "k"})

    assert seen[0].url.params["ids"] == "a,b"
    assert seen[0].headers["x-cg-demo-api-key"] == "k"


@pytest.mark.asyncio
async def test_post_json(make_http):
    """Test POST sends a JSON body."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"result": "0x1"})

    http = make_http(handler)

    data = await http.post_json(URL, {"method": "eth_blockNumber"})

    assert data == {"result": "0x1"}
    assert seen == [{"method": "eth_blockNumber"}]
