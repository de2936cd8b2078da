"""Pytest configuration and in-memory fakes for wallet-portfolio tests."""

import asyncio
from collections.abc import Callable

import httpx
import pytest

from wallet_portfolio.core.aggregator import PortfolioAggregator
from wallet_portfolio.core.errors import TransportError
from wallet_portfolio.core.models import ExplorerToken, MarketQuote, TokenDescriptor
from wallet_portfolio.rpc.http import ResilientHttpClient
from wallet_portfolio.rpc.retry import RetryConfig

USER = "0x1111111111111111111111111111111111111111"
OTHER_USER = "0x2222222222222222222222222222222222222222"

USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
DEGEN = "0x4ed4e862860bed51a9570b96d8014711ad0aa622"
UNKNOWN_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
UNKNOWN_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
UNKNOWN_C = "0xcccccccccccccccccccccccccccccccccccccccc"


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeChain:
    """Chain client returning fixed balances."""

    def __init__(self, native: float = 0.0, tokens: dict[str, float] | None = None, fail: bool = False) -> None:
        self.native = native
        self.tokens = {address.lower(): balance for address, balance in (tokens or {}).items()}
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def get_native_balance(self, address: str) -> float:
        self.calls.append(("native", address))
        if self.fail:
            raise TransportError("node down")
        return self.native

    async def get_token_balance(self, contract_address: str, address: str, decimals: int) -> float:
        self.calls.append(("token", contract_address))
        if self.fail:
            raise TransportError("node down")
        return self.tokens.get(contract_address.lower(), 0.0)


class FakeExplorer:
    """Explorer client returning a fixed token list."""

    def __init__(self, tokens: list[ExplorerToken] | None = None, fail: bool = False) -> None:
        self.tokens = tokens or []
        self.fail = fail
        self.calls: list[str] = []

    async def list_tokens(self, address: str) -> list[ExplorerToken]:
        self.calls.append(address)
        if self.fail:
            raise TransportError("explorer down")
        return list(self.tokens)


class FakeMarkets:
    """Catalog market source keyed by market id."""

    def __init__(self, quotes: dict[str, MarketQuote] | None = None, fail: bool = False) -> None:
        self.quotes = quotes or {}
        self.fail = fail
        self.calls: list[tuple[list[str], bool]] = []

    async def get_markets(self, market_ids: list[str], *, sparkline: bool = True) -> dict[str, MarketQuote]:
        self.calls.append((list(market_ids), sparkline))
        if self.fail:
            raise TransportError("markets down")
        result = {}
        for market_id in market_ids:
            quote = self.quotes.get(market_id)
            if quote is not None:
                result[market_id] = quote if sparkline else quote.model_copy(update={"history": []})
        return result


class GatedMarkets(FakeMarkets):
    """Market source whose first call blocks until released."""

    def __init__(self, quotes: dict[str, MarketQuote] | None = None) -> None:
        super().__init__(quotes)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self._gated = True

    async def get_markets(self, market_ids: list[str], *, sparkline: bool = True) -> dict[str, MarketQuote]:
        if self._gated:
            self._gated = False
            self.entered.set()
            await self.release.wait()
        return await super().get_markets(market_ids, sparkline=sparkline)


class FakeAddressPrices:
    """Contract-address price source (token price or DEX)."""

    def __init__(self, quotes: dict[str, MarketQuote] | None = None, fail: bool = False) -> None:
        self.quotes = {address.lower(): quote for address, quote in (quotes or {}).items()}
        self.fail = fail
        self.calls: list[list[str]] = []

    async def get_prices(self, addresses: list[str]) -> dict[str, MarketQuote]:
        self.calls.append(list(addresses))
        if self.fail:
            raise TransportError("prices down")
        return {address: self.quotes[address] for address in addresses if address in self.quotes}


class FakeCharts:
    """Per-token chart source."""

    def __init__(self, charts: dict[str, list[float]] | None = None, fail: bool = False) -> None:
        self.charts = charts or {}
        self.fail = fail
        self.calls: list[list[str]] = []

    async def get_charts(self, addresses: list[str]) -> dict[str, list[float]]:
        self.calls.append(list(addresses))
        if self.fail:
            raise TransportError("charts down")
        return {address: self.charts[address] for address in addresses if address in self.charts}


@pytest.fixture()
def catalog() -> list[TokenDescriptor]:
    return [
        TokenDescriptor(id="ethereum", market_id="ethereum", symbol="ETH", name="Ethereum", decimals=18),
        TokenDescriptor(
            id="usd-coin",
            market_id="usd-coin",
            symbol="USDC",
            name="USD Coin",
            address=USDC,
            decimals=6,
            fallback_price=1.0,
        ),
        TokenDescriptor(
            id="degen-base",
            market_id="degen-base",
            symbol="DEGEN",
            name="Degen",
            address=DEGEN,
            decimals=18,
        ),
    ]


@pytest.fixture()
def make_aggregator(catalog: list[TokenDescriptor]) -> Callable[..., PortfolioAggregator]:
    """Build an aggregator from fakes, defaulting every source to empty."""

    def _make(**overrides) -> PortfolioAggregator:
        sources = {
            "chain_client": FakeChain(),
            "explorer_client": FakeExplorer(),
            "markets": FakeMarkets(),
            "token_prices": FakeAddressPrices(),
            "dex_prices": FakeAddressPrices(),
            "charts": FakeCharts(),
        }
        options = {key: overrides.pop(key) for key in ("market_sparkline", "listener") if key in overrides}
        sources.update(overrides)
        return PortfolioAggregator(catalog, **sources, **options)

    return _make


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def make_http(sleep_recorder: SleepRecorder) -> Callable[..., ResilientHttpClient]:
    """Build an HTTP client served by ``httpx.MockTransport``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **retry) -> ResilientHttpClient:
        config = RetryConfig(**{"max_retries": 2, "backoff": 1.0, "max_jitter": 0.0, **retry})
        return ResilientHttpClient(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

    return _make
