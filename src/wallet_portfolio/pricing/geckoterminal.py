"""GeckoTerminal hourly chart source for per-token history backfill."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from wallet_portfolio.core.errors import PortfolioError
from wallet_portfolio.pricing.history import CHART_POINTS, clean_series
from wallet_portfolio.rpc.http import ResilientHttpClient

logger = logging.getLogger(__name__)

# Index of the close price in an OHLCV bar: [timestamp, open, high, low, close, volume]
_CLOSE = 4


class GeckoTerminalCharts:
    """
    Per-token hourly OHLCV chart source.

    The free API allows very few requests per minute, so charts are fetched
    one at a time with a fixed delay, for a limited number of tokens.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    chain : str
        GeckoTerminal network id (e.g. 'base')
    base_url : str
        GeckoTerminal API base URL
    max_tokens : int
        Maximum tokens charted per call to ``get_charts``
    request_delay : float
        Seconds to wait between consecutive requests
    sleep : Callable[[float], Awaitable[None]]
        Coroutine used to wait between requests

    """

    MAX_TOKENS = 10

    def __init__(
        self,
        http: ResilientHttpClient,
        chain: str = "base",
        base_url: str = "https://api.geckoterminal.com/api/v2",
        max_tokens: int = MAX_TOKENS,
        request_delay: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.http = http
        self.chain = chain
        self.base_url = base_url.rstrip("/")
        self.max_tokens = min(max_tokens, self.MAX_TOKENS)
        self.request_delay = request_delay
        self._sleep = sleep

    async def get_charts(self, addresses: list[str]) -> dict[str, list[float]]:
        """
        Fetch hourly close-price series for the first ``max_tokens`` addresses.

        Parameters
        ----------
        addresses : list[str]
            Token contract addresses in priority order

        Returns
        -------
        dict[str, list[float]]
            Mapping of lowercase address to chronological close prices;
            tokens without a usable chart are absent

        """
        charts: dict[str, list[float]] = {}
        targets = list(dict.fromkeys(addr.lower() for addr in addresses))[: self.max_tokens]

        for i, address in enumerate(targets):
            if i > 0 and self.request_delay > 0:
                await self._sleep(self.request_delay)

            series = await self.get_hourly_closes(address)
            if series:
                charts[address] = series

        return charts

    async def get_hourly_closes(self, address: str) -> list[float]:
        """
        Fetch the last 24 hourly close prices of a token.

        Parameters
        ----------
        address : str
            Token contract address

        Returns
        -------
        list[float]
            Close prices, oldest first (empty on failure)

        """
        url = f"{self.base_url}/networks/{self.chain}/tokens/{address}/ohlcv/hour"

        try:
            data = await self.http.get_json(url, params={"limit": CHART_POINTS})
        except PortfolioError as e:
            logger.warning("GeckoTerminal chart request failed for %s: %s", address, e)
            return []

        try:
            bars = data["data"]["attributes"]["ohlcv_list"]
        except (KeyError, TypeError):
            logger.warning("GeckoTerminal returned unexpected payload for %s", address)
            return []

        if not isinstance(bars, list):
            return []

        closes = [bar[_CLOSE] for bar in bars if isinstance(bar, list | tuple) and len(bar) > _CLOSE]
        # Bars arrive newest first
        closes.reverse()
        return clean_series(closes)
