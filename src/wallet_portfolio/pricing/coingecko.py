"""CoinGecko market data: catalog batch markets and contract-address prices."""

import asyncio
import logging
from typing import Any

from wallet_portfolio.core.errors import PortfolioError
from wallet_portfolio.core.models import MarketQuote
from wallet_portfolio.pricing.history import clean_series
from wallet_portfolio.rpc.http import ResilientHttpClient

logger = logging.getLogger(__name__)


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _auth_headers(api_key: str | None) -> dict[str, str] | None:
    return {"x-cg-demo-api-key": api_key} if api_key else None


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class CoinGeckoMarkets:
    """
    Catalog market source: batch quotes by curated market id.

    Highest-quality source. Returns price, 24h change and, when requested,
    the 7-day hourly sparkline trimmed to the last 24 points.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    base_url : str
        CoinGecko API base URL
    api_key : str | None
        Optional demo API key

    """

    # coins/markets page size limit
    BATCH_SIZE = 250

    def __init__(
        self,
        http: ResilientHttpClient,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: str | None = None,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.headers = _auth_headers(api_key)

    async def get_markets(self, market_ids: list[str], *, sparkline: bool = True) -> dict[str, MarketQuote]:
        """
        Fetch quotes for multiple market ids.

        Parameters
        ----------
        market_ids : list[str]
            Curated market-data identifiers
        sparkline : bool
            Whether to request the hourly history series

        Returns
        -------
        dict[str, MarketQuote]
            Mapping of market id to quote; ids without data are absent

        """
        ids = list(dict.fromkeys(market_ids))
        if not ids:
            return {}

        batches = await asyncio.gather(
            *(self._fetch_batch(batch, sparkline) for batch in _chunks(ids, self.BATCH_SIZE))
        )

        quotes: dict[str, MarketQuote] = {}
        for batch in batches:
            quotes.update(batch)
        return quotes

    async def _fetch_batch(self, ids: list[str], sparkline: bool) -> dict[str, MarketQuote]:
        params = {
            "vs_currency": "usd",
            "ids": ",".join(ids),
            "sparkline": "true" if sparkline else "false",
            "per_page": len(ids),
        }

        try:
            data = await self.http.get_json(f"{self.base_url}/coins/markets", params=params, headers=self.headers)
        except PortfolioError as e:
            logger.warning("CoinGecko markets request failed: %s", e)
            return {}

        if not isinstance(data, list):
            logger.warning("CoinGecko markets returned unexpected payload: %r", data)
            return {}

        quotes = {}
        for coin in data:
            if not isinstance(coin, dict) or not coin.get("id"):
                continue
            sparkline_data = coin.get("sparkline_in_7d") or {}
            quotes[coin["id"]] = MarketQuote(
                price=_as_float(coin.get("current_price")) or 0.0,
                change_24h=_as_float(coin.get("price_change_percentage_24h")),
                history=clean_series(sparkline_data.get("price")) if sparkline else [],
            )
        return quotes


class CoinGeckoTokenPrices:
    """
    Contract-address price source.

    Works for any token on the chain, catalog or not. Returns price and 24h
    change but no history. Addresses are sent in batches to keep URLs short.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    chain : str
        CoinGecko asset platform id (e.g. 'base')
    base_url : str
        CoinGecko API base URL
    batch_size : int
        Maximum addresses per request
    api_key : str | None
        Optional demo API key

    """

    BATCH_SIZE = 20

    def __init__(
        self,
        http: ResilientHttpClient,
        chain: str = "base",
        base_url: str = "https://api.coingecko.com/api/v3",
        batch_size: int = BATCH_SIZE,
        api_key: str | None = None,
    ) -> None:
        self.http = http
        self.chain = chain
        self.base_url = base_url.rstrip("/")
        self.batch_size = min(batch_size, self.BATCH_SIZE)
        self.headers = _auth_headers(api_key)

    async def get_prices(self, addresses: list[str]) -> dict[str, MarketQuote]:
        """
        Fetch quotes for multiple contract addresses.

        Parameters
        ----------
        addresses : list[str]
            Token contract addresses

        Returns
        -------
        dict[str, MarketQuote]
            Mapping of lowercase address to quote; addresses without data
            are absent

        """
        unique = list(dict.fromkeys(addr.lower() for addr in addresses))
        if not unique:
            return {}

        batches = await asyncio.gather(*(self._fetch_batch(batch) for batch in _chunks(unique, self.batch_size)))

        quotes: dict[str, MarketQuote] = {}
        for batch in batches:
            quotes.update(batch)
        return quotes

    async def _fetch_batch(self, addresses: list[str]) -> dict[str, MarketQuote]:
        params = {
            "contract_addresses": ",".join(addresses),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        url = f"{self.base_url}/simple/token_price/{self.chain}"

        try:
            data = await self.http.get_json(url, params=params, headers=self.headers)
        except PortfolioError as e:
            logger.warning("CoinGecko token price request failed: %s", e)
            return {}

        if not isinstance(data, dict):
            logger.warning("CoinGecko token price returned unexpected payload: %r", data)
            return {}

        quotes = {}
        for address, info in data.items():
            if not isinstance(info, dict):
                continue
            price = _as_float(info.get("usd"))
            if not price:
                continue
            quotes[address.lower()] = MarketQuote(
                price=price,
                change_24h=_as_float(info.get("usd_24h_change")),
            )
        return quotes
