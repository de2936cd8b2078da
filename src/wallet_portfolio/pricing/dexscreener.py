"""DexScreener price source for tokens the market sources do not cover."""

import asyncio
import logging
from typing import Any

from wallet_portfolio.core.errors import PortfolioError
from wallet_portfolio.core.models import MarketQuote
from wallet_portfolio.rpc.http import ResilientHttpClient

logger = logging.getLogger(__name__)


class DexScreenerPrices:
    """
    DEX aggregator price source, queried by contract address.

    When a token trades in several pairs, the first pair listed for it is
    kept. There is no liquidity ranking.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    chain : str
        DexScreener chain id used to filter pairs (e.g. 'base')
    base_url : str
        DexScreener API base URL

    """

    BATCH_SIZE = 30

    def __init__(
        self,
        http: ResilientHttpClient,
        chain: str = "base",
        base_url: str = "https://api.dexscreener.com",
    ) -> None:
        self.http = http
        self.chain = chain
        self.base_url = base_url.rstrip("/")

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
            Mapping of lowercase address to quote

        """
        unique = list(dict.fromkeys(addr.lower() for addr in addresses))
        if not unique:
            return {}

        batches = [unique[i : i + self.BATCH_SIZE] for i in range(0, len(unique), self.BATCH_SIZE)]
        results = await asyncio.gather(*(self._fetch_batch(batch) for batch in batches))

        quotes: dict[str, MarketQuote] = {}
        for result in results:
            quotes.update(result)
        return quotes

    async def _fetch_batch(self, addresses: list[str]) -> dict[str, MarketQuote]:
        url = f"{self.base_url}/latest/dex/tokens/{','.join(addresses)}"

        try:
            data = await self.http.get_json(url)
        except PortfolioError as e:
            logger.warning("DexScreener request failed: %s", e)
            return {}

        if not isinstance(data, dict):
            logger.warning("DexScreener returned unexpected payload: %r", data)
            return {}

        wanted = set(addresses)
        quotes: dict[str, MarketQuote] = {}
        for pair in data.get("pairs") or []:
            address = self._base_address(pair)
            if address not in wanted or address in quotes:
                continue
            quote = self._parse_pair(pair)
            if quote:
                quotes[address] = quote
        return quotes

    def _base_address(self, pair: Any) -> str | None:
        if not isinstance(pair, dict):
            return None
        chain_id = pair.get("chainId")
        if chain_id and chain_id != self.chain:
            return None
        base_token = pair.get("baseToken") or {}
        address = base_token.get("address")
        return address.lower() if isinstance(address, str) else None

    @staticmethod
    def _parse_pair(pair: dict[str, Any]) -> MarketQuote | None:
        try:
            price = float(pair.get("priceUsd") or 0)
        except (TypeError, ValueError):
            return None
        if price <= 0:
            return None

        change = (pair.get("priceChange") or {}).get("h24")
        try:
            change_24h = float(change) if change is not None else None
        except (TypeError, ValueError):
            change_24h = None

        return MarketQuote(price=price, change_24h=change_24h)
