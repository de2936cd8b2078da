"""Portfolio aggregator orchestrating balances, prices, and charts in stages."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

from wallet_portfolio.core.account import truncate_address
from wallet_portfolio.core.errors import SnapshotLoadError
from wallet_portfolio.core.models import (
    NATIVE_ADDRESS,
    ExplorerToken,
    Holding,
    HoldingPatch,
    HistorySource,
    LoadStage,
    MarketQuote,
    PortfolioSnapshot,
    TokenDescriptor,
)
from wallet_portfolio.core.store import SnapshotListener, SnapshotStore
from wallet_portfolio.data import Settings, load_catalog, load_settings
from wallet_portfolio.integrations import ExplorerClient
from wallet_portfolio.pricing import (
    CoinGeckoMarkets,
    CoinGeckoTokenPrices,
    DexScreenerPrices,
    GeckoTerminalCharts,
    synthesize_history,
)
from wallet_portfolio.rpc import ChainClient, ResilientHttpClient

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Failed to load data. Please try again."


class PortfolioAggregator:
    """
    Builds a portfolio snapshot for an address in three published stages.

    Workflow:
    1. Balances: native balance, catalog ``balanceOf`` calls and the
       explorer token list, merged into holdings with zero prices
    2. Prices: catalog market source, contract-address source, then the DEX
       source for whatever is still unpriced; holdings sorted by value
    3. Charts: real price history backfilled for holdings that only have a
       synthetic series

    Each stage publishes a snapshot through the store. Stage 2 and 3 failures
    are logged and leave the previous state in place; only a Stage 1 failure
    produces a user-facing error.

    Parameters
    ----------
    catalog : Iterable[TokenDescriptor]
        Static token catalog
    chain_client : Any
        Balance source (``ChainClient``)
    explorer_client : Any
        Token discovery source (``ExplorerClient``)
    markets : Any
        Catalog market source (``CoinGeckoMarkets``)
    token_prices : Any
        Contract-address price source (``CoinGeckoTokenPrices``)
    dex_prices : Any
        DEX price source (``DexScreenerPrices``)
    charts : Any
        Per-token chart source (``GeckoTerminalCharts``)
    market_sparkline : bool
        Request history together with catalog prices in Stage 2
    listener : SnapshotListener | None
        Called with every published snapshot
    http : Any | None
        Shared HTTP client closed by ``aclose``

    """

    def __init__(
        self,
        catalog: Iterable[TokenDescriptor],
        chain_client: Any,
        explorer_client: Any,
        markets: Any,
        token_prices: Any,
        dex_prices: Any,
        charts: Any,
        *,
        market_sparkline: bool = True,
        listener: SnapshotListener | None = None,
        http: Any | None = None,
    ) -> None:
        self.catalog = tuple(catalog)
        self.chain_client = chain_client
        self.explorer_client = explorer_client
        self.markets = markets
        self.token_prices = token_prices
        self.dex_prices = dex_prices
        self.charts = charts
        self.market_sparkline = market_sparkline
        self.store = SnapshotStore(listener)
        self.http = http
        self._catalog_by_id = {token.id: token for token in self.catalog}

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        catalog: Iterable[TokenDescriptor] | None = None,
        listener: SnapshotListener | None = None,
    ) -> "PortfolioAggregator":
        """
        Wire every data source from runtime settings.

        Parameters
        ----------
        settings : Settings | None
            Runtime settings. Loads network.yaml and environment if None.
        catalog : Iterable[TokenDescriptor] | None
            Token catalog. Loads catalog.yaml if None.
        listener : SnapshotListener | None
            Called with every published snapshot

        Returns
        -------
        PortfolioAggregator
            Aggregator owning a shared HTTP client

        """
        settings = settings or load_settings()
        endpoints = settings.endpoints
        limits = settings.limits

        http = ResilientHttpClient(
            settings.retry.to_config(),
            timeout=settings.http_timeout,
            headers={"accept": "application/json"},
        )

        return cls(
            catalog if catalog is not None else load_catalog(),
            chain_client=ChainClient(http, endpoints.rpc),
            explorer_client=ExplorerClient(http, endpoints.explorer),
            markets=CoinGeckoMarkets(http, endpoints.coingecko, api_key=settings.coingecko_api_key),
            token_prices=CoinGeckoTokenPrices(
                http,
                chain=settings.chain,
                base_url=endpoints.coingecko,
                batch_size=limits.token_price_batch_size,
                api_key=settings.coingecko_api_key,
            ),
            dex_prices=DexScreenerPrices(http, chain=settings.chain, base_url=endpoints.dexscreener),
            charts=GeckoTerminalCharts(
                http,
                chain=settings.chain,
                base_url=endpoints.geckoterminal,
                max_tokens=limits.chart_max_tokens,
                request_delay=limits.chart_request_delay,
            ),
            market_sparkline=limits.market_sparkline,
            listener=listener,
            http=http,
        )

    async def load_snapshot(
        self,
        address: str | None,
        on_stage: SnapshotListener | None = None,
    ) -> PortfolioSnapshot:
        """
        Run the full pipeline and return the most complete snapshot reached.

        Parameters
        ----------
        address : str | None
            Wallet address, or None for the market view
        on_stage : SnapshotListener | None
            Called with each of the 1-3 progressive snapshots

        Returns
        -------
        PortfolioSnapshot
            Last snapshot published by this run (the current store state if
            it was superseded before publishing anything)

        """
        final = None
        async for snapshot in self.stream_snapshot(address):
            final = snapshot
            if on_stage:
                on_stage(snapshot)
        return final if final is not None else self.store.snapshot()

    async def refresh(self, address: str | None) -> PortfolioSnapshot:
        """Start a new run for ``address``, superseding any run in flight."""
        return await self.load_snapshot(address)

    async def stream_snapshot(self, address: str | None) -> AsyncIterator[PortfolioSnapshot]:
        """
        Run the pipeline, yielding a snapshot after each stage.

        Stops early, without yielding further, once a newer run has started.

        Parameters
        ----------
        address : str | None
            Wallet address, or None for the market view

        Yields
        ------
        PortfolioSnapshot
            Balance, price and chart snapshots in order

        """
        address = address or None
        run_id = self.store.begin_run()
        logger.debug("Run %d: loading balances for %s", run_id, address or "market view")

        try:
            holdings = await self.load_balances(address)
        except Exception as e:
            logger.error("Run %d: balance stage failed: %s", run_id, e)
            if self.store.fail(run_id, address, LOAD_ERROR_MESSAGE):
                snapshot = self.store.publish(run_id, LoadStage.FAILED)
                if snapshot:
                    yield snapshot
            return

        if not self.store.reset(run_id, address, holdings):
            return
        snapshot = self.store.publish(run_id, LoadStage.BALANCES)
        if snapshot is None:
            return
        yield snapshot

        logger.debug("Run %d: fetching prices for %d holdings", run_id, len(snapshot.holdings))
        try:
            patches = await self.fetch_prices(snapshot.holdings)
            if self.store.apply(run_id, patches):
                self.store.sort_by_value(run_id)
        except Exception as e:
            logger.warning("Run %d: price stage failed, keeping zero prices: %s", run_id, e)

        snapshot = self.store.publish(run_id, LoadStage.PRICES)
        if snapshot is None:
            return
        yield snapshot

        logger.debug("Run %d: backfilling charts", run_id)
        try:
            patches = await self.fetch_charts(snapshot.holdings)
            self.store.apply(run_id, patches)
        except Exception as e:
            logger.warning("Run %d: chart stage failed, keeping previous history: %s", run_id, e)

        snapshot = self.store.publish(run_id, LoadStage.CHARTS)
        if snapshot is None:
            return
        yield snapshot

    # -- Stage 1 -------------------------------------------------------------

    async def load_balances(self, address: str | None) -> list[Holding]:
        """
        Discover held tokens and their balances.

        Without an address the whole catalog is returned at balance 0 and no
        balance calls are made. With an address, the direct chain balance of a
        catalog token takes precedence over the explorer's figure; explorer
        entries matching a catalog contract are merged into the catalog
        holding rather than listed twice.

        Parameters
        ----------
        address : str | None
            Wallet address

        Returns
        -------
        list[Holding]
            Holdings with zero prices and empty history

        Raises
        ------
        SnapshotLoadError
            If every balance source failed

        """
        if address is None:
            return [self._catalog_holding(token, 0.0) for token in self.catalog]

        native_tokens = [token for token in self.catalog if token.is_native]
        contract_tokens = [token for token in self.catalog if not token.is_native]

        calls: list[Awaitable[Any]] = [self.explorer_client.list_tokens(address)]
        calls.extend(self.chain_client.get_native_balance(address) for _ in native_tokens)
        calls.extend(
            self.chain_client.get_token_balance(token.address, address, token.decimals) for token in contract_tokens
        )
        results = await asyncio.gather(*calls, return_exceptions=True)

        failures = [result for result in results if isinstance(result, BaseException)]
        if len(failures) == len(results):
            msg = f"No balance source reachable for {address}: {failures[0]}"
            raise SnapshotLoadError(msg)
        for failure in failures:
            logger.warning("Balance lookup failed for %s: %s", address, failure)

        explorer_result, *chain_results = results
        explorer_tokens: list[ExplorerToken] = [] if isinstance(explorer_result, BaseException) else explorer_result
        balances = [0.0 if isinstance(result, BaseException) else result for result in chain_results]
        explorer_by_address = {entry.contract_address.lower(): entry for entry in explorer_tokens}

        holdings = []
        seen_addresses = set()

        for token, balance in zip(native_tokens + contract_tokens, balances, strict=True):
            if token.address:
                seen_addresses.add(token.address)
                listed = explorer_by_address.get(token.address)
                if balance <= 0 and listed:
                    balance = listed.balance
            if balance > 0:
                holdings.append(self._catalog_holding(token, balance))

        for entry in explorer_tokens:
            contract = entry.contract_address.lower()
            if contract in seen_addresses or entry.balance <= 0:
                continue
            seen_addresses.add(contract)
            holdings.append(self._explorer_holding(entry))

        logger.debug("Found %d holdings for %s", len(holdings), address)
        return holdings

    @staticmethod
    def _catalog_holding(token: TokenDescriptor, balance: float) -> Holding:
        return Holding(
            id=token.id,
            symbol=token.symbol,
            name=token.name,
            address=token.address or NATIVE_ADDRESS,
            decimals=token.decimals,
            balance=balance,
            image_url=token.image_url,
            market_id=token.market_id,
            known=True,
        )

    @staticmethod
    def _explorer_holding(entry: ExplorerToken) -> Holding:
        contract = entry.contract_address.lower()
        label = truncate_address(contract)
        return Holding(
            id=contract,
            symbol=entry.symbol or label,
            name=entry.name or entry.symbol or label,
            address=contract,
            decimals=entry.decimals,
            balance=entry.balance,
            known=False,
        )

    # -- Stage 2 -------------------------------------------------------------

    async def fetch_prices(self, holdings: list[Holding]) -> list[HoldingPatch]:
        """
        Resolve price, 24h change and history for every holding.

        Catalog tokens are priced by market id and everything else by
        contract address, concurrently. Tokens still at zero after both are
        sent to the DEX source. A missing history is synthesized from price
        and change.

        Parameters
        ----------
        holdings : list[Holding]
            Balance-stage holdings

        Returns
        -------
        list[HoldingPatch]
            One patch per holding

        """
        market_ids = [holding.market_id for holding in holdings if holding.market_id]
        addresses = [holding.address for holding in holdings if not holding.market_id and not holding.is_native]

        market_quotes, address_quotes = await asyncio.gather(
            self._query("catalog market", self.markets.get_markets, market_ids, sparkline=self.market_sparkline),
            self._query("token price", self.token_prices.get_prices, addresses),
        )

        def primary_quotes(holding: Holding) -> list[MarketQuote | None]:
            return [
                market_quotes.get(holding.market_id) if holding.market_id else None,
                address_quotes.get(holding.address),
            ]

        unpriced = [
            holding.address
            for holding in holdings
            if not holding.is_native and not any(quote and quote.price for quote in primary_quotes(holding))
        ]
        dex_quotes = await self._query("dex", self.dex_prices.get_prices, unpriced)

        logger.debug(
            "Priced %d by market id, %d by address, %d by dex (of %d)",
            len(market_quotes),
            len(address_quotes),
            len(dex_quotes),
            len(holdings),
        )

        return [
            self._merge_quotes(holding, [*primary_quotes(holding), dex_quotes.get(holding.address)])
            for holding in holdings
        ]

    def _merge_quotes(self, holding: Holding, quotes: list[MarketQuote | None]) -> HoldingPatch:
        """
        Combine quotes in priority order into a single patch.

        Price comes from the first quote with a nonzero price. Change and
        history are taken independently from the first priced quote that has
        them.

        """
        priced = [quote for quote in quotes if quote and quote.price > 0]

        price = priced[0].price if priced else 0.0
        change = next((quote.change_24h for quote in priced if quote.change_24h is not None), 0.0)

        if not priced:
            token = self._catalog_by_id.get(holding.id) if holding.known else None
            if token and token.fallback_price:
                price = token.fallback_price

        history = next((quote.history for quote in priced if len(quote.history) >= 2), None)
        if history is not None:
            source = HistorySource.MARKET
        else:
            history = synthesize_history(price, change)
            source = HistorySource.SYNTHETIC

        return HoldingPatch(
            id=holding.id,
            price=price,
            change_24h=change,
            history=history,
            history_source=source,
        )

    # -- Stage 3 -------------------------------------------------------------

    async def fetch_charts(self, holdings: list[Holding]) -> list[HoldingPatch]:
        """
        Find real price history for holdings that lack one.

        Catalog tokens are retried against the catalog market source with
        history enabled; the rest go to the per-token chart source in their
        current display order, which caps the number of lookups.

        Parameters
        ----------
        holdings : list[Holding]
            Price-stage holdings in display order

        Returns
        -------
        list[HoldingPatch]
            History-only patches for holdings that received a real series

        """
        missing = [holding for holding in holdings if not holding.has_real_history]
        if not missing:
            return []

        patches = []
        filled = set()

        market_ids = [holding.market_id for holding in missing if holding.market_id]
        quotes = await self._query("catalog chart", self.markets.get_markets, market_ids, sparkline=True)
        for holding in missing:
            quote = quotes.get(holding.market_id) if holding.market_id else None
            if quote and len(quote.history) >= 2:
                patches.append(HoldingPatch(id=holding.id, history=quote.history, history_source=HistorySource.MARKET))
                filled.add(holding.id)

        remaining = [holding for holding in missing if holding.id not in filled and not holding.is_native]
        charts = await self._query("token chart", self.charts.get_charts, [holding.address for holding in remaining])
        for holding in remaining:
            series = charts.get(holding.address)
            if series and len(series) >= 2:
                patches.append(HoldingPatch(id=holding.id, history=series, history_source=HistorySource.CHART))

        logger.debug("Backfilled history for %d of %d holdings", len(patches), len(missing))
        return patches

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    async def _query(
        label: str,
        fetch: Callable[..., Awaitable[dict[str, Any]]],
        keys: list[str],
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Call a source, treating any failure as "no data from this source"."""
        if not keys:
            return {}
        try:
            return await fetch(keys, **kwargs) or {}
        except Exception as e:
            logger.warning("%s source failed: %s", label, e)
            return {}

    async def aclose(self) -> None:
        """Close the shared HTTP client, if owned."""
        if self.http is not None:
            await self.http.aclose()

    async def __aenter__(self) -> "PortfolioAggregator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.aclose()
