"""Market data sources for token prices, 24h change, and history."""

from wallet_portfolio.pricing.coingecko import CoinGeckoMarkets, CoinGeckoTokenPrices
from wallet_portfolio.pricing.dexscreener import DexScreenerPrices
from wallet_portfolio.pricing.geckoterminal import GeckoTerminalCharts
from wallet_portfolio.pricing.history import CHART_POINTS, clean_series, synthesize_history

__all__ = [
    "CHART_POINTS",
    "CoinGeckoMarkets",
    "CoinGeckoTokenPrices",
    "DexScreenerPrices",
    "GeckoTerminalCharts",
    "clean_series",
    "synthesize_history",
]
