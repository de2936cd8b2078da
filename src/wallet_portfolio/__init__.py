"""Wallet portfolio viewer for Base: balances, prices, and charts loaded in stages."""

from wallet_portfolio.core.aggregator import PortfolioAggregator

__version__ = "0.1.0"

__all__ = ["PortfolioAggregator"]
