"""Core functionality including models, errors, account resolution, and snapshot state."""

from wallet_portfolio.core.account import resolve_account, resolve_address, truncate_address
from wallet_portfolio.core.errors import (
    MalformedResponseError,
    PortfolioError,
    RateLimitedError,
    SnapshotLoadError,
    TransportError,
)
from wallet_portfolio.core.models import (
    NATIVE_ADDRESS,
    AccountRecord,
    ExplorerToken,
    HistorySource,
    Holding,
    HoldingPatch,
    LoadStage,
    MarketQuote,
    PortfolioSnapshot,
    TokenDescriptor,
)
from wallet_portfolio.core.store import SnapshotStore

__all__ = [
    "NATIVE_ADDRESS",
    "AccountRecord",
    "ExplorerToken",
    "HistorySource",
    "Holding",
    "HoldingPatch",
    "LoadStage",
    "MalformedResponseError",
    "MarketQuote",
    "PortfolioError",
    "PortfolioSnapshot",
    "RateLimitedError",
    "SnapshotLoadError",
    "SnapshotStore",
    "TokenDescriptor",
    "TransportError",
    "resolve_account",
    "resolve_address",
    "truncate_address",
]
