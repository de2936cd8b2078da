"""Data models for catalog tokens, holdings, and portfolio snapshots."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Address placeholder for the chain's native currency
NATIVE_ADDRESS = "native"


class LoadStage(StrEnum):
    """Pipeline stage a published snapshot belongs to."""

    BALANCES = "balances"
    PRICES = "prices"
    CHARTS = "charts"
    FAILED = "failed"


class HistorySource(StrEnum):
    """Where a holding's price history came from."""

    MARKET = "market"
    CHART = "chart"
    SYNTHETIC = "synthetic"


class TokenDescriptor(BaseModel):
    """
    Static catalog entry.

    Attributes
    ----------
    id : str
        Stable internal key
    symbol : str
        Display symbol (e.g. 'ETH', 'USDC')
    name : str
        Display name
    address : str | None
        Contract address, None for the native currency
    decimals : int
        Number of decimal places
    market_id : str | None
        Curated market-data identifier
    image_url : str | None
        Icon reference
    fallback_price : float | None
        Price used when no source could price the token (pegged assets)

    """

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    name: str
    address: str | None = None
    decimals: int = Field(default=18, ge=0)
    market_id: str | None = None
    image_url: str | None = None
    fallback_price: float | None = None

    @field_validator("address")
    @classmethod
    def _lowercase_address(cls, value: str | None) -> str | None:
        return value.lower() if value else None

    @property
    def is_native(self) -> bool:
        """True for the chain's native currency."""
        return self.address is None


class ExplorerToken(BaseModel):
    """Token entry reported by the block explorer."""

    contract_address: str
    symbol: str | None = None
    name: str | None = None
    decimals: int = 18
    raw_balance: int = 0
    asset_type: str = ""

    @property
    def balance(self) -> float:
        """Balance in whole units."""
        return float(self.raw_balance) / (10**self.decimals)


class MarketQuote(BaseModel):
    """
    Price data for one token from one market source.

    Attributes
    ----------
    price : float
        USD price
    change_24h : float | None
        24h percent change, None when the source has none
    history : list[float]
        Recent prices, oldest first (empty when the source has none)

    """

    price: float = 0.0
    change_24h: float | None = None
    history: list[float] = Field(default_factory=list)


class Holding(BaseModel):
    """
    One token row of a portfolio snapshot.

    Created in the balance stage and enriched in place by later stages.

    Attributes
    ----------
    id : str
        Catalog id, or lowercase contract address for unknown tokens
    symbol : str
        Display symbol
    name : str
        Display name
    address : str
        Contract address, or ``NATIVE_ADDRESS``
    decimals : int
        Token decimal precision
    balance : float
        Balance in whole units
    price : float
        USD price (0.0 until resolved)
    change_24h : float
        24h percent change (0.0 until resolved)
    history : list[float]
        Recent prices, oldest first
    history_source : HistorySource | None
        Provenance of ``history``
    image_url : str | None
        Icon reference
    market_id : str | None
        Curated market-data identifier (catalog tokens only)
    known : bool
        Whether the token is in the static catalog

    """

    id: str
    symbol: str
    name: str
    address: str
    decimals: int = 18
    balance: float = Field(default=0.0, ge=0)
    price: float = 0.0
    change_24h: float = 0.0
    history: list[float] = Field(default_factory=list)
    history_source: HistorySource | None = None
    image_url: str | None = None
    market_id: str | None = None
    known: bool = True

    @field_validator("history")
    @classmethod
    def _history_has_two_points(cls, value: list[float]) -> list[float]:
        if len(value) == 1:
            msg = "history must be empty or contain at least two points"
            raise ValueError(msg)
        return value

    @property
    def value(self) -> float:
        """USD value of the holding."""
        return self.balance * self.price

    @property
    def is_native(self) -> bool:
        """True for the chain's native currency."""
        return self.address == NATIVE_ADDRESS

    @property
    def has_real_history(self) -> bool:
        """True when history came from a market or chart source."""
        return self.history_source in (HistorySource.MARKET, HistorySource.CHART)


class HoldingPatch(BaseModel):
    """
    Field update for a single holding, keyed by token id.

    Fields left as None are not touched.

    """

    id: str
    price: float | None = None
    change_24h: float | None = None
    history: list[float] | None = None
    history_source: HistorySource | None = None


class PortfolioSnapshot(BaseModel):
    """
    Portfolio result for one address and one load cycle.

    Attributes
    ----------
    run_id : int
        Run that produced this snapshot
    address : str | None
        Wallet address, None for the market view
    stage : LoadStage
        Last completed stage
    holdings : list[Holding]
        Visible holdings in display order
    total_value : float
        Sum of balance x price over ``holdings``
    error : str | None
        User-facing error message when the balance stage failed

    """

    run_id: int = 0
    address: str | None = None
    stage: LoadStage = LoadStage.BALANCES
    holdings: list[Holding] = Field(default_factory=list)
    total_value: float = 0.0
    error: str | None = None


class AccountRecord(BaseModel):
    """Canonical account information extracted from a host-frame context."""

    address: str
    source: str
    fid: int | None = None
    username: str | None = None
