"""Runtime settings built from network.yaml and environment overrides."""

from pydantic import BaseModel, Field

from wallet_portfolio.rpc.retry import RetryConfig

# Environment variables that override endpoint URLs
ENV_OVERRIDES = {
    "rpc": "WALLET_PORTFOLIO_RPC_URL",
    "explorer": "WALLET_PORTFOLIO_EXPLORER_URL",
    "coingecko": "WALLET_PORTFOLIO_COINGECKO_URL",
    "dexscreener": "WALLET_PORTFOLIO_DEXSCREENER_URL",
    "geckoterminal": "WALLET_PORTFOLIO_GECKOTERMINAL_URL",
}

COINGECKO_API_KEY_ENV = "WALLET_PORTFOLIO_COINGECKO_API_KEY"


class Endpoints(BaseModel):
    """Base URLs of every outbound service."""

    rpc: str
    explorer: str
    coingecko: str
    dexscreener: str
    geckoterminal: str


class Limits(BaseModel):
    """Batch sizes and rate-limit pacing."""

    token_price_batch_size: int = Field(default=20, ge=1, le=20)
    chart_max_tokens: int = Field(default=10, ge=0, le=10)
    chart_request_delay: float = Field(default=1.5, ge=0)
    market_sparkline: bool = True


class RetrySettings(BaseModel):
    """Retry policy for the HTTP layer."""

    max_retries: int = Field(default=2, ge=0)
    backoff: float = Field(default=1.0, ge=0)
    max_jitter: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)

    def to_config(self) -> RetryConfig:
        """Build the retry policy object used by the HTTP client."""
        return RetryConfig(
            max_retries=self.max_retries,
            backoff=self.backoff,
            max_jitter=self.max_jitter,
            max_delay=self.max_delay,
        )


class Settings(BaseModel):
    """
    Complete runtime configuration.

    Attributes
    ----------
    chain : str
        Chain identifier used by the market APIs (e.g. 'base')
    chain_id : int
        Numeric chain id
    endpoints : Endpoints
        Service base URLs
    limits : Limits
        Batch and pacing limits
    retry : RetrySettings
        HTTP retry policy
    http_timeout : float
        Per-request timeout in seconds
    account_timeout : float
        Deadline for resolving the host account
    coingecko_api_key : str | None
        Optional CoinGecko demo API key

    """

    chain: str = "base"
    chain_id: int = 8453
    endpoints: Endpoints
    limits: Limits = Field(default_factory=Limits)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    http_timeout: float = 30.0
    account_timeout: float = 2.0
    coingecko_api_key: str | None = None
