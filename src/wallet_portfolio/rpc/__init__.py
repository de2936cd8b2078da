"""RPC and HTTP layer with rate-limit aware retry."""

from wallet_portfolio.rpc.chain import ChainClient, encode_balance_of
from wallet_portfolio.rpc.http import ResilientHttpClient
from wallet_portfolio.rpc.retry import RetryConfig

__all__ = [
    "ChainClient",
    "ResilientHttpClient",
    "RetryConfig",
    "encode_balance_of",
]
