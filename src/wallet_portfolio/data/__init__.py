"""Static token catalog and configuration management."""

from wallet_portfolio.data.loader import (
    get_catalog_token,
    load_catalog,
    load_network_config,
    load_settings,
)
from wallet_portfolio.data.settings import Endpoints, Limits, RetrySettings, Settings

__all__ = [
    "Endpoints",
    "Limits",
    "RetrySettings",
    "Settings",
    "get_catalog_token",
    "load_catalog",
    "load_network_config",
    "load_settings",
]
