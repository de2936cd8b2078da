"""Token catalog and network configuration loader."""

import os
from functools import cache
from pathlib import Path
from typing import Any

import yaml

from wallet_portfolio.core.models import TokenDescriptor
from wallet_portfolio.data.settings import COINGECKO_API_KEY_ENV, ENV_OVERRIDES, Settings

DATA_DIR = Path(__file__).parent


def _load_yaml(name: str) -> dict[str, Any]:
    path = DATA_DIR / name
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_network_config() -> dict[str, Any]:
    """
    Load raw network configuration from network.yaml.

    Returns
    -------
    dict[str, Any]
        Chain, endpoint, limit and retry configuration

    """
    return _load_yaml("network.yaml")


@cache
def load_catalog() -> tuple[TokenDescriptor, ...]:
    """
    Load the static token catalog from catalog.yaml.

    Loaded once per process.

    Returns
    -------
    tuple[TokenDescriptor, ...]
        Catalog tokens in display order

    Raises
    ------
    ValueError
        If two entries share an id or a contract address

    """
    entries = _load_yaml("catalog.yaml").get("tokens", [])
    tokens = tuple(TokenDescriptor(**entry) for entry in entries)

    ids = [token.id for token in tokens]
    if len(ids) != len(set(ids)):
        msg = "Duplicate token id in catalog"
        raise ValueError(msg)

    addresses = [token.address for token in tokens if token.address]
    if len(addresses) != len(set(addresses)):
        msg = "Duplicate contract address in catalog"
        raise ValueError(msg)

    return tokens


def get_catalog_token(key: str) -> TokenDescriptor | None:
    """
    Look up a catalog token by id, symbol or contract address.

    Parameters
    ----------
    key : str
        Token id (e.g. 'usd-coin'), symbol (e.g. 'USDC') or contract address

    Returns
    -------
    TokenDescriptor | None
        Matching token, or None if not in the catalog

    """
    lowered = key.lower()
    for token in load_catalog():
        if lowered in (token.id, token.symbol.lower(), token.address):
            return token
    return None


def load_settings(env: dict[str, str] | None = None) -> Settings:
    """
    Build runtime settings from network.yaml and environment overrides.

    Parameters
    ----------
    env : dict[str, str] | None
        Environment mapping. Uses ``os.environ`` if None.

    Returns
    -------
    Settings
        Validated settings

    """
    env = os.environ if env is None else env
    config = load_network_config()

    endpoints = dict(config.get("endpoints", {}))
    for name, variable in ENV_OVERRIDES.items():
        if env.get(variable):
            endpoints[name] = env[variable]
    config["endpoints"] = endpoints

    if env.get(COINGECKO_API_KEY_ENV):
        config["coingecko_api_key"] = env[COINGECKO_API_KEY_ENV]

    return Settings(**config)
