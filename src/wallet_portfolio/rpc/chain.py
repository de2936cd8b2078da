"""Read-only JSON-RPC client for native and ERC-20 balances."""

import logging
from typing import Any

from wallet_portfolio.core.errors import PortfolioError
from wallet_portfolio.rpc.http import ResilientHttpClient

logger = logging.getLogger(__name__)

# ERC-20 balanceOf(address) function selector
BALANCE_OF_SELECTOR = "0x70a08231"

NATIVE_DECIMALS = 18

_UINT256 = 2**256
_INT256_MAX = 2**255 - 1


class ChainClient:
    """
    Fetches balances from a single JSON-RPC node.

    Balance lookups never raise: any transport error, RPC error body or
    unparsable result is reported as a zero balance.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    rpc_url : str
        Node endpoint URL

    """

    def __init__(self, http: ResilientHttpClient, rpc_url: str) -> None:
        self.http = http
        self.rpc_url = rpc_url
        self._request_id = 0

    async def get_native_balance(self, address: str) -> float:
        """
        Get native currency balance of an address.

        Parameters
        ----------
        address : str
            Wallet address

        Returns
        -------
        float
            Balance in whole units (0.0 on any failure)

        """
        result = await self._call("eth_getBalance", [address, "latest"])
        return _to_balance(result, NATIVE_DECIMALS)

    async def get_token_balance(self, contract_address: str, address: str, decimals: int) -> float:
        """
        Get ERC-20 token balance via ``balanceOf``.

        Parameters
        ----------
        contract_address : str
            Token contract address
        address : str
            Wallet address
        decimals : int
            Token decimal precision

        Returns
        -------
        float
            Balance in whole units (0.0 on any failure)

        """
        call = {"to": contract_address, "data": encode_balance_of(address)}
        result = await self._call("eth_call", [call, "latest"])
        return _to_balance(result, decimals)

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        try:
            data = await self.http.post_json(self.rpc_url, payload)
        except PortfolioError as e:
            logger.warning("RPC %s failed: %s", method, e)
            return None

        if not isinstance(data, dict):
            logger.warning("RPC %s returned unexpected payload: %r", method, data)
            return None
        if data.get("error"):
            logger.warning("RPC %s error body: %s", method, data["error"])
            return None
        return data.get("result")


def encode_balance_of(address: str) -> str:
    """
    Build calldata for ``balanceOf(address)``.

    Parameters
    ----------
    address : str
        Ethereum address (0x prefixed)

    Returns
    -------
    str
        Selector followed by the address left-padded to 32 bytes

    """
    clean_addr = address.lower().removeprefix("0x")
    return BALANCE_OF_SELECTOR + clean_addr.zfill(64)


def _to_balance(result: Any, decimals: int) -> float:
    if not isinstance(result, str) or result in ("", "0x"):
        return 0.0

    try:
        value = int(result, 16)
    except ValueError:
        logger.warning("Unparsable balance result: %r", result)
        return 0.0

    # Interpret as signed 256-bit
    if value > _INT256_MAX:
        value -= _UINT256
    if value <= 0:
        return 0.0

    return float(value) / (10**decimals)
