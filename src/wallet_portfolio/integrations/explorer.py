"""Block-explorer client for discovering tokens held by an address."""

import logging
from typing import Any

from pydantic import ValidationError

from wallet_portfolio.core.errors import PortfolioError
from wallet_portfolio.core.models import ExplorerToken
from wallet_portfolio.rpc.http import ResilientHttpClient

logger = logging.getLogger(__name__)


class ExplorerClient:
    """
    Client for an Etherscan-compatible explorer API (Blockscout on Base).

    Uses ``module=account&action=tokenlist`` to enumerate every token the
    address has held. The list is coarse: balances may be stale and
    collectibles are mixed in, so only positive fungible entries are kept.

    Parameters
    ----------
    http : ResilientHttpClient
        Shared HTTP client
    base_url : str
        Explorer API URL (e.g. ``https://base.blockscout.com/api``)

    """

    # Explorer type labels that denote fungible tokens, normalized
    FUNGIBLE_TYPES = frozenset({"erc20"})

    def __init__(self, http: ResilientHttpClient, base_url: str) -> None:
        self.http = http
        self.base_url = base_url

    async def list_tokens(self, address: str) -> list[ExplorerToken]:
        """
        List fungible tokens with a positive balance.

        Parameters
        ----------
        address : str
            Wallet address

        Returns
        -------
        list[ExplorerToken]
            Token entries (empty on any error)

        """
        params = {"module": "account", "action": "tokenlist", "address": address}

        try:
            data = await self.http.get_json(self.base_url, params=params)
        except PortfolioError as e:
            logger.warning("Explorer token list failed for %s: %s", address, e)
            return []

        if not isinstance(data, dict) or str(data.get("status")) != "1":
            logger.warning("Explorer returned unexpected payload for %s", address)
            return []

        result = data.get("result")
        if not isinstance(result, list):
            logger.warning("Explorer result is not a list for %s", address)
            return []

        tokens = []
        for item in result:
            token = self._parse_token(item)
            if token and self._is_fungible(token) and token.raw_balance > 0:
                tokens.append(token)

        logger.debug("Explorer reported %d fungible tokens for %s", len(tokens), address)
        return tokens

    def _parse_token(self, item: Any) -> ExplorerToken | None:
        """
        Parse one explorer entry.

        Parameters
        ----------
        item : Any
            Raw ``result`` entry

        Returns
        -------
        ExplorerToken | None
            Parsed token, or None if the entry is unusable

        """
        if not isinstance(item, dict) or not item.get("contractAddress"):
            return None

        try:
            return ExplorerToken(
                contract_address=str(item["contractAddress"]).lower(),
                symbol=item.get("symbol") or None,
                name=item.get("name") or None,
                decimals=int(item.get("decimals") or 18),
                raw_balance=int(item.get("balance") or 0),
                asset_type=str(item.get("type") or ""),
            )
        except (ValueError, TypeError, ValidationError) as e:
            logger.debug("Skipping malformed explorer entry %r: %s", item, e)
            return None

    def _is_fungible(self, token: ExplorerToken) -> bool:
        normalized = token.asset_type.lower().replace("-", "").replace("_", "")
        return normalized in self.FUNGIBLE_TYPES
