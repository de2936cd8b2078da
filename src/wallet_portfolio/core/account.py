"""Account resolution from host-frame context payloads."""

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from typing import Any

from wallet_portfolio.core.models import AccountRecord

logger = logging.getLogger(__name__)

# Default wall-clock deadline for obtaining the host context
ACCOUNT_TIMEOUT = 2.0


def _field(data: Mapping[str, Any], camel: str, snake: str) -> Any:
    """Read a field that may be spelled in camelCase or snake_case."""
    value = data.get(camel)
    if value is None:
        value = data.get(snake)
    return value


def resolve_account(context: Any) -> AccountRecord | None:
    """
    Normalize a host-frame context into an account record.

    Host apps send the user object with either camelCase or snake_case keys;
    both spellings are accepted. A verified address takes priority over the
    custody address.

    Parameters
    ----------
    context : Any
        Context payload, e.g. ``{"user": {"fid": 1, "verifiedAddresses": [...]}}``

    Returns
    -------
    AccountRecord | None
        Canonical record, or None if the context carries no address

    Examples
    --------
    >>> resolve_account({"user": {"custody_address": "0xabc"}}).address
    '0xabc'

    """
    if not isinstance(context, Mapping):
        return None

    user = context.get("user")
    if not isinstance(user, Mapping):
        return None

    fid = user.get("fid")
    username = user.get("username")
    common = {
        "fid": fid if isinstance(fid, int) else None,
        "username": username if isinstance(username, str) else None,
    }

    verified = _field(user, "verifiedAddresses", "verified_addresses")
    # Newer payloads nest addresses by chain family
    if isinstance(verified, Mapping):
        verified = _field(verified, "ethAddresses", "eth_addresses")
    if isinstance(verified, list | tuple):
        for address in verified:
            if isinstance(address, str) and address:
                return AccountRecord(address=address, source="verified", **common)

    custody = _field(user, "custodyAddress", "custody_address")
    if isinstance(custody, str) and custody:
        return AccountRecord(address=custody, source="custody", **common)

    return None


async def resolve_address(context: Awaitable[Any], timeout: float = ACCOUNT_TIMEOUT) -> str | None:
    """
    Await a host context and extract the account address under a deadline.

    On timeout or any failure the caller proceeds as if no account were
    available.

    Parameters
    ----------
    context : Awaitable[Any]
        Pending host context
    timeout : float
        Deadline in seconds

    Returns
    -------
    str | None
        Account address, or None

    """
    try:
        payload = await asyncio.wait_for(context, timeout=timeout)
    except TimeoutError:
        logger.warning("Host context not available after %.1fs, continuing without account", timeout)
        return None
    except Exception as e:
        logger.warning("Host context failed: %s", e)
        return None

    account = resolve_account(payload)
    return account.address if account else None


def truncate_address(address: str) -> str:
    """
    Shorten an address for display.

    >>> truncate_address("0x833589fcd6edb6e08f4c7c32d4f71b54bda02913")
    '0x8335...2913'

    """
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
