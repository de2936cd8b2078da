"""Third-party index integrations."""

from wallet_portfolio.integrations.explorer import ExplorerClient

__all__ = ["ExplorerClient"]
