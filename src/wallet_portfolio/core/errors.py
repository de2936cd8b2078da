"""Exceptions raised by the fetch layer and the aggregation pipeline."""


class PortfolioError(Exception):
    """Base class for all wallet-portfolio errors."""


class TransportError(PortfolioError):
    """
    Network failure or non-success HTTP status.

    Parameters
    ----------
    message : str
        Error description
    status_code : int | None
        HTTP status code, or None for connection-level failures

    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(TransportError):
    """HTTP 429 from a data source."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class MalformedResponseError(PortfolioError):
    """Response body could not be decoded or had an unexpected shape."""


class SnapshotLoadError(PortfolioError):
    """Raised when the balance stage fails and the load cannot continue."""
