"""Helpers for building price-history series."""

from collections.abc import Iterable
from typing import Any

# Points kept for the 24h chart (hourly)
CHART_POINTS = 24


def clean_series(points: Iterable[Any] | None, limit: int = CHART_POINTS) -> list[float]:
    """
    Keep the most recent numeric points of a series.

    Parameters
    ----------
    points : Iterable[Any] | None
        Raw series, oldest first
    limit : int
        Number of trailing points to keep

    Returns
    -------
    list[float]
        Up to ``limit`` points, or an empty list if fewer than two usable
        points remain

    """
    if not points:
        return []

    series = []
    for point in points:
        try:
            series.append(float(point))
        except (TypeError, ValueError):
            continue

    series = series[-limit:]
    return series if len(series) >= 2 else []


def synthesize_history(price: float, change_24h: float) -> list[float]:
    """
    Derive a two-point history from the current price and 24h change.

    Parameters
    ----------
    price : float
        Current USD price
    change_24h : float
        24h percent change

    Returns
    -------
    list[float]
        ``[previous, price]`` where ``previous = price / (1 + change/100)``

    Examples
    --------
    >>> synthesize_history(125.0, 25.0)
    [100.0, 125.0]
    >>> synthesize_history(0.0, 5.0)
    [0.0, 0.0]

    """
    if price <= 0:
        return [0.0, 0.0]

    divisor = 1 + change_24h / 100
    # A -100% (or worse) change has no finite previous price
    if divisor <= 0:
        return [price, price]

    return [price / divisor, price]
