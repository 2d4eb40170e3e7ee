# src/analytics/median_prices.py

"""Volume-weighted median prices over a market price-history series."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

logger = logging.getLogger("market_prices.analytics")

# Steam price history rows look like ["Oct 18 2026 01: +0", 1.23, "45"]
_HISTORY_TIME_FORMAT = "%b %d %Y %H"

WINDOWS: dict[str, int] = {
    "last_24h": 1,
    "last_7d": 7,
    "last_30d": 30,
    "last_90d": 90,
}


@dataclass
class PricePoint:
    """One hourly or daily observation from the price history."""

    time: datetime
    value: float
    volume: int


def _parse_history_time(raw: str) -> datetime:
    stamp = raw.split(":", 1)[0].strip()
    return datetime.strptime(stamp, _HISTORY_TIME_FORMAT).replace(tzinfo=UTC)


def parse_price_history(rows: Iterable[Any]) -> list[PricePoint]:
    """Convert raw history rows into points, skipping malformed rows."""
    points: list[PricePoint] = []
    skipped = 0
    for row in rows:
        try:
            raw_time, value, volume = row
            points.append(
                PricePoint(
                    time=_parse_history_time(str(raw_time)),
                    value=float(value),
                    volume=int(volume),
                )
            )
        except (TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.debug("Skipped %d malformed price history rows", skipped)
    return points


def last_ever_price(points: list[PricePoint]) -> float | None:
    """Value of the most recent point in the series."""
    return points[-1].value if points else None


def weighted_median(points: Iterable[PricePoint]) -> float | None:
    """Median with each value repeated ``volume`` times.

    Even-sized samples average the two middle values.
    """
    expanded: list[float] = []
    for point in points:
        expanded.extend([point.value] * max(point.volume, 0))
    if not expanded:
        return None

    expanded.sort()
    mid = len(expanded) // 2
    if len(expanded) % 2 == 0:
        return (expanded[mid - 1] + expanded[mid]) / 2
    return expanded[mid]


def median_prices(
    points: list[PricePoint],
    last_ever: float | None = None,
    now: datetime | None = None,
) -> dict[str, float | None]:
    """Median price per trailing window plus the last recorded price."""
    current = now or datetime.now(UTC)
    result: dict[str, float | None] = {}
    for key, days in WINDOWS.items():
        limit = current - timedelta(days=days)
        result[key] = weighted_median(p for p in points if p.time >= limit)
    result["last_ever"] = (
        last_ever if last_ever is not None else last_ever_price(points)
    )
    return result
