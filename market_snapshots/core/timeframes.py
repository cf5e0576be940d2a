"""Timestamp grid helpers shared by fetchers, processors and jobs."""

from __future__ import annotations

import time
from typing import Iterable, Optional

from market_snapshots.core.models import Coin

HOUR_MS = 60 * 60 * 1000

# Maps timeframe labels to their duration in milliseconds.
TIMEFRAME_MS: dict[str, int] = {
    "1h": HOUR_MS,
    "2h": 2 * HOUR_MS,
    "4h": 4 * HOUR_MS,
    "8h": 8 * HOUR_MS,
    "1d": 24 * HOUR_MS,
}

EXCHANGES = ("binance", "bybit")


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_time(timestamp: int, interval_ms: int) -> int:
    """Floor *timestamp* to the start of its *interval_ms* bucket."""
    return (timestamp // interval_ms) * interval_ms


def get_current_candle_time(interval_ms: int, at_ms: Optional[int] = None) -> int:
    """Open time of the candle that contains *at_ms* (defaults to now)."""
    if at_ms is None:
        at_ms = now_ms()
    return normalize_time(at_ms, interval_ms)


def split_coins_by_exchange(coins: Iterable[Coin]) -> dict[str, list[Coin]]:
    """Route each coin to one exchange: Binance when listed there, else Bybit.

    Coins listed on neither exchange are dropped.
    """
    groups: dict[str, list[Coin]] = {name: [] for name in EXCHANGES}
    for coin in coins:
        if "binance" in coin.exchanges:
            groups["binance"].append(coin)
        elif "bybit" in coin.exchanges:
            groups["bybit"].append(coin)
    return groups
