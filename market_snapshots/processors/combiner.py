"""
Builds coarser candles from a finer base set (4h → 8h).

Base candles are grouped by the start of their target-timeframe bucket; only
complete buckets (e.g. both 4h halves of an 8h window) produce a candle.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Iterable

import pandas as pd

from market_snapshots.core.models import CoinMarketData, KlineCandle
from market_snapshots.core.timeframes import TIMEFRAME_MS

_AGGREGATIONS = {
    "open": ("open", "first"),
    "high": ("high", "max"),
    "low": ("low", "min"),
    "close": ("close", "last"),
    "volume": ("volume", "sum"),
    "quote_volume": ("quote_volume", "sum"),
    "parts": ("open_time", "count"),
}


def combine_candles(
    candles: Iterable[KlineCandle],
    source_tf: str = "4h",
    target_tf: str = "8h",
) -> list[KlineCandle]:
    """Merge consecutive *source_tf* candles into *target_tf* candles."""
    source_ms = TIMEFRAME_MS[source_tf]
    target_ms = TIMEFRAME_MS[target_tf]
    if target_ms % source_ms:
        raise ValueError(f"{target_tf} is not a multiple of {source_tf}")
    parts_needed = target_ms // source_ms

    rows = [asdict(c) for c in candles]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df.sort_values("open_time", inplace=True)
    df.drop_duplicates(subset=["open_time"], keep="last", inplace=True)
    df["bucket"] = (df["open_time"] // target_ms) * target_ms

    grouped = df.groupby("bucket").agg(**_AGGREGATIONS)
    grouped = grouped[grouped["parts"] == parts_needed]

    return [
        KlineCandle(
            open_time=int(bucket),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=float(row["volume"]),
            quote_volume=float(row["quote_volume"]),
        )
        for bucket, row in grouped.iterrows()
    ]


def combine_coin_results(
    base_results: Iterable[CoinMarketData],
    source_tf: str = "4h",
    target_tf: str = "8h",
) -> list[CoinMarketData]:
    """Apply :func:`combine_candles` per symbol; symbols left empty are dropped."""
    combined = []
    for coin in base_results:
        candles = combine_candles(coin.candles, source_tf, target_tf)
        if not candles:
            continue
        combined.append(CoinMarketData(
            symbol=coin.symbol,
            exchanges=list(coin.exchanges),
            category=coin.category,
            candles=candles,
        ))
    return combined
