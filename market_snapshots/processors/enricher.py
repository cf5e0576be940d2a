"""
Joins candles with open interest and funding rates.

For a candle opening at ``t`` with timeframe width ``w``:

- ``open_interest`` is the last OI point with ``t <= open_time < t + w``
- ``funding_rate`` is the mean of the 4h funding slots in the same window
  (for 8h candles built from replicated 8h events this is the event rate)

Missing values are ``None``; a symbol absent from the OI or FR results still
yields candles.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import pandas as pd

from market_snapshots.core.models import (
    CoinMarketData,
    EnrichedCandle,
    FetcherResult,
)
from market_snapshots.core.timeframes import TIMEFRAME_MS


def _bucket_values(points: Sequence, value_field: str, width_ms: int, how: str) -> dict[int, float]:
    """Aggregate ``(open_time, value)`` points into ``width_ms`` buckets."""
    if not points:
        return {}
    df = pd.DataFrame(
        {
            "open_time": [p.open_time for p in points],
            "value": [getattr(p, value_field) for p in points],
        }
    )
    df.sort_values("open_time", inplace=True)
    df["bucket"] = (df["open_time"] // width_ms) * width_ms
    series = df.groupby("bucket")["value"].agg(how).dropna()
    return {int(k): float(v) for k, v in series.items()}


def _by_symbol(result: Optional[FetcherResult]) -> dict[str, list]:
    if result is None:
        return {}
    return {item.symbol: item.candles for item in result.successful}


def enrich_klines(
    kline_results: Iterable[CoinMarketData],
    oi_result: Optional[FetcherResult],
    timeframe: str,
    fr_result: Optional[FetcherResult],
) -> list[CoinMarketData]:
    """Attach OI and funding rates to every candle of *kline_results*."""
    if timeframe not in TIMEFRAME_MS:
        raise ValueError(f"Unknown timeframe: {timeframe}")
    width_ms = TIMEFRAME_MS[timeframe]

    oi_by_symbol = _by_symbol(oi_result)
    fr_by_symbol = _by_symbol(fr_result)

    enriched: list[CoinMarketData] = []
    for coin in kline_results:
        oi = _bucket_values(oi_by_symbol.get(coin.symbol, []), "open_interest", width_ms, "last")
        fr = _bucket_values(fr_by_symbol.get(coin.symbol, []), "funding_rate", width_ms, "mean")

        candles = [
            EnrichedCandle(
                open_time=c.open_time,
                open=c.open,
                high=c.high,
                low=c.low,
                close=c.close,
                volume=c.volume,
                quote_volume=c.quote_volume,
                open_interest=oi.get(c.open_time),
                funding_rate=fr.get(c.open_time),
            )
            for c in coin.candles
        ]
        enriched.append(CoinMarketData(
            symbol=coin.symbol,
            exchanges=list(coin.exchanges),
            category=coin.category,
            candles=candles,
        ))
    return enriched


def trim_candles(kline_results: Iterable[CoinMarketData], count: int) -> list[CoinMarketData]:
    """Keep the most recent *count* candles of every symbol."""
    if count < 0:
        raise ValueError("count must be non-negative")
    return [
        CoinMarketData(
            symbol=coin.symbol,
            exchanges=list(coin.exchanges),
            category=coin.category,
            candles=list(coin.candles[-count:]) if count else [],
        )
        for coin in kline_results
    ]
