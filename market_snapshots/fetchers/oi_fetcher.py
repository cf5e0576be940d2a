from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from market_snapshots.core.models import Coin, FetcherResult
from market_snapshots.exchanges.base import ExchangeAdapter
from market_snapshots.fetchers.fan_out import fetch_per_exchange
from market_snapshots.utils.throttled_queue import ThrottledTaskQueue


def fetch_oi(
    coin_groups: Mapping[str, Iterable[Coin]],
    period: str,
    limit: int,
    adapters: Mapping[str, ExchangeAdapter],
    queues: Mapping[str, ThrottledTaskQueue],
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Fetch *limit* open-interest points of *period* per coin, per exchange group."""
    return fetch_per_exchange(
        coin_groups,
        queues,
        lambda exchange: lambda coin: adapters[exchange].fetch_open_interest(coin, period, limit),
        f"OI {period}",
        logger,
    )
