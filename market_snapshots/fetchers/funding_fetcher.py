"""Funding-rate fetch orchestration across exchanges."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Sequence

from market_snapshots.core.models import Coin, FetcherResult
from market_snapshots.exchanges.base import ExchangeAdapter
from market_snapshots.fetchers.fan_out import collect_outcomes, fetch_per_exchange
from market_snapshots.utils.throttled_queue import ThrottledTaskQueue


def fetch_funding_rate(
    coins: Sequence[Coin],
    exchange: str,
    limit: int,
    adapter: ExchangeAdapter,
    queue: ThrottledTaskQueue,
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Fetch normalized funding-rate series for *coins* on one exchange.

    Issues no network calls itself and applies no retry: every coin becomes
    one queued ``adapter.fetch_funding_rate`` call.

    Returns:
        FetcherResult where len(successful) + len(failed) == len(coins)
    """
    return collect_outcomes(
        coins,
        queue,
        lambda coin: adapter.fetch_funding_rate(coin, limit),
        label=f"{exchange.upper()} FR",
        logger=logger,
    )


def fetch_fr(
    coin_groups: Mapping[str, Iterable[Coin]],
    limit: int,
    adapters: Mapping[str, ExchangeAdapter],
    queues: Mapping[str, ThrottledTaskQueue],
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Funding rates for every exchange group, merged into one result."""
    return fetch_per_exchange(
        coin_groups,
        queues,
        lambda exchange: lambda coin: adapters[exchange].fetch_funding_rate(coin, limit),
        "FR",
        logger,
    )
