"""
Queue-backed fan-out / fan-in shared by the funding, kline and OI fetchers.

One task per coin goes into the exchange's ``ThrottledTaskQueue``; every
future is awaited (no early exit on failure) and the per-symbol outcomes are
partitioned into a ``FetcherResult``. All exchange groups are enqueued before
any of them is awaited, so each exchange queue drains on its own.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Callable, Iterable, Mapping, Optional, Sequence

from market_snapshots.core.models import (
    Coin,
    CoinMarketData,
    FailedCoin,
    FetcherResult,
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
)
from market_snapshots.utils.throttled_queue import ThrottledTaskQueue

FetchOne = Callable[[Coin], FetchOutcome]
Pending = list[tuple[Coin, "Future[FetchOutcome]"]]


def enqueue_outcomes(
    coins: Sequence[Coin],
    queue: ThrottledTaskQueue,
    fetch_one: FetchOne,
    label: str,
    logger: Optional[logging.Logger] = None,
) -> Pending:
    """Submit *fetch_one* for every coin to *queue* without waiting."""
    logger = logger or logging.getLogger(__name__)
    logger.info(f"[{label}] Queueing {len(coins)} tasks ...")
    return [(coin, queue.add(lambda coin=coin: fetch_one(coin))) for coin in coins]


def gather_outcomes(
    pending: Pending,
    label: str,
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Wait for every future of *pending* and partition the outcomes."""
    logger = logger or logging.getLogger(__name__)

    successful: list[CoinMarketData] = []
    failed: list[FailedCoin] = []
    for coin, future in pending:
        try:
            outcome = future.result()
        except Exception as exc:
            logger.error(f"{coin.symbol} [{label}] unexpected error: {exc}", exc_info=True)
            outcome = FetchFailure(symbol=coin.symbol, error=str(exc))

        if isinstance(outcome, FetchSuccess):
            successful.append(CoinMarketData(
                symbol=outcome.symbol,
                exchanges=sorted(outcome.exchanges),
                category=coin.category,
                candles=list(outcome.processed_data),
            ))
        else:
            failed.append(FailedCoin(symbol=outcome.symbol, error=outcome.error))

    log = logger.info if successful else logger.warning
    log(f"[{label}] ✓ Successful: {len(successful)} | ✗ Failed: {len(failed)}")
    return FetcherResult(successful=successful, failed=failed)


def collect_outcomes(
    coins: Sequence[Coin],
    queue: ThrottledTaskQueue,
    fetch_one: FetchOne,
    label: str,
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Run *fetch_one* for every coin through *queue* and aggregate."""
    return gather_outcomes(enqueue_outcomes(coins, queue, fetch_one, label, logger), label, logger)


def fetch_per_exchange(
    coin_groups: Mapping[str, Iterable[Coin]],
    queues: Mapping[str, ThrottledTaskQueue],
    fetch_one_for: Callable[[str], FetchOne],
    kind: str,
    logger: Optional[logging.Logger] = None,
) -> FetcherResult:
    """Fan every non-empty exchange group out to its own queue, then merge.

    *fetch_one_for* maps an exchange name to its per-coin fetch; *kind* ends
    the log label, e.g. ``"FR"`` gives ``"BINANCE FR"``.
    """
    submitted = []
    for exchange, coins in coin_groups.items():
        coins = list(coins)
        if not coins:
            continue
        label = f"{exchange.upper()} {kind}"
        submitted.append((label, enqueue_outcomes(coins, queues[exchange], fetch_one_for(exchange), label, logger)))

    result = FetcherResult()
    for label, pending in submitted:
        result = result.merge(gather_outcomes(pending, label, logger))
    return result
