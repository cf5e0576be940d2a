"""Wiring shared by the snapshot jobs.

Build one ``JobContext`` per process and pass it to every job run, so that
all jobs share the same per-exchange throttled queues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from market_snapshots.core.config import Settings
from market_snapshots.core.timeframes import now_ms
from market_snapshots.data.snapshot_store import SnapshotStore
from market_snapshots.exchanges.base import ExchangeAdapter
from market_snapshots.exchanges.binance import BinanceAdapter
from market_snapshots.exchanges.bybit import BybitAdapter
from market_snapshots.exchanges.http_client import HttpClient
from market_snapshots.fetchers.coin_fetcher import CoinProvider
from market_snapshots.utils.throttled_queue import ThrottledTaskQueue, build_exchange_queues


@dataclass
class JobContext:
    settings: Settings
    coin_provider: CoinProvider
    adapters: dict[str, ExchangeAdapter]
    queues: dict[str, ThrottledTaskQueue]
    store: SnapshotStore
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("market_snapshots"))
    clock: Callable[[], int] = now_ms


def build_job_context(settings: Settings, logger: Optional[logging.Logger] = None) -> JobContext:
    logger = logger or logging.getLogger("market_snapshots")
    http_client = HttpClient(timeout=settings.request_timeout)
    adapters: dict[str, ExchangeAdapter] = {
        "binance": BinanceAdapter(http_client=http_client, logger=logger),
        "bybit": BybitAdapter(http_client=http_client, logger=logger),
    }
    return JobContext(
        settings=settings,
        coin_provider=CoinProvider(
            adapters,
            excluded_symbols=settings.excluded_symbols,
            categories=settings.coin_categories,
            logger=logger,
        ),
        adapters=adapters,
        queues=build_exchange_queues(settings, logger=logger),
        store=SnapshotStore(settings.snapshot_dir, logger=logger),
        logger=logger,
    )
