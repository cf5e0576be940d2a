"""Building blocks shared by the 4h and 8h jobs."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

from market_snapshots.core.config import load_settings
from market_snapshots.core.models import (
    Coin,
    CoinMarketData,
    FetcherResult,
    JobResult,
    MarketSnapshot,
)
from market_snapshots.core.timeframes import TIMEFRAME_MS, get_current_candle_time
from market_snapshots.fetchers.funding_fetcher import fetch_fr
from market_snapshots.fetchers.kline_fetcher import fetch_klines
from market_snapshots.fetchers.oi_fetcher import fetch_oi
from market_snapshots.jobs.context import JobContext, build_job_context
from market_snapshots.utils.logger import setup_logger

OI_PERIOD = "1h"
BASE_INTERVAL = "4h"


class JobStage(Enum):
    FETCHING = "fetching"            # OI, FR and base klines, concurrently
    DERIVING_OUTPUTS = "deriving_outputs"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def run_fetch_phases(
    context: JobContext,
    coin_groups: dict[str, list[Coin]],
    kline_limit: int,
    errors: list[str],
    label: str,
) -> tuple[FetcherResult, FetcherResult, FetcherResult]:
    """Fetch OI, funding rates and base 4h klines concurrently.

    Per-phase failure counts are appended to *errors*.
    """
    settings = context.settings
    adapters, queues, logger = context.adapters, context.queues, context.logger
    logger.info(f"[{label}] Stage: {JobStage.FETCHING.value}")

    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="job-phase") as pool:
        oi_future = pool.submit(
            fetch_oi, coin_groups, OI_PERIOD, settings.oi_h1_global, adapters, queues, logger
        )
        fr_future = pool.submit(
            fetch_fr, coin_groups, settings.fr_h4_recent, adapters, queues, logger
        )
        kline_future = pool.submit(
            fetch_klines, coin_groups, BASE_INTERVAL, kline_limit, adapters, queues, logger
        )
        oi_result = oi_future.result()
        fr_result = fr_future.result()
        kline_result = kline_future.result()

    if oi_result.failed:
        errors.append(f"OI fetch failed for {len(oi_result.failed)} coins")
    if fr_result.failed:
        errors.append(f"FR fetch failed for {len(fr_result.failed)} coins")
    if kline_result.failed:
        errors.append(f"{BASE_INTERVAL} Kline fetch failed for {len(kline_result.failed)} coins")

    return oi_result, fr_result, kline_result


def save_snapshot(
    context: JobContext,
    timeframe: str,
    enriched: list[CoinMarketData],
    errors: list[str],
) -> MarketSnapshot:
    """Wrap *enriched* in a snapshot stamped for *timeframe* and persist it."""
    now = context.clock()
    snapshot = MarketSnapshot(
        timeframe=timeframe,
        open_time=get_current_candle_time(TIMEFRAME_MS[timeframe], now),
        updated_at=now,
        coins_number=len(enriched),
        data=enriched,
    )
    if not context.store.save(timeframe, snapshot):
        errors.append(f"Failed to save {timeframe} snapshot")
    return snapshot


def failed_result(
    timeframe: str,
    exc: Exception,
    errors: list[str],
    started: float,
    logger: logging.Logger,
) -> JobResult:
    execution_time = elapsed_ms(started)
    logger.error(f"[JOB {timeframe}] Stage: {JobStage.FAILED.value} | {exc}", exc_info=True)
    return JobResult(
        success=False,
        timeframe=timeframe,
        total_coins=0,
        successful_coins=0,
        failed_coins=0,
        errors=[str(exc), *errors],
        execution_time=execution_time,
    )


def init_context(config_path: Optional[str] = None) -> JobContext:
    """Load settings, configure logging and build a context for a one-off run."""
    settings = load_settings(config_path)
    level = getattr(logging, settings.log_level, logging.INFO)
    logger = setup_logger("market_snapshots", settings.log_path, level=level)
    return build_job_context(settings, logger)
