"""4h Snapshot Job

The job:
1. Fetches the coin list and splits it by exchange
2. Fetches 1h OI, 4h funding rates and 4h klines (concurrently)
3. Enriches the klines with OI + FR
4. Saves the 4h snapshot

Designed to run every 4h via an external scheduler.

Usage:
    python -m market_snapshots.jobs.job_4h
"""

import sys
import time

from market_snapshots.core.models import JobResult
from market_snapshots.core.timeframes import split_coins_by_exchange
from market_snapshots.jobs.common import (
    JobStage,
    elapsed_ms,
    failed_result,
    init_context,
    run_fetch_phases,
    save_snapshot,
)
from market_snapshots.jobs.context import JobContext
from market_snapshots.processors.enricher import enrich_klines

TIMEFRAME = "4h"


def run_4h_job(context: JobContext) -> JobResult:
    """Run one 4h snapshot job.

    Per-symbol failures only show up in ``errors`` and ``failed_coins``;
    ``success`` is False only when the run itself aborts.
    """
    started = time.monotonic()
    label = f"JOB {TIMEFRAME}"
    logger = context.logger
    errors = []

    try:
        coins = context.coin_provider.fetch_coins()
        logger.info(f"[{label}] Starting job for {len(coins)} coins")

        coin_groups = split_coins_by_exchange(coins)
        oi_result, fr_result, kline_result = run_fetch_phases(
            context, coin_groups, context.settings.kline_h4_direct, errors, label
        )

        logger.info(f"[{label}] Stage: {JobStage.DERIVING_OUTPUTS.value}")
        enriched = enrich_klines(kline_result.successful, oi_result, TIMEFRAME, fr_result)

        logger.info(f"[{label}] Stage: {JobStage.PERSISTING.value}")
        save_snapshot(context, TIMEFRAME, enriched, errors)

        execution_time = elapsed_ms(started)
        logger.info(f"[{label}] Stage: {JobStage.DONE.value} | ✓ Completed in {execution_time}ms | 4h: {len(enriched)} coins")

        return JobResult(
            success=True,
            timeframe=TIMEFRAME,
            total_coins=len(coins),
            successful_coins=len(enriched),
            failed_coins=len(kline_result.failed),
            errors=errors,
            execution_time=execution_time,
        )
    except Exception as e:
        return failed_result(TIMEFRAME, e, errors, started, logger)


def main(config_path=None) -> int:
    result = run_4h_job(init_context(config_path))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
