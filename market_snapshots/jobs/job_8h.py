"""8h Snapshot Job

The job:
1. Fetches the coin list and splits it by exchange
2. Fetches 1h OI, 4h funding rates and ONE base set of 4h klines
   (KLINE.h4_base candles, enough to cover the 8h window), concurrently
3. 4h output: base trimmed to SAVE_LIMIT + OI + FR -> saved as 4h
4. 8h output: base combined pairwise into 8h candles + OI + FR -> saved as 8h

Both outputs are derived from the same base set, so they never disagree
about the underlying candles and the exchanges are queried once.

Usage:
    python -m market_snapshots.jobs.job_8h
"""

import sys
import time

from market_snapshots.core.models import JobResult
from market_snapshots.core.timeframes import split_coins_by_exchange
from market_snapshots.jobs.common import (
    BASE_INTERVAL,
    JobStage,
    elapsed_ms,
    failed_result,
    init_context,
    run_fetch_phases,
    save_snapshot,
)
from market_snapshots.jobs.context import JobContext
from market_snapshots.processors.combiner import combine_coin_results
from market_snapshots.processors.enricher import enrich_klines, trim_candles

TIMEFRAME = "8h"


def run_8h_job(context: JobContext) -> JobResult:
    """Run one 8h snapshot job (also refreshes the 4h snapshot)."""
    started = time.monotonic()
    label = f"JOB {TIMEFRAME}"
    logger = context.logger
    settings = context.settings
    errors = []

    try:
        coins = context.coin_provider.fetch_coins()
        logger.info(f"[{label}] Starting job for {len(coins)} coins")

        coin_groups = split_coins_by_exchange(coins)
        oi_result, fr_result, base_result = run_fetch_phases(
            context, coin_groups, settings.kline_h4_base, errors, label
        )

        # 4h: most recent SAVE_LIMIT candles of the base set
        logger.info(f"[{label}] Stage: {JobStage.DERIVING_OUTPUTS.value} (4h)")
        trimmed_4h = trim_candles(base_result.successful, settings.save_limit)
        enriched_4h = enrich_klines(trimmed_4h, oi_result, BASE_INTERVAL, fr_result)

        logger.info(f"[{label}] Stage: {JobStage.PERSISTING.value} (4h)")
        save_snapshot(context, BASE_INTERVAL, enriched_4h, errors)
        logger.info(f"[{label}] ✓ Saved 4h: {len(enriched_4h)} coins")

        # 8h: pairwise combination of the same base set
        logger.info(f"[{label}] Stage: {JobStage.DERIVING_OUTPUTS.value} (8h)")
        combined_8h = combine_coin_results(base_result.successful, BASE_INTERVAL, TIMEFRAME)
        enriched_8h = enrich_klines(combined_8h, oi_result, TIMEFRAME, fr_result)

        logger.info(f"[{label}] Stage: {JobStage.PERSISTING.value} (8h)")
        save_snapshot(context, TIMEFRAME, enriched_8h, errors)

        execution_time = elapsed_ms(started)
        logger.info(f"[{label}] Stage: {JobStage.DONE.value} | ✓ Completed in {execution_time}ms | Saved 8h: {len(enriched_8h)} coins")

        return JobResult(
            success=True,
            timeframe=TIMEFRAME,
            total_coins=len(coins),
            successful_coins=len(enriched_8h),
            failed_coins=len(base_result.failed),
            errors=errors,
            execution_time=execution_time,
        )
    except Exception as e:
        return failed_result(TIMEFRAME, e, errors, started, logger)


def main(config_path=None) -> int:
    result = run_8h_job(init_context(config_path))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
