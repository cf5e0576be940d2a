"""
Funding-rate normalization onto the 4h candle grid.

Exchanges report funding at their own cadence; downstream candles are 4h.
Every series produced here is ascending by ``open_time`` with one entry per
``open_time`` (last write wins).

    8h cadence  ──  one event → two 4h slots (bucket, bucket + 4h), same rate
    4h cadence  ──  one event → one slot
    2h cadence  ──  two events → one slot, arithmetic mean of the rates
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from market_snapshots.core.models import FundingObservation, NormalizedCandle
from market_snapshots.core.timeframes import normalize_time

TWO_HOURS_MS = 2 * 60 * 60 * 1000
FOUR_HOURS_MS = 4 * 60 * 60 * 1000
EIGHT_HOURS_MS = 8 * 60 * 60 * 1000

# A measured delta below 1.5x a cadence is classified as that cadence.
_CADENCE_TOLERANCE = 1.5


def dedupe_by_open_time(candles: Iterable[NormalizedCandle]) -> list[NormalizedCandle]:
    """Collapse entries sharing an ``open_time`` (last wins) and sort ascending."""
    unique: dict[int, float] = {}
    for candle in candles:
        unique[candle.open_time] = candle.funding_rate
    return [NormalizedCandle(t, rate) for t, rate in sorted(unique.items())]


def _replicate_8h(observation: FundingObservation) -> list[NormalizedCandle]:
    bucket = normalize_time(observation.funding_time, EIGHT_HOURS_MS)
    return [
        NormalizedCandle(bucket, observation.funding_rate),
        NormalizedCandle(bucket + FOUR_HOURS_MS, observation.funding_rate),
    ]


def distribute_binance_funding(
    observations: Iterable[FundingObservation],
) -> list[NormalizedCandle]:
    """Binance reports every 8h: replicate each event onto both 4h halves."""
    ordered = sorted(observations, key=lambda o: o.funding_time)
    distributed: list[NormalizedCandle] = []
    for observation in ordered:
        distributed.extend(_replicate_8h(observation))
    return dedupe_by_open_time(distributed)


def detect_funding_interval(observations: Sequence[FundingObservation]) -> int:
    """Classify the cadence from the two most recent events.

    *observations* must be sorted ascending and hold at least two events.
    A delta exactly on a 1.5x boundary falls into the next cadence up.
    """
    if len(observations) < 2:
        raise ValueError("At least two observations are needed to detect the cadence")
    delta = observations[-1].funding_time - observations[-2].funding_time
    # Strict: a delta exactly on a boundary rounds up to the longer cadence.
    if delta < TWO_HOURS_MS * _CADENCE_TOLERANCE:
        return TWO_HOURS_MS
    if delta < FOUR_HOURS_MS * _CADENCE_TOLERANCE:
        return FOUR_HOURS_MS
    return EIGHT_HOURS_MS


def distribute_bybit_funding(
    observations: Iterable[FundingObservation],
) -> list[NormalizedCandle]:
    """Bybit cadence varies per symbol (2h/4h/8h) and is detected per series.

    Returns an empty series when fewer than two events are available.
    """
    ordered = sorted(observations, key=lambda o: o.funding_time)
    if len(ordered) < 2:
        return []

    interval = detect_funding_interval(ordered)
    distributed: list[NormalizedCandle] = []

    if interval == EIGHT_HOURS_MS:
        for observation in ordered:
            distributed.extend(_replicate_8h(observation))
    elif interval == FOUR_HOURS_MS:
        for observation in ordered:
            distributed.append(
                NormalizedCandle(
                    normalize_time(observation.funding_time, FOUR_HOURS_MS),
                    observation.funding_rate,
                )
            )
    else:
        rates_by_candle: dict[int, list[float]] = defaultdict(list)
        for observation in ordered:
            slot = normalize_time(observation.funding_time, TWO_HOURS_MS)
            rates_by_candle[normalize_time(slot, FOUR_HOURS_MS)].append(observation.funding_rate)
        for open_time, rates in rates_by_candle.items():
            distributed.append(NormalizedCandle(open_time, sum(rates) / len(rates)))

    return dedupe_by_open_time(distributed)
