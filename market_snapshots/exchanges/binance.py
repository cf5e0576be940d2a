from market_snapshots.exchanges.base import ExchangeAdapter, parse_number, parse_timestamp
from market_snapshots.exchanges.funding_normalizer import distribute_binance_funding
from market_snapshots.exchanges.urls import (
    BINANCE_BASE_URL,
    binance_fr_url,
    binance_kline_url,
    binance_oi_url,
)
from market_snapshots.core.errors import InvalidResponseError, NoDataError
from market_snapshots.core.models import FundingObservation, KlineCandle, OpenInterestPoint
import ccxt

# Per-request caps of the Binance USD-M endpoints
FR_PAGE_CAP = 1000
KLINE_PAGE_CAP = 1500
OI_PAGE_CAP = 500


class BinanceAdapter(ExchangeAdapter):
    name = 'binance'

    def __init__(self, http_client=None, logger=None, base_url=BINANCE_BASE_URL):
        super().__init__(http_client, logger)
        self.base_url = base_url

    def _ccxt_client(self):
        exchange = ccxt.binance()
        exchange.options['defaultType'] = 'future'
        return exchange

    # ------------------------------------------------------------------
    # Funding rate
    # ------------------------------------------------------------------

    def fetch_funding_rate(self, coin, limit):
        return self._capture(coin, 'FR', lambda: self._funding_series(coin.symbol, limit))

    def _funding_series(self, symbol, limit):
        raw = self._get(binance_fr_url(symbol, min(limit, FR_PAGE_CAP), self.base_url))

        if not isinstance(raw, list):
            raise InvalidResponseError(f"Invalid response for {symbol}")
        if not raw:
            raise NoDataError(f"No data for {symbol}")

        observations = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise InvalidResponseError(f"Invalid funding entry for {symbol}")
            observations.append(FundingObservation(
                funding_time=parse_timestamp(entry.get('fundingTime'), 'fundingTime'),
                funding_rate=parse_number(entry.get('fundingRate'), 'fundingRate'),
            ))

        return distribute_binance_funding(observations)

    # ------------------------------------------------------------------
    # Klines
    # ------------------------------------------------------------------

    def fetch_klines(self, coin, interval, limit):
        return self._capture(coin, 'KLINE', lambda: self._kline_series(coin.symbol, interval, limit))

    def _kline_series(self, symbol, interval, limit):
        raw = self._get(binance_kline_url(symbol, interval, min(limit, KLINE_PAGE_CAP), self.base_url))

        if not isinstance(raw, list):
            raise InvalidResponseError(f"Invalid response for {symbol}")
        if not raw:
            raise NoDataError(f"No data for {symbol}")

        candles = {}
        for row in raw:
            # [openTime, open, high, low, close, volume, closeTime, quoteVolume, ...]
            if not isinstance(row, list) or len(row) < 8:
                raise InvalidResponseError(f"Invalid kline row for {symbol}")
            open_time = parse_timestamp(row[0], 'openTime')
            candles[open_time] = KlineCandle(
                open_time=open_time,
                open=parse_number(row[1], 'open'),
                high=parse_number(row[2], 'high'),
                low=parse_number(row[3], 'low'),
                close=parse_number(row[4], 'close'),
                volume=parse_number(row[5], 'volume'),
                quote_volume=parse_number(row[7], 'quoteVolume'),
            )
        return [candles[t] for t in sorted(candles)]

    # ------------------------------------------------------------------
    # Open interest
    # ------------------------------------------------------------------

    def fetch_open_interest(self, coin, period, limit):
        return self._capture(coin, 'OI', lambda: self._oi_series(coin.symbol, period, limit))

    def _oi_series(self, symbol, period, limit):
        """Backward pagination: each page ends just before the oldest point seen."""
        points = {}
        end_time = None

        while len(points) < limit:
            raw = self._get(binance_oi_url(symbol, period, OI_PAGE_CAP, end_time, self.base_url))
            if not isinstance(raw, list):
                raise InvalidResponseError(f"Invalid response for {symbol}")
            if not raw:
                if not points:
                    raise NoDataError(f"No data for {symbol}")
                break

            for entry in raw:
                if not isinstance(entry, dict):
                    raise InvalidResponseError(f"Invalid open interest entry for {symbol}")
                ts = parse_timestamp(entry.get('timestamp'), 'timestamp')
                points[ts] = OpenInterestPoint(ts, parse_number(entry.get('sumOpenInterest'), 'sumOpenInterest'))

            end_time = min(parse_timestamp(e.get('timestamp'), 'timestamp') for e in raw) - 1
            if len(raw) < OI_PAGE_CAP:
                break

        return [points[t] for t in sorted(points)][-limit:]
