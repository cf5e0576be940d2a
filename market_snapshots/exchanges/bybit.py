from market_snapshots.exchanges.base import ExchangeAdapter, parse_number, parse_timestamp
from market_snapshots.exchanges.funding_normalizer import distribute_bybit_funding
from market_snapshots.exchanges.urls import (
    BYBIT_BASE_URL,
    bybit_fr_url,
    bybit_kline_url,
    bybit_oi_url,
)
from market_snapshots.core.errors import InvalidResponseError, NoDataError
from market_snapshots.core.models import FundingObservation, KlineCandle, OpenInterestPoint
import ccxt

# Bybit v5 returns at most this many records per call, newest first
FR_PAGE_CAP = 200
KLINE_PAGE_CAP = 1000
OI_PAGE_CAP = 200


class BybitAdapter(ExchangeAdapter):
    name = 'bybit'

    def __init__(self, http_client=None, logger=None, base_url=BYBIT_BASE_URL):
        super().__init__(http_client, logger)
        self.base_url = base_url

    def _ccxt_client(self):
        exchange = ccxt.bybit()
        exchange.options['defaultType'] = 'swap'  # Use 'swap' instead of 'future'
        return exchange

    def _result(self, payload, symbol):
        """Validate the v5 envelope and return ``result``."""
        if not isinstance(payload, dict):
            raise InvalidResponseError(f"Invalid response for {symbol}")
        ret_code = payload.get('retCode', 0)
        if ret_code != 0:
            raise InvalidResponseError(f"Bybit error {ret_code}: {payload.get('retMsg')}")
        result = payload.get('result')
        if not isinstance(result, dict) or not isinstance(result.get('list'), list):
            raise InvalidResponseError(f"Invalid response for {symbol}")
        return result

    # ------------------------------------------------------------------
    # Funding rate
    # ------------------------------------------------------------------

    def fetch_funding_rate(self, coin, limit):
        return self._capture(coin, 'FR', lambda: self._funding_series(coin.symbol, limit))

    def _funding_series(self, symbol, limit):
        raw_data = []
        end_time = None

        while len(raw_data) < limit:
            # Always request a full page to minimise the number of calls
            payload = self._get(bybit_fr_url(symbol, FR_PAGE_CAP, end_time, self.base_url))
            page = self._result(payload, symbol)['list']

            if not page:
                if not raw_data:
                    raise NoDataError(f"No data for {symbol}")
                break  # end of history

            for entry in page:
                if not isinstance(entry, dict):
                    raise InvalidResponseError(f"Invalid funding entry for {symbol}")
                raw_data.append(FundingObservation(
                    funding_time=parse_timestamp(entry.get('fundingRateTimestamp'), 'fundingRateTimestamp'),
                    funding_rate=parse_number(entry.get('fundingRate'), 'fundingRate'),
                ))

            # endTime may be inclusive; the boundary record is deduplicated below.
            end_time = min(o.funding_time for o in raw_data[-len(page):])

            if len(page) < FR_PAGE_CAP:
                break

        unique = {}
        for observation in raw_data:
            unique[observation.funding_time] = observation
        ordered = [unique[t] for t in sorted(unique)]

        # Keep the most recent `limit` events before distribution
        return distribute_bybit_funding(ordered[-limit:])

    # ------------------------------------------------------------------
    # Klines
    # ------------------------------------------------------------------

    def fetch_klines(self, coin, interval, limit):
        return self._capture(coin, 'KLINE', lambda: self._kline_series(coin.symbol, interval, limit))

    def _kline_series(self, symbol, interval, limit):
        try:
            url = bybit_kline_url(symbol, interval, min(limit, KLINE_PAGE_CAP), self.base_url)
        except ValueError as e:
            raise InvalidResponseError(str(e))
        rows = self._result(self._get(url), symbol)['list']
        if not rows:
            raise NoDataError(f"No data for {symbol}")

        candles = {}
        for row in rows:
            # [startTime, open, high, low, close, volume, turnover]
            if not isinstance(row, list) or len(row) < 7:
                raise InvalidResponseError(f"Invalid kline row for {symbol}")
            open_time = parse_timestamp(row[0], 'startTime')
            candles[open_time] = KlineCandle(
                open_time=open_time,
                open=parse_number(row[1], 'open'),
                high=parse_number(row[2], 'high'),
                low=parse_number(row[3], 'low'),
                close=parse_number(row[4], 'close'),
                volume=parse_number(row[5], 'volume'),
                quote_volume=parse_number(row[6], 'turnover'),
            )
        return [candles[t] for t in sorted(candles)]

    # ------------------------------------------------------------------
    # Open interest
    # ------------------------------------------------------------------

    def fetch_open_interest(self, coin, period, limit):
        return self._capture(coin, 'OI', lambda: self._oi_series(coin.symbol, period, limit))

    def _oi_series(self, symbol, period, limit):
        """Cursor pagination via ``nextPageCursor``."""
        points = {}
        cursor = None

        while len(points) < limit:
            result = self._result(
                self._get(bybit_oi_url(symbol, period, OI_PAGE_CAP, cursor, self.base_url)),
                symbol,
            )
            page = result['list']
            if not page:
                if not points:
                    raise NoDataError(f"No data for {symbol}")
                break

            for entry in page:
                if not isinstance(entry, dict):
                    raise InvalidResponseError(f"Invalid open interest entry for {symbol}")
                ts = parse_timestamp(entry.get('timestamp'), 'timestamp')
                points[ts] = OpenInterestPoint(ts, parse_number(entry.get('openInterest'), 'openInterest'))

            cursor = result.get('nextPageCursor')
            if not cursor or len(page) < OI_PAGE_CAP:
                break

        return [points[t] for t in sorted(points)][-limit:]
