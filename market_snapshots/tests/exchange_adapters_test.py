"""Tests for the Binance and Bybit adapters

Tests cover:
- Funding-rate fetch and normalization per exchange
- Bybit backward pagination and its stop conditions
- Error handling (transport, exchange error codes, malformed bodies, no data)
- Kline and open-interest parsing
- Symbol listing through ccxt
"""

from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from market_snapshots.core.models import (
    Coin,
    FetchFailure,
    FetchSuccess,
    KlineCandle,
    NormalizedCandle,
    OpenInterestPoint,
)
from market_snapshots.exchanges.binance import BinanceAdapter
from market_snapshots.exchanges.bybit import BybitAdapter
from market_snapshots.exchanges.http_client import HttpClient, HttpErr, HttpOk
from market_snapshots.exchanges.urls import bybit_fr_url

HOUR = 60 * 60 * 1000
T = 1_699_200_000_000
COIN = Coin(symbol="BTCUSDT", exchanges=frozenset({"binance", "bybit"}))


def make_http(*responses):
    """Mock HttpClient returning *responses* in order (plain payloads become HttpOk)."""
    http = Mock(spec=HttpClient)
    http.get_json.side_effect = [
        r if isinstance(r, (HttpOk, HttpErr)) else HttpOk(200, r) for r in responses
    ]
    return http


def query(call):
    return parse_qs(urlparse(call.args[0]).query)


def bybit_page(timestamps, rate=0.0001):
    return {
        "retCode": 0,
        "retMsg": "OK",
        "result": {
            "category": "linear",
            "list": [
                {"symbol": "BTCUSDT", "fundingRate": str(rate), "fundingRateTimestamp": str(ts)}
                for ts in timestamps
            ],
        },
    }


class TestBinanceFunding:

    def test_events_are_replicated_onto_4h_slots(self):
        http = make_http([
            {"symbol": "BTCUSDT", "fundingTime": T + 8 * HOUR, "fundingRate": "0.00020000"},
            {"symbol": "BTCUSDT", "fundingTime": T, "fundingRate": "0.00010000"},
        ])
        outcome = BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 400)

        assert isinstance(outcome, FetchSuccess)
        assert outcome.symbol == "BTCUSDT"
        assert outcome.exchanges == COIN.exchanges
        assert list(outcome.processed_data) == [
            NormalizedCandle(T, 0.0001),
            NormalizedCandle(T + 4 * HOUR, 0.0001),
            NormalizedCandle(T + 8 * HOUR, 0.0002),
            NormalizedCandle(T + 12 * HOUR, 0.0002),
        ]

    def test_limit_is_capped_per_request(self):
        http = make_http([{"fundingTime": T, "fundingRate": "0.0001"}])
        BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 5000)

        params = query(http.get_json.call_args)
        assert params["symbol"] == ["BTCUSDT"]
        assert params["limit"] == ["1000"]

    def test_http_error_becomes_failure(self):
        http = make_http(HttpErr(reason="HTTP 418", status=418))
        outcome = BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 10)

        assert outcome == FetchFailure(symbol="BTCUSDT", error="HTTP 418")

    def test_non_list_body_becomes_failure(self):
        http = make_http({"code": -1121, "msg": "Invalid symbol."})
        outcome = BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 10)

        assert isinstance(outcome, FetchFailure)
        assert "Invalid response" in outcome.error

    def test_empty_body_becomes_failure(self):
        http = make_http([])
        outcome = BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 10)

        assert isinstance(outcome, FetchFailure)
        assert "No data" in outcome.error

    def test_malformed_rate_becomes_failure(self):
        http = make_http([{"fundingTime": T, "fundingRate": "n/a"}])
        outcome = BinanceAdapter(http_client=http).fetch_funding_rate(COIN, 10)

        assert isinstance(outcome, FetchFailure)
        assert "fundingRate" in outcome.error


class TestBybitFundingPagination:

    def test_paginates_backwards_until_short_page(self):
        newest = T + 300 * 8 * HOUR
        page1 = [newest - i * 8 * HOUR for i in range(200)]
        # The inclusive endTime returns the boundary record again
        page2 = [newest - i * 8 * HOUR for i in range(199, 249)]
        http = make_http(bybit_page(page1), bybit_page(page2))

        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 300)

        assert isinstance(outcome, FetchSuccess)
        assert http.get_json.call_count == 2
        first, second = http.get_json.call_args_list
        assert "endTime" not in query(first)
        assert query(first)["limit"] == ["200"]
        assert query(second)["endTime"] == [str(min(page1))]

        # 249 unique 8h events -> 498 4h slots
        times = [c.open_time for c in outcome.processed_data]
        assert len(times) == 498
        assert times == sorted(set(times))
        assert times[0] == newest - 248 * 8 * HOUR

    def test_stops_once_limit_is_reached(self):
        newest = T + 300 * 8 * HOUR
        page1 = [newest - i * 8 * HOUR for i in range(200)]
        http = make_http(bybit_page(page1))

        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 150)

        assert http.get_json.call_count == 1
        times = [c.open_time for c in outcome.processed_data]
        # Trimmed to the 150 most recent events before distribution
        assert len(times) == 300
        assert times[0] == newest - 149 * 8 * HOUR
        assert times[-1] == newest + 4 * HOUR

    def test_short_first_page_stops_regardless_of_limit(self):
        http = make_http(bybit_page([T + 8 * HOUR, T]))

        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 1000)

        assert http.get_json.call_count == 1
        assert isinstance(outcome, FetchSuccess)
        assert len(outcome.processed_data) == 4

    def test_empty_later_page_ends_history(self):
        newest = T + 300 * 8 * HOUR
        page1 = [newest - i * 8 * HOUR for i in range(200)]
        http = make_http(bybit_page(page1), bybit_page([]))

        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 400)

        assert isinstance(outcome, FetchSuccess)
        assert len(outcome.processed_data) == 400

    def test_empty_first_page_is_failure(self):
        http = make_http(bybit_page([]))
        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 100)

        assert isinstance(outcome, FetchFailure)
        assert "No data" in outcome.error

    def test_exchange_error_code_is_failure(self):
        http = make_http({"retCode": 10001, "retMsg": "params error", "result": {}})
        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 100)

        assert isinstance(outcome, FetchFailure)
        assert "10001" in outcome.error

    def test_invalid_structure_on_later_page_is_failure(self):
        newest = T + 300 * 8 * HOUR
        page1 = [newest - i * 8 * HOUR for i in range(200)]
        http = make_http(bybit_page(page1), {"retCode": 0, "result": None})

        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 400)

        assert isinstance(outcome, FetchFailure)

    def test_transport_error_is_failure(self):
        http = make_http(HttpErr(reason="ConnectionError: reset"))
        outcome = BybitAdapter(http_client=http).fetch_funding_rate(COIN, 100)

        assert outcome == FetchFailure(symbol="BTCUSDT", error="ConnectionError: reset")

    def test_2h_cadence_is_averaged(self):
        page = {
            "retCode": 0,
            "result": {"list": [
                {"fundingRate": "0.0004", "fundingRateTimestamp": str(T + 6 * HOUR)},
                {"fundingRate": "-0.0002", "fundingRateTimestamp": str(T + 4 * HOUR)},
                {"fundingRate": "0.0003", "fundingRateTimestamp": str(T + 2 * HOUR)},
                {"fundingRate": "0.0001", "fundingRateTimestamp": str(T)},
            ]},
        }
        outcome = BybitAdapter(http_client=make_http(page)).fetch_funding_rate(COIN, 200)

        assert [c.open_time for c in outcome.processed_data] == [T, T + 4 * HOUR]
        assert outcome.processed_data[0].funding_rate == pytest.approx(0.0002)
        assert outcome.processed_data[1].funding_rate == pytest.approx(0.0001)


class TestKlines:

    def test_binance_rows_are_parsed(self):
        rows = [
            [T, "10", "12", "9", "11", "100", T + 4 * HOUR - 1, "1100", 5, "50", "550", "0"],
            [T + 4 * HOUR, "11", "13", "10", "12", "200", T + 8 * HOUR - 1, "2400", 7, "90", "1080", "0"],
        ]
        outcome = BinanceAdapter(http_client=make_http(rows)).fetch_klines(COIN, "4h", 2)

        assert list(outcome.processed_data) == [
            KlineCandle(T, 10.0, 12.0, 9.0, 11.0, 100.0, 1100.0),
            KlineCandle(T + 4 * HOUR, 11.0, 13.0, 10.0, 12.0, 200.0, 2400.0),
        ]

    def test_bybit_rows_are_sorted_ascending(self):
        body = {
            "retCode": 0,
            "result": {"list": [
                [str(T + 4 * HOUR), "11", "13", "10", "12", "200", "2400"],
                [str(T), "10", "12", "9", "11", "100", "1100"],
            ]},
        }
        http = make_http(body)
        outcome = BybitAdapter(http_client=http).fetch_klines(COIN, "4h", 2)

        assert [c.open_time for c in outcome.processed_data] == [T, T + 4 * HOUR]
        assert query(http.get_json.call_args)["interval"] == ["240"]

    def test_bybit_unknown_interval_is_failure(self):
        outcome = BybitAdapter(http_client=make_http()).fetch_klines(COIN, "8h", 2)
        assert isinstance(outcome, FetchFailure)

    def test_short_row_is_failure(self):
        outcome = BinanceAdapter(http_client=make_http([[T, "1"]])).fetch_klines(COIN, "4h", 1)
        assert isinstance(outcome, FetchFailure)


class TestOpenInterest:

    def test_binance_paginates_with_end_time(self):
        page1 = [{"timestamp": T - i * HOUR, "sumOpenInterest": str(1000 + i)} for i in range(500)]
        page2 = [{"timestamp": T - i * HOUR, "sumOpenInterest": str(1000 + i)} for i in range(500, 520)]
        http = make_http(page1, page2)

        outcome = BinanceAdapter(http_client=http).fetch_open_interest(COIN, "1h", 510)

        assert http.get_json.call_count == 2
        assert query(http.get_json.call_args_list[1])["endTime"] == [str(T - 499 * HOUR - 1)]
        assert len(outcome.processed_data) == 510
        assert outcome.processed_data[-1] == OpenInterestPoint(T, 1000.0)

    def test_bybit_follows_cursor(self):
        page1 = {
            "retCode": 0,
            "result": {
                "list": [{"openInterest": "5", "timestamp": str(T - i * HOUR)} for i in range(200)],
                "nextPageCursor": "abc",
            },
        }
        page2 = {
            "retCode": 0,
            "result": {
                "list": [{"openInterest": "4", "timestamp": str(T - i * HOUR)} for i in range(200, 210)],
                "nextPageCursor": "",
            },
        }
        http = make_http(page1, page2)

        outcome = BybitAdapter(http_client=http).fetch_open_interest(COIN, "1h", 720)

        assert query(http.get_json.call_args_list[1])["cursor"] == ["abc"]
        assert len(outcome.processed_data) == 210
        assert outcome.processed_data[0].open_time == T - 209 * HOUR


class TestSymbols:

    @patch("market_snapshots.exchanges.binance.ccxt")
    def test_only_active_usdt_linear_swaps(self, mock_ccxt):
        mock_ccxt.binance.return_value.load_markets.return_value = {
            "BTC/USDT:USDT": {"id": "BTCUSDT", "swap": True, "linear": True, "quote": "USDT", "active": True},
            "ETH/USDT:USDT": {"id": "ETHUSDT", "swap": True, "linear": True, "quote": "USDT"},
            "BTC/USDT": {"id": "BTCUSDT", "swap": False, "linear": None, "quote": "USDT"},
            "BTC/USD:BTC": {"id": "BTCUSD_PERP", "swap": True, "linear": False, "quote": "USD"},
            "OLD/USDT:USDT": {"id": "OLDUSDT", "swap": True, "linear": True, "quote": "USDT", "active": False},
        }

        symbols = BinanceAdapter(http_client=make_http()).fetch_symbols()

        assert symbols == ["BTCUSDT", "ETHUSDT"]


class TestUrls:

    def test_bybit_end_time_only_when_given(self):
        assert "endTime" not in bybit_fr_url("BTCUSDT", 200)
        assert "endTime=123" in bybit_fr_url("BTCUSDT", 200, end_time=123)
