"""Tests for SnapshotStore and the logger setup

Tests cover:
- Save / load per timeframe
- Replacement of the previous snapshot
- Error handling on unwritable directories and unserializable data
"""

import logging

from market_snapshots.core.models import CoinMarketData, EnrichedCandle, MarketSnapshot
from market_snapshots.data.snapshot_store import SnapshotStore
from market_snapshots.utils.logger import setup_logger

T = 1_699_200_000_000


def make_snapshot(timeframe="4h", coins=1, funding_rate=0.0001):
    data = [
        CoinMarketData(
            symbol=f"C{i}USDT",
            exchanges=["binance"],
            category=0,
            candles=[EnrichedCandle(T, 1.0, 2.0, 0.5, 1.5, 10.0, 15.0, 99.0, funding_rate)],
        )
        for i in range(coins)
    ]
    return MarketSnapshot(timeframe=timeframe, open_time=T, updated_at=T + 1, coins_number=coins, data=data)


class TestSnapshotStore:

    def test_save_and_load(self, tmp_path):
        store = SnapshotStore(tmp_path / "snapshots")

        assert store.save("4h", make_snapshot()) is True

        loaded = store.load("4h")
        assert loaded["timeframe"] == "4h"
        assert loaded["coins_number"] == 1
        candle = loaded["data"][0]["candles"][0]
        assert candle["open_interest"] == 99.0
        assert candle["funding_rate"] == 0.0001
        assert (tmp_path / "snapshots" / "snapshot_4h.json").exists()

    def test_none_values_are_kept(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("8h", make_snapshot("8h", funding_rate=None))

        assert store.load("8h")["data"][0]["candles"][0]["funding_rate"] is None

    def test_save_replaces_previous(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("4h", make_snapshot(coins=1))
        store.save("4h", make_snapshot(coins=3))

        assert store.load("4h")["coins_number"] == 3
        # No temporary files left behind
        assert [p.name for p in tmp_path.iterdir()] == ["snapshot_4h.json"]

    def test_timeframes_are_independent(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("4h", make_snapshot("4h"))

        assert store.load("8h") is None
        assert store.load("4h") is not None

    def test_unwritable_dir_returns_false(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")

        assert SnapshotStore(blocker / "snapshots").save("4h", make_snapshot()) is False

    def test_unserializable_data_returns_false_and_cleans_up(self, tmp_path):
        snapshot = make_snapshot()
        snapshot.data[0].candles.append(object())

        store = SnapshotStore(tmp_path)

        assert store.save("4h", snapshot) is False
        assert list(tmp_path.iterdir()) == []


class TestSetupLogger:

    def test_handlers_are_replaced_not_stacked(self, tmp_path):
        log_file = tmp_path / "logs" / "test.log"

        setup_logger("market_snapshots.logger_test", log_file)
        logger = setup_logger("market_snapshots.logger_test", log_file, level=logging.DEBUG)

        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "INFO market_snapshots.logger_test: hello" in log_file.read_text(encoding="utf-8")

    def test_console_only(self):
        logger = setup_logger("market_snapshots.console_test")
        assert len(logger.handlers) == 1
