"""Coin list provider.

Lists the active USDT-margined linear perpetuals on every configured exchange
and merges them into ``Coin`` objects keyed by the exchange-native id, so that
``BTCUSDT`` listed on both venues becomes one coin with
``exchanges={'binance', 'bybit'}``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

import ccxt

from market_snapshots.core.errors import JobFatalError
from market_snapshots.core.models import Coin
from market_snapshots.exchanges.base import ExchangeAdapter


class CoinProvider:
    """
    Parameters
    ----------
    adapters : Mapping[str, ExchangeAdapter]
        Exchange name → adapter used for symbol listing.
    excluded_symbols : Iterable[str]
        Ids never returned (e.g. delisting or illiquid tickers).
    categories : Mapping[str, int]
        Optional per-symbol category; unknown symbols get 0.
    """

    def __init__(
        self,
        adapters: Mapping[str, ExchangeAdapter],
        excluded_symbols: Iterable[str] = (),
        categories: Optional[Mapping[str, int]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.excluded_symbols = {s.upper() for s in excluded_symbols}
        self.categories = dict(categories or {})
        self.logger = logger or logging.getLogger(__name__)

    def fetch_coins(self) -> list[Coin]:
        """Return the merged coin list, sorted by symbol.

        Raises:
            JobFatalError: if any exchange listing fails or no coin is found
        """
        listings: dict[str, set[str]] = {}
        for exchange_name, adapter in self.adapters.items():
            try:
                symbols = adapter.fetch_symbols()
            except (ccxt.BaseError, OSError) as e:
                raise JobFatalError(f"Coin list unavailable from {exchange_name}: {e}") from e
            self.logger.info(f"Fetched {len(symbols)} symbols from {exchange_name}")
            for symbol in symbols:
                listings.setdefault(symbol, set()).add(exchange_name)

        coins = [
            Coin(
                symbol=symbol,
                exchanges=frozenset(exchanges),
                category=self.categories.get(symbol, 0),
            )
            for symbol, exchanges in sorted(listings.items())
            if symbol.upper() not in self.excluded_symbols
        ]
        if not coins:
            raise JobFatalError("Coin list is empty")
        return coins
