import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

import ccxt

from market_snapshots.core.errors import InvalidResponseError, MarketDataError
from market_snapshots.core.models import Coin, FetchFailure, FetchOutcome, FetchSuccess
from market_snapshots.exchanges.http_client import HttpClient


class ExchangeAdapter(ABC):
    """Per-exchange market data access.

    The ``fetch_*`` methods never raise for per-symbol problems: they return a
    ``FetchSuccess`` or a ``FetchFailure``.
    """

    name: str = ""

    def __init__(self, http_client: Optional[HttpClient] = None, logger: Optional[logging.Logger] = None):
        self.http = http_client or HttpClient()
        self.logger = logger or logging.getLogger(__name__)

    # Market Data Methods
    @abstractmethod
    def fetch_funding_rate(self, coin: Coin, limit: int) -> FetchOutcome:
        pass

    @abstractmethod
    def fetch_klines(self, coin: Coin, interval: str, limit: int) -> FetchOutcome:
        pass

    @abstractmethod
    def fetch_open_interest(self, coin: Coin, period: str, limit: int) -> FetchOutcome:
        pass

    @abstractmethod
    def _ccxt_client(self) -> ccxt.Exchange:
        pass

    def fetch_symbols(self) -> List[str]:
        """Exchange-native ids of active USDT-margined linear perpetuals."""
        exchange = self._ccxt_client()
        markets = exchange.load_markets()

        symbols = []
        for market in markets.values():
            if not (market.get('swap') and market.get('linear') and market.get('quote') == 'USDT'):
                continue
            if market.get('active') is False:
                continue
            # Skip non-ASCII tickers
            if not market['id'].isascii():
                continue
            symbols.append(market['id'])
        return sorted(set(symbols))

    # Per-symbol boundary
    def _capture(self, coin: Coin, label: str, produce: Callable[[], Sequence]) -> FetchOutcome:
        try:
            data = produce()
        except MarketDataError as e:
            self.logger.error(f"{coin.symbol} [{self.name.upper()} {label}] error: {e}")
            return FetchFailure(symbol=coin.symbol, error=str(e))
        return FetchSuccess(symbol=coin.symbol, exchanges=coin.exchanges, processed_data=tuple(data))

    def _get(self, url: str):
        return self.http.get_json(url).unwrap()


def parse_number(value, field: str) -> float:
    """Float conversion that reports malformed values as InvalidResponseError."""
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidResponseError(f"Invalid {field}: {value!r}")


def parse_timestamp(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidResponseError(f"Invalid {field}: {value!r}")
