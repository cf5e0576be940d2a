from dataclasses import dataclass, field, asdict
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class Coin:
    symbol: str                  # exchange-native id, e.g. "BTCUSDT"
    exchanges: frozenset = frozenset()
    category: int = 0


@dataclass(frozen=True)
class FundingObservation:
    funding_time: int            # ms epoch, as reported by the exchange
    funding_rate: float


@dataclass(frozen=True)
class NormalizedCandle:
    open_time: int               # ms epoch, on the 4h grid
    funding_rate: float


@dataclass(frozen=True)
class KlineCandle:
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float


@dataclass(frozen=True)
class OpenInterestPoint:
    open_time: int
    open_interest: float


@dataclass(frozen=True)
class EnrichedCandle:
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float
    open_interest: Optional[float] = None
    funding_rate: Optional[float] = None


# Per-symbol fetch outcome

@dataclass(frozen=True)
class FetchSuccess:
    symbol: str
    exchanges: frozenset
    processed_data: tuple


@dataclass(frozen=True)
class FetchFailure:
    symbol: str
    error: str


FetchOutcome = Union[FetchSuccess, FetchFailure]


@dataclass
class CoinMarketData:
    symbol: str
    exchanges: List[str]
    category: int
    candles: List[Any]


@dataclass
class FailedCoin:
    symbol: str
    error: str


@dataclass
class FetcherResult:
    successful: List[CoinMarketData] = field(default_factory=list)
    failed: List[FailedCoin] = field(default_factory=list)

    def merge(self, other: "FetcherResult") -> "FetcherResult":
        return FetcherResult(
            successful=self.successful + other.successful,
            failed=self.failed + other.failed,
        )


@dataclass
class MarketSnapshot:
    timeframe: str
    open_time: int
    updated_at: int
    coins_number: int
    data: List[CoinMarketData]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class JobResult:
    success: bool
    timeframe: str
    total_coins: int
    successful_coins: int
    failed_coins: int
    errors: List[str]
    execution_time: int          # ms
