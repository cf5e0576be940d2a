"""
URL builders for the public Binance USD-M Futures and Bybit v5 endpoints.

    GET https://fapi.binance.com/fapi/v1/fundingRate?symbol=BTCUSDT&limit=1000
    GET https://api.bybit.com/v5/market/funding/history?category=linear&symbol=BTCUSDT&limit=200
"""

from typing import Optional
from urllib.parse import urlencode

BINANCE_BASE_URL = "https://fapi.binance.com"
BYBIT_BASE_URL = "https://api.bybit.com"

# Bybit kline intervals are minutes (or D/W/M).
_BYBIT_INTERVALS = {
    "1h": "60",
    "2h": "120",
    "4h": "240",
    "1d": "D",
}


def _build(base_url: str, path: str, params: dict) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return f"{base_url.rstrip('/')}{path}?{query}"


def binance_fr_url(symbol: str, limit: int, base_url: str = BINANCE_BASE_URL) -> str:
    return _build(base_url, "/fapi/v1/fundingRate", {"symbol": symbol, "limit": limit})


def bybit_fr_url(
    symbol: str,
    limit: int,
    end_time: Optional[int] = None,
    base_url: str = BYBIT_BASE_URL,
) -> str:
    return _build(
        base_url,
        "/v5/market/funding/history",
        {"category": "linear", "symbol": symbol, "limit": limit, "endTime": end_time},
    )


def binance_kline_url(symbol: str, interval: str, limit: int, base_url: str = BINANCE_BASE_URL) -> str:
    return _build(
        base_url,
        "/fapi/v1/klines",
        {"symbol": symbol, "interval": interval, "limit": limit},
    )


def bybit_kline_url(symbol: str, interval: str, limit: int, base_url: str = BYBIT_BASE_URL) -> str:
    if interval not in _BYBIT_INTERVALS:
        raise ValueError(f"Unsupported Bybit kline interval: {interval}")
    return _build(
        base_url,
        "/v5/market/kline",
        {
            "category": "linear",
            "symbol": symbol,
            "interval": _BYBIT_INTERVALS[interval],
            "limit": limit,
        },
    )


def binance_oi_url(
    symbol: str,
    period: str,
    limit: int,
    end_time: Optional[int] = None,
    base_url: str = BINANCE_BASE_URL,
) -> str:
    return _build(
        base_url,
        "/futures/data/openInterestHist",
        {"symbol": symbol, "period": period, "limit": limit, "endTime": end_time},
    )


def bybit_oi_url(
    symbol: str,
    period: str,
    limit: int,
    cursor: Optional[str] = None,
    base_url: str = BYBIT_BASE_URL,
) -> str:
    return _build(
        base_url,
        "/v5/market/open-interest",
        {
            "category": "linear",
            "symbol": symbol,
            "intervalTime": period,
            "limit": limit,
            "cursor": cursor,
        },
    )
