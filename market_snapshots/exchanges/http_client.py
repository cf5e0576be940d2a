"""
Thin JSON-over-HTTP client shared by the exchange adapters.

``get_json`` never raises: it returns ``HttpOk`` with the decoded body, or
``HttpErr`` with a human-readable reason. Adapters call ``unwrap()`` to turn
an ``HttpErr`` into a ``TransportError`` inside their per-symbol boundary.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Optional, Union

import requests

from market_snapshots.core.errors import TransportError

_REQUEST_TIMEOUT = 10
_POOL_SIZE = 8

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]


@dataclass(frozen=True)
class HttpOk:
    status: int
    payload: Any

    def unwrap(self) -> Any:
        return self.payload


@dataclass(frozen=True)
class HttpErr:
    reason: str
    status: Optional[int] = None

    def unwrap(self) -> Any:
        raise TransportError(self.reason)


HttpResult = Union[HttpOk, HttpErr]


class HttpClient:
    """
    Pooled ``requests`` session with a per-request timeout.

    Parameters
    ----------
    timeout : float
        Seconds before a request is abandoned.
    pool_size : int
        Connection pool size per host.
    """

    def __init__(self, timeout: float = _REQUEST_TIMEOUT, pool_size: int = _POOL_SIZE) -> None:
        self.timeout = timeout
        self._session = self._build_session(pool_size)

    def get_json(self, url: str, headers: Optional[dict] = None) -> HttpResult:
        request_headers = {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        try:
            resp = self._session.get(url, headers=request_headers, timeout=self.timeout)
        except requests.RequestException as exc:
            return HttpErr(reason=f"{type(exc).__name__}: {exc}")

        if not resp.ok:
            return HttpErr(reason=f"HTTP {resp.status_code}", status=resp.status_code)

        try:
            return HttpOk(status=resp.status_code, payload=resp.json())
        except ValueError as exc:
            return HttpErr(reason=f"Invalid JSON body: {exc}", status=resp.status_code)

    @staticmethod
    def _build_session(pool_size: int) -> requests.Session:
        session = requests.Session()
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=pool_size,
            pool_maxsize=pool_size * 2,
        )
        session.mount("https://", adapter)
        return session
