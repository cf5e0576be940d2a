"""Error taxonomy.

Per-symbol errors (``MarketDataError`` and subclasses) are caught at the fetch
boundary and turned into ``FetchFailure`` values. ``JobFatalError`` escapes
per-symbol isolation and ends a job run with ``success=False``.
"""


class MarketDataError(Exception):
    """Base class for errors raised while fetching one symbol."""


class TransportError(MarketDataError):
    """Network failure or non-success HTTP status."""


class InvalidResponseError(MarketDataError):
    """Malformed body, or an exchange-level error code."""


class NoDataError(MarketDataError):
    """The exchange returned no records at all for the symbol."""


class JobFatalError(Exception):
    """Error that aborts a whole job run (e.g. the coin list is unavailable)."""
