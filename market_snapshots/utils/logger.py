import io
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Optional, TextIO

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S.%f'

_console_stream: Optional[TextIO] = None


class DotMsFormatter(logging.Formatter):
    """Formatter whose ``%f`` placeholder renders milliseconds (3 digits)."""

    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        ms = f"{int(record.msecs):03d}"
        if datefmt:
            return ct.strftime(datefmt.replace('%f', ms))
        return f"{ct.strftime('%Y-%m-%d %H:%M:%S')}.{ms}"


def _utf8_stdout() -> TextIO:
    # Non-ASCII tickers must not raise UnicodeEncodeError on cp1252 consoles.
    global _console_stream
    stream = sys.stdout
    encoding = (getattr(stream, "encoding", None) or "").lower().replace("-", "")
    if encoding == "utf8" or not hasattr(stream, "buffer"):
        return stream
    if _console_stream is None:
        _console_stream = io.TextIOWrapper(stream.buffer, encoding="utf-8", errors="replace")
    return _console_stream


def setup_logger(
    name: str,
    log_path: Optional[str | Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Console logger for *name*, plus a rotating file when *log_path* is set.

    Existing handlers are replaced, so jobs can be set up repeatedly in one
    process without duplicated lines.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = DotMsFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler(_utf8_stdout())
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
