"""
Local persistence for market snapshots.

One JSON file per timeframe under ``data/snapshots/``::

    snapshot_4h.json
    snapshot_8h.json

Each save replaces the previous snapshot for that timeframe (no history).
Writes go to a temporary file first and are moved into place with
``os.replace`` so readers never see a half-written snapshot.

Usage::

    store = SnapshotStore(data_dir="data/snapshots", logger=logger)
    store.save("4h", snapshot)
    latest = store.load("4h")
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from market_snapshots.core.models import MarketSnapshot


class SnapshotStore:
    """
    Parameters
    ----------
    data_dir : str | Path
        Directory holding one JSON file per timeframe.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(self, data_dir: str | Path, logger: Optional[logging.Logger] = None) -> None:
        self.data_dir = Path(data_dir)
        self.logger = logger or logging.getLogger(__name__)

    def _path(self, timeframe: str) -> Path:
        return self.data_dir / f"snapshot_{timeframe}.json"

    def save(self, timeframe: str, snapshot: MarketSnapshot) -> bool:
        """Persist *snapshot* as the latest for *timeframe*.

        Returns ``False`` (and logs) on I/O errors instead of raising, so a
        failed timeframe never blocks saving another one.
        """
        path = self._path(timeframe)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".snapshot_{timeframe}.", suffix=".tmp", dir=self.data_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            self.logger.error(f"[{timeframe}] Failed to save snapshot to {path}: {exc}")
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

        self.logger.debug(f"[{timeframe}] Snapshot saved to {path} ({snapshot.coins_number} coins).")
        return True

    def load(self, timeframe: str) -> Optional[dict]:
        """Return the stored snapshot for *timeframe* as a dict, or ``None``."""
        path = self._path(timeframe)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
