"""Configuration loading.

Settings live in ``config/market_snapshots_config.json`` at the project root.
Every key is optional; missing keys fall back to the defaults below.

Example::

    {
        "throttling": {"batch_size": 2, "delay": {"binance": 600, "bybit": 600}},
        "fr": {"h4_recent": 401},
        "oi": {"h1_global": 720},
        "kline": {"h4_direct": 400, "h4_base": 801},
        "save_limit": 400,
        "snapshot_dir": "data/snapshots"
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Resolve project root (two levels up from this file: market_snapshots/core/ -> root)
ROOT = Path(__file__).resolve().parents[2]

DEFAULT_CONFIG_PATH = ROOT / "config" / "market_snapshots_config.json"

DEFAULT_BATCH_SIZE = 2
DEFAULT_DELAY_MS = 600


@dataclass
class ThrottlingSettings:
    batch_size: int = DEFAULT_BATCH_SIZE
    delay_ms: dict[str, int] = field(
        default_factory=lambda: {"binance": DEFAULT_DELAY_MS, "bybit": DEFAULT_DELAY_MS}
    )

    def delay_for(self, exchange: str) -> int:
        return self.delay_ms.get(exchange.lower(), DEFAULT_DELAY_MS)


@dataclass
class Settings:
    throttling: ThrottlingSettings = field(default_factory=ThrottlingSettings)
    fr_h4_recent: int = 401          # 4h funding slots per symbol
    oi_h1_global: int = 720          # 1h OI points per symbol (30 days)
    kline_h4_direct: int = 400       # 4h candles for the 4h job
    kline_h4_base: int = 801         # 4h candles covering the 8h window
    save_limit: int = 400            # 4h candles kept when trimming the base set
    request_timeout: float = 10
    snapshot_dir: Path = ROOT / "data" / "snapshots"
    log_path: Path = ROOT / "logs" / "market_snapshots.log"
    log_level: str = "INFO"
    excluded_symbols: list[str] = field(default_factory=list)
    coin_categories: dict[str, int] = field(default_factory=dict)


def load_config(config_path: str) -> dict:
    """Load configuration from JSON file.

    Args:
        config_path: Path to config JSON file

    Returns:
        Dictionary with configuration parameters
    """
    with open(config_path, 'r') as f:
        return json.load(f)


def _resolve(path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else ROOT / p


def settings_from_dict(config: dict) -> Settings:
    """Map a raw config dictionary onto :class:`Settings`."""
    defaults = Settings()

    throttling_cfg = config.get("throttling", {})
    delay_cfg = {k.lower(): int(v) for k, v in throttling_cfg.get("delay", {}).items()}
    throttling = ThrottlingSettings(
        batch_size=int(throttling_cfg.get("batch_size", DEFAULT_BATCH_SIZE)),
        delay_ms={**defaults.throttling.delay_ms, **delay_cfg},
    )
    if throttling.batch_size < 1:
        raise ValueError("throttling.batch_size must be at least 1")

    return Settings(
        throttling=throttling,
        fr_h4_recent=int(config.get("fr", {}).get("h4_recent", defaults.fr_h4_recent)),
        oi_h1_global=int(config.get("oi", {}).get("h1_global", defaults.oi_h1_global)),
        kline_h4_direct=int(config.get("kline", {}).get("h4_direct", defaults.kline_h4_direct)),
        kline_h4_base=int(config.get("kline", {}).get("h4_base", defaults.kline_h4_base)),
        save_limit=int(config.get("save_limit", defaults.save_limit)),
        request_timeout=float(config.get("request_timeout", defaults.request_timeout)),
        snapshot_dir=_resolve(config["snapshot_dir"]) if "snapshot_dir" in config else defaults.snapshot_dir,
        log_path=_resolve(config["log_path"]) if "log_path" in config else defaults.log_path,
        log_level=str(config.get("log_level", defaults.log_level)).upper(),
        excluded_symbols=list(config.get("excluded_symbols", [])),
        coin_categories={k: int(v) for k, v in config.get("coin_categories", {}).items()},
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from *config_path*, or the default config file.

    A missing default file yields the built-in defaults; an explicitly given
    path must exist.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return Settings()
        config_path = str(DEFAULT_CONFIG_PATH)
    return settings_from_dict(load_config(config_path))
