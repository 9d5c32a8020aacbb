from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from lrs_study.technicals.adapter import PriceHistory, standardize_ohlc

logger = logging.getLogger(__name__)


def load_ohlc_from_path(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"OHLC file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix in {".csv", ".txt"}:
        return pd.read_csv(path, index_col=0, parse_dates=True)
    raise ValueError("Unsupported OHLC file format (use .csv or .parquet)")


def load_price_history(path: Path) -> PriceHistory:
    history = PriceHistory(standardize_ohlc(load_ohlc_from_path(path)))
    logger.info("Loaded %s bars from %s", len(history), path)
    return history
