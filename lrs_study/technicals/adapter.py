from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Iterable, Iterator, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

OHLC_COLUMNS = ["Open", "High", "Low", "Close"]


@dataclass(frozen=True)
class PriceBar:
    date: date
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class PriceHistory:
    """
    Daily bars ordered oldest first; bar number `i` is the i-th row.

    Backed by a DataFrame with a DatetimeIndex and Open/High/Low/Close columns.
    """

    frame: pd.DataFrame

    def __len__(self) -> int:
        return len(self.frame)

    def __iter__(self) -> Iterator[PriceBar]:
        for ts, row in self.frame.iterrows():
            yield PriceBar(
                date=pd.Timestamp(ts).date(),
                open=float(row["Open"]),
                high=float(row["High"]),
                low=float(row["Low"]),
                close=float(row["Close"]),
            )

    @property
    def closes(self) -> pd.Series:
        """Closes indexed by bar number 0..N-1."""
        return self.frame["Close"].astype("float64").reset_index(drop=True)

    @property
    def dates(self) -> list[date]:
        return [pd.Timestamp(ts).date() for ts in self.frame.index]

    @property
    def last_date(self) -> date | None:
        if self.frame.empty:
            return None
        return pd.Timestamp(self.frame.index[-1]).date()

    def tail(self, bars: int) -> PriceHistory:
        return PriceHistory(self.frame.iloc[-int(bars) :] if bars > 0 else self.frame.iloc[0:0])

    @classmethod
    def from_bars(cls, bars: Sequence[PriceBar]) -> PriceHistory:
        frame = pd.DataFrame(
            {
                "Open": [b.open for b in bars],
                "High": [b.high for b in bars],
                "Low": [b.low for b in bars],
                "Close": [b.close for b in bars],
            },
            index=pd.DatetimeIndex([pd.Timestamp(b.date) for b in bars]),
            dtype="float64",
        )
        return cls(standardize_ohlc(frame))

    @classmethod
    def from_closes(cls, closes: Iterable[float], *, start: str = "2020-01-01") -> PriceHistory:
        """Bars with O=H=L=C on consecutive business days; handy for close-only studies."""
        values = [float(c) for c in closes]
        idx = pd.bdate_range(start, periods=len(values))
        frame = pd.DataFrame({col: values for col in OHLC_COLUMNS}, index=idx, dtype="float64")
        return cls(frame)


def standardize_ohlc(df: pd.DataFrame, *, dropna_ohlc: bool = True) -> pd.DataFrame:
    """
    Normalize an OHLC frame to Open/High/Low/Close float columns on a sorted, de-duplicated,
    tz-naive DatetimeIndex.
    """
    if df is None:
        raise ValueError("OHLC input is None")
    if df.empty:
        return pd.DataFrame(columns=OHLC_COLUMNS, index=pd.DatetimeIndex([]), dtype="float64")

    out = df.copy()
    col_map: dict[str, str] = {}
    lower_cols = {str(c).strip().lower(): c for c in out.columns}
    for col in out.columns:
        key = str(col).strip().lower()
        if key in {"open", "high", "low", "close"}:
            col_map[col] = key.title()
        elif key in {"adj close", "adj_close", "adjclose"} and "close" not in lower_cols:
            col_map[col] = "Close"
    out = out.rename(columns=col_map)

    missing = [c for c in OHLC_COLUMNS if c not in out.columns]
    if missing:
        raise ValueError(f"Missing required OHLC columns: {missing}")

    out = _normalize_datetime_index(out)

    if out.index.has_duplicates:
        dupes = out.index.duplicated(keep="last")
        logger.warning("Dropping %s duplicate OHLC rows", dupes.sum())
        out = out.loc[~dupes]

    if not out.index.is_monotonic_increasing:
        out = out.sort_index()

    for col in OHLC_COLUMNS:
        out[col] = pd.to_numeric(out[col], errors="coerce")

    if dropna_ohlc:
        before = len(out)
        out = out.dropna(subset=OHLC_COLUMNS)
        dropped = before - len(out)
        if dropped:
            logger.warning("Dropped %s OHLC rows with missing values", dropped)

    out = out[OHLC_COLUMNS].astype("float64")

    high_bad = int((out["High"] < np.maximum(out["Open"], out["Close"])).sum())
    low_bad = int((out["Low"] > np.minimum(out["Open"], out["Close"])).sum())
    if high_bad:
        logger.warning("High < max(Open, Close) on %s rows", high_bad)
    if low_bad:
        logger.warning("Low > min(Open, Close) on %s rows", low_bad)
    return out


def _normalize_datetime_index(frame: pd.DataFrame) -> pd.DataFrame:
    out = frame
    if not isinstance(out.index, pd.DatetimeIndex):
        lower_names = {str(c).lower() for c in out.columns}
        for candidate in ("date", "datetime", "timestamp"):
            if candidate not in lower_names:
                continue
            col_name = next(c for c in out.columns if str(c).lower() == candidate)
            idx = pd.to_datetime(out[col_name], errors="coerce", utc=True)
            out = out.drop(columns=[col_name])
            out.index = idx
            break
    if not isinstance(out.index, pd.DatetimeIndex):
        raise ValueError("OHLC DataFrame must have a DatetimeIndex or a date-like column")
    idx = pd.to_datetime(out.index, errors="coerce", utc=True)
    if idx.isna().all():
        raise ValueError("Unable to parse OHLC index as datetimes")
    out = out.loc[~idx.isna()].copy()
    out.index = idx[~idx.isna()].tz_localize(None)
    return out
