from __future__ import annotations

from typing import Literal

import pandas as pd

ExtremeKind = Literal["max", "min"]


def forward_extreme_return(
    *,
    close_series: pd.Series,
    start_iloc: int,
    holding_period: int,
    kind: ExtremeKind,
) -> float | None:
    """
    Percent move to the highest (`max`) or lowest (`min`) close of the next `holding_period` bars.

    Definition (anchored on the signal bar's own close):
    - anchor = Close[i]
    - extreme = max/min(Close[i+1 : i+holding_period])
    - result = (extreme / anchor - 1) * 100

    The `max` result can be negative (every forward close below the anchor) and the `min`
    result can be positive.

    Returns None if:
    - holding period is invalid,
    - the series is too short to cover the full holding period,
    - the anchor close is missing/0.
    """
    holding_period = int(holding_period)
    start_iloc = int(start_iloc)
    if kind not in ("max", "min"):
        raise ValueError(f"Unknown extreme kind: {kind}")
    if holding_period <= 0:
        return None
    if start_iloc < 0 or start_iloc >= len(close_series):
        return None
    end_iloc = start_iloc + holding_period
    if end_iloc >= len(close_series):
        return None

    c0 = close_series.iloc[start_iloc]
    if c0 is None or pd.isna(c0) or float(c0) == 0.0:
        return None

    window = close_series.iloc[start_iloc + 1 : end_iloc + 1]
    extreme = window.max() if kind == "max" else window.min()
    if extreme is None or pd.isna(extreme):
        return None
    return (float(extreme) / float(c0) - 1.0) * 100.0


def forward_extremes(
    closes: pd.Series,
    *,
    kind: ExtremeKind,
    holding_period: int,
    precision: int = 4,
) -> pd.Series:
    """
    Forward extreme percent move for every bar that has a full holding period ahead.

    Indexed by absolute bar position; the trailing `holding_period` bars are absent
    rather than zero-filled.
    """
    closes = pd.to_numeric(closes, errors="coerce").astype("float64").reset_index(drop=True)
    if int(holding_period) <= 0:
        raise ValueError("holding_period must be > 0")

    values: dict[int, float] = {}
    for i in range(len(closes) - int(holding_period)):
        r = forward_extreme_return(
            close_series=closes,
            start_iloc=i,
            holding_period=holding_period,
            kind=kind,
        )
        if r is None:
            continue
        values[i] = round(r, int(precision))
    return pd.Series(values, index=pd.Index(list(values), dtype="int64"), dtype="float64")
