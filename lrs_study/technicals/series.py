from __future__ import annotations

import numpy as np
import pandas as pd


def regression_value(closes: pd.Series, n: int) -> pd.Series:
    """
    Least-squares line over the trailing `n` closes, evaluated at the window's last bar.

    Mirrors TA-Lib's LINEARREG: the value of the fitted line (not its slope) at the
    endpoint. The result is indexed by absolute bar position and starts at `n - 1`.
    """
    n = int(n)
    if n < 2:
        raise ValueError("regression window must be >= 2")
    values = pd.to_numeric(closes, errors="coerce").astype("float64")
    if len(values) < n:
        return pd.Series([], index=pd.Index([], dtype="int64"), dtype="float64")

    x = np.arange(n, dtype="float64")
    x_mean = x.mean()
    x_dev = x - x_mean
    denom = float(np.sum(x_dev**2))

    def _endpoint(window: np.ndarray) -> float:
        y_mean = window.mean()
        slope = float(np.dot(x_dev, window - y_mean)) / denom
        return y_mean + slope * (n - 1 - x_mean)

    out = values.rolling(window=n, min_periods=n).apply(_endpoint, raw=True)
    return out.dropna()


def difference(series: pd.Series, *, bars: int, multiplier: float = 1.0, precision: int = 4) -> pd.Series:
    """
    `out[i] = round((series[i] - series[i - bars]) * multiplier, precision)`.

    The first `bars` defined positions have no lookback and are dropped; indices are
    never renumbered.
    """
    bars = int(bars)
    if bars <= 0:
        raise ValueError("difference bars must be > 0")
    values = series.dropna().astype("float64")
    if len(values) <= bars:
        return pd.Series([], index=pd.Index([], dtype="int64"), dtype="float64")
    out = (values - values.shift(bars)) * float(multiplier)
    return out.iloc[bars:].round(int(precision))


def lrs_series(
    closes: pd.Series,
    *,
    window: int,
    multiplier: float = 100.0,
    precision: int = 4,
) -> tuple[pd.Series, pd.Series, pd.Series]:
    """Regression, slope and slope-diff series for one tuning window."""
    lin_reg = regression_value(closes, window)
    slope = difference(lin_reg, bars=window, multiplier=multiplier, precision=precision)
    slope_diff = difference(slope, bars=1, multiplier=1.0, precision=precision)
    return lin_reg, slope, slope_diff
