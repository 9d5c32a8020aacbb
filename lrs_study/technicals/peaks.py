from __future__ import annotations

import math
from typing import Literal

import pandas as pd

Side = Literal["bullish", "bearish"]
SIDES: tuple[Side, Side] = ("bullish", "bearish")


def is_sign_reversal(side: Side, diff_now: float, diff_next: float) -> bool:
    """Bullish trough: slope-diff turns - to +. Bearish peak: + to -."""
    if side == "bullish":
        return diff_now < 0 and diff_next > 0
    if side == "bearish":
        return diff_now > 0 and diff_next < 0
    raise ValueError(f"Unknown side: {side}")


def exceeds_threshold(side: Side, slope: float, threshold: float) -> bool:
    """Bullish needs slope < -threshold, bearish slope > +threshold. NaN never passes."""
    if math.isnan(threshold) or math.isnan(slope):
        return False
    if side == "bullish":
        return slope < -threshold
    if side == "bearish":
        return slope > threshold
    raise ValueError(f"Unknown side: {side}")


def detect_peaks(
    *,
    side: Side,
    slope: pd.Series,
    slope_diff: pd.Series,
    start: int,
    end: int,
    threshold: float | None = None,
) -> list[int]:
    """
    Bar indices in `[start, end)` where the side's sign reversal occurs.

    Build mode passes `threshold=None` so every local extremum of the slope counts.
    Live mode passes the table's slope std-dev so only extreme readings are flagged.
    Bars without a defined slope-diff at `i` and `i + 1` are skipped.
    """
    peaks: list[int] = []
    for i in range(int(start), int(end)):
        diff_now = slope_diff.get(i)
        diff_next = slope_diff.get(i + 1)
        if diff_now is None or diff_next is None or pd.isna(diff_now) or pd.isna(diff_next):
            continue
        if not is_sign_reversal(side, float(diff_now), float(diff_next)):
            continue
        if threshold is not None:
            slope_val = slope.get(i)
            if slope_val is None or pd.isna(slope_val):
                continue
            if not exceeds_threshold(side, float(slope_val), float(threshold)):
                continue
        peaks.append(i)
    return peaks
