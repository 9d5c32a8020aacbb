from __future__ import annotations

import pandas as pd
import pytest

from lrs_study.technicals.forward_extremes import forward_extreme_return, forward_extremes
from tests.lrs_study_helpers import ZIGZAG_CLOSES


def test_forward_extremes_anchor_on_signal_close() -> None:
    closes = pd.Series(ZIGZAG_CLOSES)
    ext_max = forward_extremes(closes, kind="max", holding_period=2)
    ext_min = forward_extremes(closes, kind="min", holding_period=2)

    assert ext_max.loc[6] == pytest.approx(100.0)
    assert ext_min.loc[6] == pytest.approx(-14.2857)


def test_forward_extremes_skip_bars_without_full_hold() -> None:
    closes = pd.Series(ZIGZAG_CLOSES)
    out = forward_extremes(closes, kind="max", holding_period=2)
    assert list(out.index) == list(range(0, 8))


def test_forward_max_can_be_negative() -> None:
    closes = pd.Series([10.0, 9.0, 8.0, 7.0])
    r = forward_extreme_return(close_series=closes, start_iloc=0, holding_period=3, kind="max")
    assert r == pytest.approx(-10.0)


def test_forward_extreme_return_none_cases() -> None:
    closes = pd.Series([0.0, 1.0, 2.0, 3.0])
    assert forward_extreme_return(close_series=closes, start_iloc=0, holding_period=2, kind="max") is None
    assert forward_extreme_return(close_series=closes, start_iloc=2, holding_period=2, kind="max") is None
    assert forward_extreme_return(close_series=closes, start_iloc=1, holding_period=0, kind="min") is None


def test_forward_extremes_rejects_bad_holding_period() -> None:
    with pytest.raises(ValueError):
        forward_extremes(pd.Series(ZIGZAG_CLOSES), kind="max", holding_period=0)
