from __future__ import annotations

import pandas as pd
import pytest

from lrs_study.technicals.series import difference, lrs_series, regression_value
from tests.lrs_study_helpers import ZIGZAG_CLOSES


def test_regression_value_is_fitted_line_endpoint() -> None:
    out = regression_value(pd.Series(ZIGZAG_CLOSES), 3)

    assert list(out.index) == list(range(2, 10))
    expected = [9.5, 11.1667, 9.1667, 11.5, 8.8333, 11.8333, 8.5, 12.1667]
    assert out.tolist() == pytest.approx(expected, abs=1e-4)


def test_regression_value_on_a_straight_line_returns_the_line() -> None:
    closes = pd.Series([2.0 * i + 1.0 for i in range(8)])
    out = regression_value(closes, 4)
    assert out.tolist() == pytest.approx(closes.iloc[3:].tolist())


def test_regression_value_short_history_is_empty() -> None:
    assert regression_value(pd.Series([1.0, 2.0]), 3).empty


def test_regression_value_rejects_degenerate_window() -> None:
    with pytest.raises(ValueError):
        regression_value(pd.Series(ZIGZAG_CLOSES), 1)


def test_difference_keeps_absolute_bar_numbers() -> None:
    series = pd.Series([1.0, 3.0, 6.0, 10.0], index=[4, 5, 6, 7])
    out = difference(series, bars=2, multiplier=10.0)

    assert list(out.index) == [6, 7]
    assert out.tolist() == pytest.approx([50.0, 70.0])


def test_lrs_series_slope_and_diff() -> None:
    lin_reg, slope, slope_diff = lrs_series(pd.Series(ZIGZAG_CLOSES), window=3)

    assert lin_reg.index.min() == 2
    assert list(slope.index) == [5, 6, 7, 8, 9]
    assert slope.tolist() == pytest.approx([200.0, -233.3333, 266.6667, -300.0, 333.3333], abs=1e-4)
    assert list(slope_diff.index) == [6, 7, 8, 9]
    assert slope_diff.tolist() == pytest.approx([-433.3333, 500.0, -566.6667, 633.3333], abs=1e-4)


def test_lrs_series_rounds_to_precision() -> None:
    _, slope, _ = lrs_series(pd.Series(ZIGZAG_CLOSES), window=3, precision=1)
    assert slope.loc[6] == pytest.approx(-233.3)
