from __future__ import annotations

import itertools

import pandas as pd
import pytest

from lrs_study.technicals.peaks import detect_peaks, exceeds_threshold, is_sign_reversal
from lrs_study.technicals.series import lrs_series
from tests.lrs_study_helpers import ZIGZAG_CLOSES


def test_sides_never_fire_on_the_same_bar() -> None:
    values = [-2.0, -0.5, 0.0, 0.5, 2.0]
    for now, nxt in itertools.product(values, values):
        assert not (is_sign_reversal("bullish", now, nxt) and is_sign_reversal("bearish", now, nxt))


def test_zero_diff_is_not_a_reversal() -> None:
    assert not is_sign_reversal("bullish", 0.0, 1.0)
    assert not is_sign_reversal("bearish", 1.0, 0.0)


def test_detect_peaks_build_mode() -> None:
    _, slope, slope_diff = lrs_series(pd.Series(ZIGZAG_CLOSES), window=3)

    assert detect_peaks(side="bullish", slope=slope, slope_diff=slope_diff, start=6, end=7) == [6]
    assert detect_peaks(side="bearish", slope=slope, slope_diff=slope_diff, start=6, end=7) == []
    # The last bar has no next slope-diff and is never evaluated.
    assert detect_peaks(side="bullish", slope=slope, slope_diff=slope_diff, start=6, end=10) == [6, 8]
    assert detect_peaks(side="bearish", slope=slope, slope_diff=slope_diff, start=0, end=10) == [7]


def test_detect_peaks_live_threshold() -> None:
    _, slope, slope_diff = lrs_series(pd.Series(ZIGZAG_CLOSES), window=3)

    kwargs = dict(side="bullish", slope=slope, slope_diff=slope_diff, start=6, end=9)
    assert detect_peaks(**kwargs, threshold=250.0) == [8]
    assert detect_peaks(**kwargs, threshold=1000.0) == []
    assert detect_peaks(**kwargs, threshold=float("nan")) == []


def test_exceeds_threshold_by_side() -> None:
    assert exceeds_threshold("bullish", -5.0, 4.0)
    assert not exceeds_threshold("bullish", -3.0, 4.0)
    assert exceeds_threshold("bearish", 5.0, 4.0)
    assert not exceeds_threshold("bearish", -5.0, 4.0)
    with pytest.raises(ValueError):
        exceeds_threshold("sideways", 1.0, 0.0)  # type: ignore[arg-type]
