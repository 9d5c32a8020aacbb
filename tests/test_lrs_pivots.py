from __future__ import annotations

from decimal import Decimal

import pytest

from lrs_study.technicals.bins import BinKey
from lrs_study.technicals.intervals import confidence_bounds, tail_trim_pct
from lrs_study.technicals.pivots import TOTAL, build_pivot, normalize_pivot, row_distribution


def _k(value: str) -> BinKey:
    return BinKey(Decimal(value))


def _populations() -> tuple[dict[int, BinKey], dict[int, BinKey]]:
    rows = {1: _k("-3"), 2: _k("-3"), 3: _k("-3"), 4: _k("-1"), 5: _k("-1"), 6: _k("-3")}
    columns = {1: _k("2"), 2: _k("2"), 3: _k("-1"), 4: _k("5"), 5: _k("2"), 6: _k("7")}
    return rows, columns


def test_build_pivot_counts_with_totals() -> None:
    rows, columns = _populations()
    pivot = build_pivot(rows, columns)

    assert pivot.loc[_k("-3"), _k("2")] == 2
    assert pivot.loc[_k("-3"), TOTAL] == 4
    assert pivot.loc[_k("-1"), TOTAL] == 2
    assert pivot.loc[TOTAL, _k("2")] == 3
    assert pivot.loc[TOTAL, TOTAL] == 6


def test_normalized_rows_sum_to_hundred() -> None:
    rows, columns = _populations()
    normalized = normalize_pivot(build_pivot(rows, columns))

    assert TOTAL not in normalized.index
    assert TOTAL not in normalized.columns
    for _, line in normalized.iterrows():
        assert abs(float(line.sum()) - 100.0) <= 0.5
    assert normalized.loc[_k("-3"), _k("2")] == pytest.approx(50.0)
    assert normalized.loc[_k("-1"), _k("5")] == pytest.approx(50.0)


def test_row_distribution_skips_empty_cells() -> None:
    rows, columns = _populations()
    normalized = normalize_pivot(build_pivot(rows, columns))

    dist = row_distribution(normalized, _k("-1"))
    assert dist == [(_k("2"), pytest.approx(50.0)), (_k("5"), pytest.approx(50.0))]
    assert row_distribution(normalized, _k("99")) == []


def test_build_pivot_requires_matching_populations() -> None:
    with pytest.raises(ValueError):
        build_pivot({1: _k("1")}, {2: _k("1")})


def test_empty_pivot_normalizes_to_empty() -> None:
    assert normalize_pivot(build_pivot({}, {})).empty


def test_tail_trim_pct() -> None:
    assert tail_trim_pct(80) == pytest.approx(10.0)
    assert tail_trim_pct(100) == pytest.approx(0.0)
    with pytest.raises(ValueError):
        tail_trim_pct(0)


def test_confidence_bounds_trim_each_tail() -> None:
    dist = [(_k("-2"), 5.0), (_k("-1"), 10.0), (_k("0"), 70.0), (_k("1"), 15.0)]

    assert confidence_bounds(dist, 80) == (_k("-1"), _k("1"))
    assert confidence_bounds(dist, 50) == (_k("0"), _k("0"))
    assert confidence_bounds(dist, 100) == (_k("-2"), _k("1"))


def test_confidence_bounds_single_bin_and_empty() -> None:
    assert confidence_bounds([(_k("100"), 100.0)], 80) == (_k("100"), _k("100"))
    assert confidence_bounds([], 80) == (None, None)
