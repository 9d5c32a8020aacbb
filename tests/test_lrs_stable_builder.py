from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
import math
from pathlib import Path

import pandas as pd
import pytest

from lrs_study.data.stable_artifacts import read_stable_artifact, write_stable_artifact
from lrs_study.technicals.bins import BinKey
from lrs_study.technicals.stable import (
    EmptyPopulationError,
    MisalignedSeriesError,
    MissingBinError,
    STable,
    STableRow,
    _RowSamples,
    align_series,
    build_stable,
    population_stats,
    summarize_row,
)
from tests.lrs_study_helpers import ZIGZAG_CLOSES, make_key, make_synthetic_ohlc


def test_zigzag_bullish_table() -> None:
    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bullish"))

    assert list(table.rows) == [BinKey(Decimal("-233"))]
    row = table.row_for(BinKey(Decimal("-233")))
    assert row.ext_max_avg == pytest.approx(100.0)
    assert row.ext_min_avg == pytest.approx(-14.2857)
    assert row.ext_max_std_dev == 0.0
    assert row.ext_min_std_dev == 0.0
    assert row.ext_max_odds == 1.0
    assert row.ext_min_odds == 0.0
    assert row.lrs_ext_std_dev == 0.0
    assert row.ext_max_from == BinKey(Decimal("100"))
    assert row.ext_max_to == BinKey(Decimal("100"))
    assert row.ext_min_from == BinKey(Decimal("-15"))
    assert row.ext_min_to == BinKey(Decimal("-15"))
    assert table.lrs_ext_std_dev == 0.0
    assert table.lrs_ext_max == table.lrs_ext_min == BinKey(Decimal("-233"))


def test_zigzag_bearish_table_is_empty() -> None:
    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bearish"))

    assert table.rows == {}
    assert math.isnan(table.lrs_ext_std_dev)
    assert table.lrs_ext_max is None
    with pytest.raises(MissingBinError):
        table.row_for(BinKey(Decimal("1")))


def test_table_name_format() -> None:
    key = make_key("bullish", window=14, holding_period=5, multiple=1.0, multiple2=0.5, symbol="spy")
    assert key.name == "SPY_lrs_s-table_bullish01-14_c080_d05_m11.00_m20.50"


def test_build_is_deterministic() -> None:
    closes = make_synthetic_ohlc(rows=260)["Close"]
    key = make_key("bearish", window=5, holding_period=5)
    assert build_stable(closes, key) == build_stable(closes, key)


@pytest.mark.parametrize("side", ["bullish", "bearish"])
def test_synthetic_table_invariants(side: str) -> None:
    closes = make_synthetic_ohlc(rows=400)["Close"]
    table = build_stable(closes, make_key(side, window=6, holding_period=5))

    assert table.rows
    assert table.lrs_ext_std_dev > 0
    for bin_key, row in table.rows.items():
        if side == "bullish":
            assert 0.0 <= row.ext_max_odds <= 1.0
            assert row.ext_min_odds == 0.0
        else:
            assert 0.0 <= row.ext_min_odds <= 1.0
            assert row.ext_max_odds == 0.0
        assert row.ext_max_std_dev >= 0.0
        assert row.ext_min_std_dev >= 0.0
        assert row.ext_max_from <= row.ext_max_to
        assert row.ext_min_from <= row.ext_min_to
        assert row.lrs_ext_std_dev == table.lrs_ext_std_dev
        assert float(bin_key) == round(float(bin_key))


def test_population_stats_uses_population_std_dev() -> None:
    mean, std_dev = population_stats([1.0, 3.0])
    assert mean == pytest.approx(2.0)
    assert std_dev == pytest.approx(1.0)
    with pytest.raises(EmptyPopulationError):
        population_stats([])


def test_short_history_is_misaligned() -> None:
    with pytest.raises(MisalignedSeriesError):
        build_stable(pd.Series(ZIGZAG_CLOSES[:6]), make_key("bullish"))


def test_align_series_rejects_gaps() -> None:
    full = pd.Series([1.0, 2.0, 3.0, 4.0], index=[0, 1, 2, 3])
    gapped = pd.Series([1.0, 4.0], index=[1, 3])

    assert align_series({"a": full, "b": pd.Series([1.0, 2.0], index=[2, 3])}, end=3) == (2, 3)
    with pytest.raises(MisalignedSeriesError):
        align_series({"a": full, "b": gapped}, end=3)
    with pytest.raises(MisalignedSeriesError):
        align_series({"a": full, "b": pd.Series([], dtype="float64")}, end=3)


def test_empty_row_falls_back_to_nan(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="lrs_study.technicals.stable"):
        stats = summarize_row(_RowSamples(), lrs_ext_std_dev=1.5, label="empty")

    assert stats["lrs_ext_std_dev"] == 1.5
    for name, value in stats.items():
        if name != "lrs_ext_std_dev":
            assert math.isnan(value), name
    assert "Empty population for empty ext_max" in caplog.text

    key = make_key("bullish")
    row = STableRow(**stats, ext_max_from=None, ext_max_to=None, ext_min_from=None, ext_min_to=None)
    table = STable(key=key, rows={BinKey(Decimal("-3")): row}, lrs_ext_std_dev=1.5)
    path = write_stable_artifact(tmp_path / "empty.csv", table, built_at=datetime(2024, 3, 1, tzinfo=timezone.utc))

    loaded, _ = read_stable_artifact(path)
    again = loaded.row_for(BinKey(Decimal("-3")))
    assert again.lrs_ext_std_dev == 1.5
    assert loaded.lrs_ext_std_dev == 1.5
    for name in ("ext_max_avg", "ext_max_std_dev", "ext_min_avg", "ext_min_std_dev", "ext_max_odds", "ext_min_odds"):
        assert math.isnan(getattr(again, name)), name
    assert again.ext_max_from is None
