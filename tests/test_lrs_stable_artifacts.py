from __future__ import annotations

from datetime import datetime, timezone
import math
from pathlib import Path

import pandas as pd
import pytest

from lrs_study.data.stable_artifacts import (
    STableArtifactError,
    read_stable_artifact,
    render_stable_csv,
    stable_artifact_path,
    write_stable_artifact,
)
from lrs_study.technicals.stable import build_stable
from tests.lrs_study_helpers import ZIGZAG_CLOSES, make_key, make_synthetic_ohlc

BUILT_AT = datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc)


def test_artifact_path_uses_table_name(tmp_path: Path) -> None:
    key = make_key("bullish")
    assert stable_artifact_path(tmp_path, key) == tmp_path / "s-tables" / f"{key.name}.csv"


def test_artifact_preserves_table(tmp_path: Path) -> None:
    closes = make_synthetic_ohlc(rows=300)["Close"]
    table = build_stable(closes, make_key("bearish", window=7, holding_period=5, multiple2=0.5))
    path = write_stable_artifact(stable_artifact_path(tmp_path, table.key), table, built_at=BUILT_AT)

    loaded, meta = read_stable_artifact(path)

    assert loaded.key == table.key
    assert loaded.rows == table.rows
    assert loaded.lrs_ext_std_dev == table.lrs_ext_std_dev
    assert meta.built_at == BUILT_AT
    assert meta.holding_period_days == 5


def test_empty_table_artifact(tmp_path: Path) -> None:
    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bearish"))
    path = write_stable_artifact(tmp_path / "empty.csv", table, built_at=BUILT_AT)

    loaded, _ = read_stable_artifact(path)
    assert loaded.rows == {}
    assert math.isnan(loaded.lrs_ext_std_dev)


def test_header_and_row_layout() -> None:
    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bullish"))
    lines = render_stable_csv(table, built_at=BUILT_AT).splitlines()

    header = lines[0].split(",")
    assert header[0] == table.key.name
    assert header[1:4] == ["TEST", "lrs", "bullish"]
    assert header[-1] == "2024-03-01T21:00:00+00:00"
    assert len(lines) == 2
    assert len(lines[1].split(",")) == 12
    assert lines[1].startswith("-233")


def test_missing_build_timestamp_falls_back_to_mtime(tmp_path: Path) -> None:
    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bullish"))
    text = render_stable_csv(table, built_at=BUILT_AT)
    header, _, body = text.partition("\n")
    path = tmp_path / "legacy.csv"
    path.write_text(header.rsplit(",", 1)[0] + "\n" + body, encoding="utf-8")

    loaded, meta = read_stable_artifact(path)
    assert loaded.key == table.key
    assert meta.built_at.tzinfo is not None
    assert abs(meta.built_at.timestamp() - path.stat().st_mtime) < 1.0


def test_malformed_artifacts_raise(tmp_path: Path) -> None:
    bad_header = tmp_path / "bad_header.csv"
    bad_header.write_text("only,two\n", encoding="utf-8")
    with pytest.raises(STableArtifactError):
        read_stable_artifact(bad_header)

    table = build_stable(pd.Series(ZIGZAG_CLOSES), make_key("bullish"))
    header = render_stable_csv(table, built_at=BUILT_AT).splitlines()[0]
    bad_row = tmp_path / "bad_row.csv"
    bad_row.write_text(header + "\n1,2,3\n", encoding="utf-8")
    with pytest.raises(STableArtifactError):
        read_stable_artifact(bad_row)

    with pytest.raises(STableArtifactError):
        read_stable_artifact(tmp_path / "missing.csv")
