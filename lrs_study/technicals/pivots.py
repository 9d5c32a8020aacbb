from __future__ import annotations

from typing import Mapping

import pandas as pd

from lrs_study.technicals.bins import BinKey

TOTAL = "total"


def build_pivot(rows: Mapping[int, BinKey], columns: Mapping[int, BinKey]) -> pd.DataFrame:
    """
    Count co-occurrences of row bins and column bins over the same bar indices.

    The result carries a synthetic `total` column (per-row count) and a `total` row
    (per-column count); both exist only so rows can be normalized.
    """
    missing = set(rows) ^ set(columns)
    if missing:
        raise ValueError(f"Row and column populations disagree on {len(missing)} bar(s)")
    if not rows:
        return pd.DataFrame({TOTAL: pd.Series([], dtype="int64")})

    keys = sorted(rows)
    row_bins = pd.Series([rows[k] for k in keys], index=keys, name="row")
    col_bins = pd.Series([columns[k] for k in keys], index=keys, name="column")
    counts = pd.crosstab(row_bins, col_bins)
    counts.index.name = None
    counts.columns.name = None
    counts[TOTAL] = counts.sum(axis=1)
    counts.loc[TOTAL] = counts.sum(axis=0)
    return counts.astype("int64")


def normalize_pivot(pivot: pd.DataFrame) -> pd.DataFrame:
    """Row-wise percentages rounded to 2 decimals, with the `total` row and column dropped."""
    body = pivot.drop(index=TOTAL, errors="ignore")
    if body.empty:
        return body.drop(columns=TOTAL, errors="ignore").astype("float64")
    totals = body[TOTAL].astype("float64")
    cells = body.drop(columns=TOTAL).astype("float64")
    return cells.div(totals, axis=0).mul(100.0).round(2)


def row_distribution(normalized: pd.DataFrame, row: BinKey) -> list[tuple[BinKey, float]]:
    """Occupied `(column bin, pct)` pairs of one normalized row, ascending by bin."""
    if row not in normalized.index:
        return []
    line = normalized.loc[row]
    pairs = [(col, float(pct)) for col, pct in line.items() if float(pct) > 0.0]
    return sorted(pairs, key=lambda pair: pair[0])
