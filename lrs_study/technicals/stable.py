from __future__ import annotations

from dataclasses import dataclass, field, fields
import logging
from typing import Iterable, Mapping

import numpy as np
import pandas as pd

from lrs_study.technicals.bins import BinKey, BinPolicy, discretize
from lrs_study.technicals.forward_extremes import forward_extremes
from lrs_study.technicals.intervals import confidence_bounds
from lrs_study.technicals.peaks import Side, detect_peaks
from lrs_study.technicals.pivots import build_pivot, normalize_pivot, row_distribution
from lrs_study.technicals.series import lrs_series

logger = logging.getLogger(__name__)

STAT_PRECISION = 4


class MisalignedSeriesError(ValueError):
    pass


class EmptyPopulationError(ValueError):
    pass


class MissingBinError(LookupError):
    pass


@dataclass(frozen=True)
class Tuning:
    window: int
    line: int = 1

    @property
    def label(self) -> str:
        return f"{self.line:02d}-{self.window:02d}"


@dataclass(frozen=True)
class IndicatorParams:
    slope_multiplier: float = 100.0
    precision: int = 4


@dataclass(frozen=True)
class STableKey:
    symbol: str
    study: str
    side: Side
    tuning: Tuning
    conf_level: int
    holding_period: int
    multiple: float
    multiple2: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", str(self.symbol).strip().upper())
        object.__setattr__(self, "conf_level", int(self.conf_level))
        object.__setattr__(self, "holding_period", int(self.holding_period))
        object.__setattr__(self, "multiple", float(self.multiple))
        object.__setattr__(self, "multiple2", float(self.multiple2))

    @property
    def name(self) -> str:
        return (
            f"{self.symbol}_{self.study}_s-table_{self.side}{self.tuning.label}"
            f"_c{self.conf_level:03d}_d{self.holding_period:02d}"
            f"_m1{self.multiple:.2f}_m2{self.multiple2:.2f}"
        )


@dataclass(frozen=True)
class STableRow:
    ext_max_avg: float
    ext_max_std_dev: float
    ext_min_avg: float
    ext_min_std_dev: float
    ext_max_odds: float
    ext_min_odds: float
    lrs_ext_std_dev: float
    ext_max_from: BinKey | None
    ext_max_to: BinKey | None
    ext_min_from: BinKey | None
    ext_min_to: BinKey | None


STABLE_ROW_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(STableRow))


@dataclass(frozen=True)
class STable:
    key: STableKey
    rows: Mapping[BinKey, STableRow]
    lrs_ext_std_dev: float

    @classmethod
    def from_rows(cls, key: STableKey, rows: Mapping[BinKey, STableRow]) -> STable:
        # The global std-dev is repeated on every row.
        first = next(iter(rows.values()), None)
        std_dev = first.lrs_ext_std_dev if first is not None else float("nan")
        return cls(key=key, rows=dict(rows), lrs_ext_std_dev=std_dev)

    @property
    def lrs_ext_max(self) -> BinKey | None:
        return max(self.rows) if self.rows else None

    @property
    def lrs_ext_min(self) -> BinKey | None:
        return min(self.rows) if self.rows else None

    def row_for(self, bin_key: BinKey) -> STableRow:
        try:
            return self.rows[bin_key]
        except KeyError as exc:
            raise MissingBinError(f"No {self.key.side} history for slope bin {bin_key}") from exc

    def sorted_rows(self) -> list[tuple[BinKey, STableRow]]:
        return sorted(self.rows.items(), key=lambda item: item[0])


@dataclass
class _RowSamples:
    ext_max: list[float] = field(default_factory=list)
    ext_min: list[float] = field(default_factory=list)
    ext_max_odds: list[int] = field(default_factory=list)
    ext_min_odds: list[int] = field(default_factory=list)


def row_policy(side: Side) -> BinPolicy:
    if side == "bullish":
        return BinPolicy.CEIL
    if side == "bearish":
        return BinPolicy.FLOOR
    raise ValueError(f"Unknown side: {side}")


def population_stats(samples: Iterable[float]) -> tuple[float, float]:
    """Mean and population std-dev (ddof=0). Raises EmptyPopulationError on no samples."""
    arr = np.asarray(list(samples), dtype="float64")
    if arr.size == 0:
        raise EmptyPopulationError("Cannot compute statistics of an empty population")
    return float(arr.mean()), float(arr.std(ddof=0))


def _rounded_stats(samples: Iterable[float], *, label: str) -> tuple[float, float]:
    try:
        mean, std_dev = population_stats(samples)
    except EmptyPopulationError:
        # NaN is the documented degenerate value for an empty bin.
        logger.warning("Empty population for %s; storing NaN", label)
        return (float("nan"), float("nan"))
    return (round(mean, STAT_PRECISION), round(std_dev, STAT_PRECISION))


def summarize_row(
    samples: _RowSamples,
    *,
    lrs_ext_std_dev: float,
    label: str = "row",
) -> dict[str, float]:
    ext_max_avg, ext_max_std_dev = _rounded_stats(samples.ext_max, label=f"{label} ext_max")
    ext_min_avg, ext_min_std_dev = _rounded_stats(samples.ext_min, label=f"{label} ext_min")
    ext_max_odds, _ = _rounded_stats(samples.ext_max_odds, label=f"{label} ext_max_odds")
    ext_min_odds, _ = _rounded_stats(samples.ext_min_odds, label=f"{label} ext_min_odds")
    return {
        "ext_max_avg": ext_max_avg,
        "ext_max_std_dev": ext_max_std_dev,
        "ext_min_avg": ext_min_avg,
        "ext_min_std_dev": ext_min_std_dev,
        "ext_max_odds": ext_max_odds,
        "ext_min_odds": ext_min_odds,
        "lrs_ext_std_dev": lrs_ext_std_dev,
    }


def align_series(series: Mapping[str, pd.Series], *, end: int) -> tuple[int, int]:
    """
    Common `[start, end]` bar range for the per-bar series evaluated together.

    `start` is the latest first-valid index across all series. Every series must have a
    value at every bar in the range, otherwise the bars would not refer to the same
    calendar day and MisalignedSeriesError is raised.
    """
    firsts: dict[str, int] = {}
    for name, values in series.items():
        values = values.dropna()
        if values.empty:
            raise MisalignedSeriesError(f"Series '{name}' has no defined values")
        firsts[name] = int(values.index.min())
    start = max(firsts.values())
    if start > end:
        raise MisalignedSeriesError(
            f"Not enough history: common start {start} is after end {end} ({firsts})"
        )
    expected = pd.RangeIndex(start, end + 1)
    for name, values in series.items():
        window = values.reindex(expected)
        if window.isna().any():
            gaps = [int(i) for i in window.index[window.isna()][:5]]
            raise MisalignedSeriesError(f"Series '{name}' is undefined at bars {gaps} within [{start}, {end}]")
    return start, end


def build_stable(
    closes: pd.Series,
    key: STableKey,
    indicator: IndicatorParams = IndicatorParams(),
) -> STable:
    """
    Build one side's S-table over the full close history.

    Every bar whose slope-diff reverses sign the side's way contributes its forward
    max/min excursion to the row of its discretized slope reading.
    """
    closes = pd.to_numeric(closes, errors="coerce").astype("float64").reset_index(drop=True)
    side = key.side
    holding_period = int(key.holding_period)
    precision = int(indicator.precision)

    lin_reg, slope, slope_diff = lrs_series(
        closes,
        window=key.tuning.window,
        multiplier=indicator.slope_multiplier,
        precision=precision,
    )
    ext_max = forward_extremes(closes, kind="max", holding_period=holding_period, precision=precision)
    ext_min = forward_extremes(closes, kind="min", holding_period=holding_period, precision=precision)

    end = len(closes) - 1 - holding_period
    start, end = align_series(
        {
            "lin_reg": lin_reg,
            "slope": slope,
            "slope_diff": slope_diff,
            "ext_max": ext_max,
            "ext_min": ext_min,
        },
        end=end,
    )

    policy = row_policy(side)
    rows_population: dict[int, BinKey] = {}
    columns_population: dict[str, dict[int, BinKey]] = {"ext_max": {}, "ext_min": {}}
    samples: dict[BinKey, _RowSamples] = {}
    slope_samples: list[float] = []

    for i in detect_peaks(side=side, slope=slope, slope_diff=slope_diff, start=start, end=end):
        row = discretize(float(slope[i]), key.multiple, policy)
        max_val = float(ext_max[i])
        min_val = float(ext_min[i])
        rows_population[i] = row
        columns_population["ext_max"][i] = discretize(max_val, key.multiple2, BinPolicy.SIGNED)
        columns_population["ext_min"][i] = discretize(min_val, key.multiple2, BinPolicy.SIGNED)

        bucket = samples.setdefault(row, _RowSamples())
        bucket.ext_max.append(max_val)
        bucket.ext_min.append(min_val)
        if side == "bullish":
            bucket.ext_max_odds.append(int(max_val > 0))
            bucket.ext_min_odds.append(0)
        else:
            bucket.ext_max_odds.append(0)
            bucket.ext_min_odds.append(int(min_val < 0))
        slope_samples.append(float(slope[i]))

    logger.info(
        "Built %s: %s qualifying bars in [%s, %s), %s rows",
        key.name,
        len(rows_population),
        start,
        end,
        len(samples),
    )
    if not samples:
        return STable(key=key, rows={}, lrs_ext_std_dev=float("nan"))

    _, lrs_std = population_stats(slope_samples)
    lrs_std = round(lrs_std, STAT_PRECISION)

    max_pct = normalize_pivot(build_pivot(rows_population, columns_population["ext_max"]))
    min_pct = normalize_pivot(build_pivot(rows_population, columns_population["ext_min"]))

    rows: dict[BinKey, STableRow] = {}
    for row, bucket in samples.items():
        stats = summarize_row(bucket, lrs_ext_std_dev=lrs_std, label=f"{key.name} row {row}")
        max_from, max_to = confidence_bounds(row_distribution(max_pct, row), key.conf_level)
        min_from, min_to = confidence_bounds(row_distribution(min_pct, row), key.conf_level)
        rows[row] = STableRow(
            **stats,
            ext_max_from=max_from,
            ext_max_to=max_to,
            ext_min_from=min_from,
            ext_min_to=min_to,
        )
    return STable(key=key, rows=rows, lrs_ext_std_dev=lrs_std)
