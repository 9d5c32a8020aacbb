from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
import logging
import math
from typing import Iterable

import pandas as pd

from lrs_study.data.stable_cache import STableCache
from lrs_study.technicals.adapter import PriceHistory
from lrs_study.technicals.bins import BinKey, discretize
from lrs_study.technicals.calendar import TradingDayFn, project_trading_dates, weekday_trading_day
from lrs_study.technicals.peaks import SIDES, Side, detect_peaks
from lrs_study.technicals.series import lrs_series
from lrs_study.technicals.stable import (
    IndicatorParams,
    MisalignedSeriesError,
    MissingBinError,
    STable,
    STableKey,
    STableRow,
    Tuning,
    row_policy,
)

logger = logging.getLogger(__name__)

SUGGESTED_MULTIPLE_FRACTION = 0.02


@dataclass(frozen=True)
class StudyParams:
    symbol: str
    study: str
    bullish: Tuning
    bearish: Tuning
    chart_bars: int
    holding_period: int
    conf_level: int
    multiple: float
    multiple2: float
    indicator: IndicatorParams = IndicatorParams()
    study_bars_margin: int = 5
    study_bars_rounding: int = 10

    def tuning_for(self, side: Side) -> Tuning:
        return self.bullish if side == "bullish" else self.bearish

    def key_for(self, side: Side, tuning: Tuning | None = None) -> STableKey:
        return STableKey(
            symbol=self.symbol,
            study=self.study,
            side=side,
            tuning=tuning or self.tuning_for(side),
            conf_level=self.conf_level,
            holding_period=self.holding_period,
            multiple=self.multiple,
            multiple2=self.multiple2,
        )


@dataclass(frozen=True)
class Projection:
    """Historical excursion stats of a peak's bin, also expressed as price levels off the peak close."""

    row: STableRow
    ext_max_from_price: float | None
    ext_max_to_price: float | None
    ext_max_avg_price: float
    ext_max_std_dev_price: float
    ext_min_from_price: float | None
    ext_min_to_price: float | None
    ext_min_avg_price: float
    ext_min_std_dev_price: float


@dataclass(frozen=True)
class PeakAnnotation:
    side: Side
    bar: int
    date: date
    close: float
    slope: float
    bin: BinKey
    projection: Projection | None


@dataclass(frozen=True)
class SideStudy:
    side: Side
    table: STable
    artifact_path: str
    peaks: list[PeakAnnotation] = field(default_factory=list)

    @property
    def lrs_ext_std_dev(self) -> float:
        return self.table.lrs_ext_std_dev


@dataclass(frozen=True)
class StudyResult:
    params: StudyParams
    as_of: date | None
    study_bars: int
    bullish: SideStudy
    bearish: SideStudy
    projected_dates: list[date]

    def side(self, side: Side) -> SideStudy:
        return self.bullish if side == "bullish" else self.bearish


@dataclass(frozen=True)
class TuningRanking:
    side: Side
    tuning: Tuning
    ranking: float
    suggested_multiple: float | None
    rows: int


def ceil_to(value: int, unit: int) -> int:
    unit = int(unit)
    if unit <= 0:
        return int(value)
    return int(math.ceil(value / unit) * unit)


def study_bars(params: StudyParams) -> int:
    lookback = max(params.bullish.window, params.bearish.window, params.holding_period)
    return ceil_to(params.chart_bars + lookback + params.study_bars_margin, params.study_bars_rounding)


def _price_level(close: float, pct: float | BinKey | None) -> float | None:
    if pct is None:
        return None
    return close + close * float(pct) / 100.0


def project_row(row: STableRow, close: float) -> Projection:
    max_avg = close + close * row.ext_max_avg / 100.0
    min_avg = close + close * row.ext_min_avg / 100.0
    return Projection(
        row=row,
        ext_max_from_price=_price_level(close, row.ext_max_from),
        ext_max_to_price=_price_level(close, row.ext_max_to),
        ext_max_avg_price=max_avg,
        ext_max_std_dev_price=max_avg + close * row.ext_max_std_dev / 100.0,
        ext_min_from_price=_price_level(close, row.ext_min_from),
        ext_min_to_price=_price_level(close, row.ext_min_to),
        ext_min_avg_price=min_avg,
        ext_min_std_dev_price=min_avg - close * row.ext_min_std_dev / 100.0,
    )


def annotate_peaks(
    *,
    side: Side,
    history: PriceHistory,
    table: STable,
    params: StudyParams,
) -> list[PeakAnnotation]:
    """
    Live-mode peaks over the last `chart_bars` bars of `history`, each with its bin's projection.

    Only readings beyond the table's slope std-dev are flagged. A bin with no history
    leaves the peak without a projection.
    """
    closes = history.closes
    if closes.empty:
        return []
    _, slope, slope_diff = lrs_series(
        closes,
        window=params.tuning_for(side).window,
        multiplier=params.indicator.slope_multiplier,
        precision=params.indicator.precision,
    )
    end = len(closes) - 1
    start = max(0, end - int(params.chart_bars))
    peaks = detect_peaks(
        side=side,
        slope=slope,
        slope_diff=slope_diff,
        start=start,
        end=end,
        threshold=table.lrs_ext_std_dev,
    )

    dates = history.dates
    policy = row_policy(side)
    out: list[PeakAnnotation] = []
    for i in peaks:
        slope_val = float(slope[i])
        close = float(closes[i])
        bin_key = discretize(slope_val, params.multiple, policy)
        try:
            projection: Projection | None = project_row(table.row_for(bin_key), close)
        except MissingBinError as exc:
            logger.debug("Peak at bar %s (%s): %s", i, dates[i], exc)
            projection = None
        out.append(
            PeakAnnotation(
                side=side,
                bar=i,
                date=dates[i],
                close=close,
                slope=slope_val,
                bin=bin_key,
                projection=projection,
            )
        )
    return out


def run_study(
    history: PriceHistory,
    params: StudyParams,
    cache: STableCache,
    *,
    is_trading_day: TradingDayFn = weekday_trading_day,
) -> StudyResult:
    """Load or build both side tables, then annotate the display window's extreme slope readings."""
    tables: dict[Side, STable] = {side: cache.get(params.key_for(side)) for side in SIDES}
    for side, table in tables.items():
        logger.info(
            "%s table: %s rows, slope std-dev=%s, bins [%s, %s]",
            side,
            len(table.rows),
            table.lrs_ext_std_dev,
            table.lrs_ext_min,
            table.lrs_ext_max,
        )

    bars = study_bars(params)
    working = history.tail(bars)
    sides: dict[Side, SideStudy] = {}
    for side in SIDES:
        peaks = annotate_peaks(side=side, history=working, table=tables[side], params=params)
        # Report bar numbers against the full history.
        offset = len(history) - len(working)
        peaks = [replace(p, bar=p.bar + offset) for p in peaks]
        sides[side] = SideStudy(
            side=side,
            table=tables[side],
            artifact_path=str(cache.path_for(params.key_for(side))),
            peaks=peaks,
        )
        missing = sum(1 for p in peaks if p.projection is None)
        logger.info("%s: %s peak(s) flagged, %s without history", side, len(peaks), missing)

    last = history.last_date
    projected = project_trading_dates(last, params.holding_period, is_trading_day) if last else []
    return StudyResult(
        params=params,
        as_of=last,
        study_bars=bars,
        bullish=sides["bullish"],
        bearish=sides["bearish"],
        projected_dates=projected,
    )


def rank_table(table: STable) -> float:
    """
    Magnitude-weighted hit rate: sum(odds * avg) / sum(avg) over the table's rows.

    Bullish tables weigh max-excursion odds by the average max excursion, bearish
    tables use the min side. NaN when the weights sum to zero.
    """
    if table.key.side == "bullish":
        pairs = [(row.ext_max_odds, row.ext_max_avg) for row in table.rows.values()]
    else:
        pairs = [(row.ext_min_odds, row.ext_min_avg) for row in table.rows.values()]
    pairs = [(odds, avg) for odds, avg in pairs if not (math.isnan(odds) or math.isnan(avg))]
    weight = sum(avg for _, avg in pairs)
    if not pairs or weight == 0:
        return float("nan")
    return sum(odds * avg for odds, avg in pairs) / weight


def suggested_multiple(table: STable) -> float | None:
    if table.lrs_ext_max is None or table.lrs_ext_min is None:
        return None
    spread = float(table.lrs_ext_max) - float(table.lrs_ext_min)
    return round(spread * SUGGESTED_MULTIPLE_FRACTION, 2)


def sweep_tunings(
    history: PriceHistory,
    params: StudyParams,
    cache: STableCache,
    *,
    windows: Iterable[int],
    sides: Iterable[Side] = SIDES,
) -> list[TuningRanking]:
    """Rank every (side, window) tuning best-to-worst; tunings without enough history are skipped."""
    rankings: list[TuningRanking] = []
    windows = sorted({int(w) for w in windows})
    for side in sides:
        base = params.tuning_for(side)
        for window in windows:
            tuning = Tuning(window=window, line=base.line)
            try:
                table = cache.get(params.key_for(side, tuning))
            except MisalignedSeriesError as exc:
                logger.warning("Skipping %s tuning %s: %s", side, tuning.label, exc)
                continue
            rankings.append(
                TuningRanking(
                    side=side,
                    tuning=tuning,
                    ranking=rank_table(table),
                    suggested_multiple=suggested_multiple(table),
                    rows=len(table.rows),
                )
            )
    return sorted(
        rankings,
        key=lambda r: (
            SIDES.index(r.side),
            math.isnan(r.ranking),
            -r.ranking if not math.isnan(r.ranking) else 0.0,
        ),
    )


def frame_from_rankings(rankings: list[TuningRanking]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "side": r.side,
                "tuning": r.tuning.label,
                "window": r.tuning.window,
                "ranking": r.ranking,
                "suggested_multiple": r.suggested_multiple,
                "rows": r.rows,
            }
            for r in rankings
        ],
        columns=["side", "tuning", "window", "ranking", "suggested_multiple", "rows"],
    )
