from __future__ import annotations

from datetime import date, datetime
import math
from typing import Literal

from pydantic import Field

from lrs_study.schemas.common import ArtifactBase, utc_now
from lrs_study.technicals.bins import BinKey
from lrs_study.technicals.study import PeakAnnotation, SideStudy, StudyResult, TuningRanking


class STableRowModel(ArtifactBase):
    bin: float
    ext_max_avg: float | None = None
    ext_max_std_dev: float | None = None
    ext_min_avg: float | None = None
    ext_min_std_dev: float | None = None
    ext_max_odds: float | None = None
    ext_min_odds: float | None = None
    lrs_ext_std_dev: float | None = None
    ext_max_from: float | None = None
    ext_max_to: float | None = None
    ext_min_from: float | None = None
    ext_min_to: float | None = None


class ProjectionModel(ArtifactBase):
    ext_max_from_price: float | None = None
    ext_max_to_price: float | None = None
    ext_max_avg_price: float | None = None
    ext_max_std_dev_price: float | None = None
    ext_min_from_price: float | None = None
    ext_min_to_price: float | None = None
    ext_min_avg_price: float | None = None
    ext_min_std_dev_price: float | None = None
    row: STableRowModel


class PeakAnnotationModel(ArtifactBase):
    side: Literal["bullish", "bearish"]
    bar: int
    bar_date: date
    close: float
    slope: float
    bin: float
    projection: ProjectionModel | None = None


class SideSummaryModel(ArtifactBase):
    side: Literal["bullish", "bearish"]
    table_name: str
    artifact_path: str
    window: int
    line: int
    rows: int
    lrs_ext_std_dev: float | None = None
    lrs_ext_max: float | None = None
    lrs_ext_min: float | None = None
    table: list[STableRowModel] = Field(default_factory=list)
    peaks: list[PeakAnnotationModel] = Field(default_factory=list)


class TuningRankingModel(ArtifactBase):
    side: Literal["bullish", "bearish"]
    tuning: str
    window: int
    ranking: float | None = None
    suggested_multiple: float | None = None
    rows: int


class LrsStudyArtifact(ArtifactBase):
    schema_version: int = 1
    generated_at: datetime
    symbol: str
    study: str
    as_of: date | None = None
    disclaimer: str = "Not financial advice."
    chart_bars: int
    study_bars: int
    holding_period: int
    conf_level: int
    multiple: float
    multiple2: float
    bullish: SideSummaryModel
    bearish: SideSummaryModel
    projected_dates: list[date] = Field(default_factory=list)
    rankings: list[TuningRankingModel] = Field(default_factory=list)


def _num(value: float | BinKey | None) -> float | None:
    if value is None:
        return None
    out = float(value)
    return None if math.isnan(out) or math.isinf(out) else out


def _row_model(bin_key: BinKey, row) -> STableRowModel:  # noqa: ANN001
    return STableRowModel(
        bin=float(bin_key),
        ext_max_avg=_num(row.ext_max_avg),
        ext_max_std_dev=_num(row.ext_max_std_dev),
        ext_min_avg=_num(row.ext_min_avg),
        ext_min_std_dev=_num(row.ext_min_std_dev),
        ext_max_odds=_num(row.ext_max_odds),
        ext_min_odds=_num(row.ext_min_odds),
        lrs_ext_std_dev=_num(row.lrs_ext_std_dev),
        ext_max_from=_num(row.ext_max_from),
        ext_max_to=_num(row.ext_max_to),
        ext_min_from=_num(row.ext_min_from),
        ext_min_to=_num(row.ext_min_to),
    )


def _peak_model(peak: PeakAnnotation) -> PeakAnnotationModel:
    projection = None
    if peak.projection is not None:
        p = peak.projection
        projection = ProjectionModel(
            ext_max_from_price=_num(p.ext_max_from_price),
            ext_max_to_price=_num(p.ext_max_to_price),
            ext_max_avg_price=_num(p.ext_max_avg_price),
            ext_max_std_dev_price=_num(p.ext_max_std_dev_price),
            ext_min_from_price=_num(p.ext_min_from_price),
            ext_min_to_price=_num(p.ext_min_to_price),
            ext_min_avg_price=_num(p.ext_min_avg_price),
            ext_min_std_dev_price=_num(p.ext_min_std_dev_price),
            row=_row_model(peak.bin, p.row),
        )
    return PeakAnnotationModel(
        side=peak.side,
        bar=peak.bar,
        bar_date=peak.date,
        close=peak.close,
        slope=peak.slope,
        bin=float(peak.bin),
        projection=projection,
    )


def _side_model(side_study: SideStudy, *, include_table: bool) -> SideSummaryModel:
    table = side_study.table
    return SideSummaryModel(
        side=side_study.side,
        table_name=table.key.name,
        artifact_path=side_study.artifact_path,
        window=table.key.tuning.window,
        line=table.key.tuning.line,
        rows=len(table.rows),
        lrs_ext_std_dev=_num(table.lrs_ext_std_dev),
        lrs_ext_max=_num(table.lrs_ext_max),
        lrs_ext_min=_num(table.lrs_ext_min),
        table=[_row_model(k, row) for k, row in table.sorted_rows()] if include_table else [],
        peaks=[_peak_model(p) for p in side_study.peaks],
    )


def ranking_models(rankings: list[TuningRanking]) -> list[TuningRankingModel]:
    return [
        TuningRankingModel(
            side=r.side,
            tuning=r.tuning.label,
            window=r.tuning.window,
            ranking=_num(r.ranking),
            suggested_multiple=r.suggested_multiple,
            rows=r.rows,
        )
        for r in rankings
    ]


def build_lrs_study_artifact(
    result: StudyResult,
    *,
    rankings: list[TuningRanking] | None = None,
    include_tables: bool = True,
) -> LrsStudyArtifact:
    params = result.params
    return LrsStudyArtifact(
        generated_at=utc_now(),
        symbol=params.symbol.upper(),
        study=params.study,
        as_of=result.as_of,
        chart_bars=params.chart_bars,
        study_bars=result.study_bars,
        holding_period=params.holding_period,
        conf_level=params.conf_level,
        multiple=params.multiple,
        multiple2=params.multiple2,
        bullish=_side_model(result.bullish, include_table=include_tables),
        bearish=_side_model(result.bearish, include_table=include_tables),
        projected_dates=result.projected_dates,
        rankings=ranking_models(rankings or []),
    )
