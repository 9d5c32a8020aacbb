from __future__ import annotations

import json
import math
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from lrs_study.commands.common import _load_config, _load_history, setup_study_logging
from lrs_study.data.stable_cache import STableCache
from lrs_study.data.study_config import study_params_from_config, sweep_windows
from lrs_study.reporting import render_study_markdown
from lrs_study.schemas.lrs_study import LrsStudyArtifact, build_lrs_study_artifact
from lrs_study.technicals.calendar import get_trading_day_fn
from lrs_study.technicals.peaks import SIDES
from lrs_study.technicals.stable import MisalignedSeriesError, STable, Tuning
from lrs_study.technicals.study import PeakAnnotation, frame_from_rankings, run_study, sweep_tunings


def _cell(value: object, *, digits: int = 4) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return "" if math.isnan(value) else f"{value:.{digits}f}"
    return str(value)


def _log_level(ctx: typer.Context) -> str | None:
    return (ctx.obj or {}).get("log_level")


def _stable_table(table: STable) -> Table:
    t = Table(title=f"{table.key.name} (slope std-dev {_cell(table.lrs_ext_std_dev)})")
    for col in ("bin", "max avg", "max sd", "min avg", "min sd", "max odds", "min odds", "max from", "max to", "min from", "min to"):
        t.add_column(col, justify="right")
    for bin_key, row in table.sorted_rows():
        t.add_row(
            str(bin_key),
            _cell(row.ext_max_avg),
            _cell(row.ext_max_std_dev),
            _cell(row.ext_min_avg),
            _cell(row.ext_min_std_dev),
            _cell(row.ext_max_odds),
            _cell(row.ext_min_odds),
            _cell(row.ext_max_from),
            _cell(row.ext_max_to),
            _cell(row.ext_min_from),
            _cell(row.ext_min_to),
        )
    return t


def _peaks_table(title: str, peaks: list[PeakAnnotation]) -> Table:
    t = Table(title=title)
    for col in ("date", "bar", "close", "slope", "bin", "max avg", "max target", "min avg", "min target"):
        t.add_column(col, justify="right")
    for p in peaks:
        proj = p.projection
        if proj is None:
            t.add_row(p.date.isoformat(), str(p.bar), _cell(p.close, digits=2), _cell(p.slope), str(p.bin), "", "", "", "")
            continue
        t.add_row(
            p.date.isoformat(),
            str(p.bar),
            _cell(p.close, digits=2),
            _cell(p.slope),
            str(p.bin),
            _cell(proj.row.ext_max_avg, digits=2),
            _cell(proj.ext_max_avg_price, digits=2),
            _cell(proj.row.ext_min_avg, digits=2),
            _cell(proj.ext_min_avg_price, digits=2),
        )
    return t


def _write_report(console: Console, out: Path, artifact: LrsStudyArtifact, *, last_peaks: int) -> None:
    as_of = artifact.as_of.isoformat() if artifact.as_of else "latest"
    base = out / artifact.symbol
    base.mkdir(parents=True, exist_ok=True)
    json_path = base / f"{as_of}.json"
    md_path = base / f"{as_of}.md"
    json_path.write_text(json.dumps(artifact.to_dict(), indent=2), encoding="utf-8")
    md_path.write_text(render_study_markdown(artifact, last_peaks=last_peaks), encoding="utf-8")
    console.print(f"Wrote JSON: {json_path}")
    console.print(f"Wrote Markdown: {md_path}")


def study_build_table(
    ctx: typer.Context,
    ohlc_path: Path = typer.Option(..., "--ohlc-path", help="CSV/parquet OHLC path."),
    symbol: str = typer.Option(..., "--symbol", help="Symbol the history belongs to."),
    side: str = typer.Option("bullish", "--side", help="bullish or bearish."),
    window: int | None = typer.Option(None, "--window", help="Override the side's LRS window."),
    config_path: Path = typer.Option(Path("config/lrs_study.yaml"), "--config", help="Config path."),
    study_path: Path | None = typer.Option(None, "--study-path", help="Override study.study_path."),
    force: bool = typer.Option(False, "--force", help="Rebuild even when a fresh table is on disk."),
) -> None:
    """Build (or load a fresh cached) S-table for one side and print it."""
    console = Console(width=200)
    if side not in SIDES:
        raise typer.BadParameter("--side must be bullish or bearish")
    if window is not None and not 2 <= window <= 99:
        raise typer.BadParameter("--window must be between 2 and 99")

    cfg = _load_config(config_path)
    setup_study_logging(cfg, level=_log_level(ctx))
    history = _load_history(ohlc_path)
    params = study_params_from_config(cfg, symbol=symbol)

    tuning = params.tuning_for(side)
    if window is not None:
        tuning = Tuning(window=window, line=tuning.line)
    key = params.key_for(side, tuning)

    cache = STableCache(
        study_path or Path(cfg["study"]["study_path"]),
        history.closes,
        indicator=params.indicator,
        force_rebuild=force,
    )
    try:
        table = cache.get(key)
    except MisalignedSeriesError as exc:
        raise typer.BadParameter(str(exc)) from exc

    console.print(_stable_table(table))
    console.print(f"Rows: {len(table.rows)}  Artifact: {cache.path_for(key)}")


def study_run(
    ctx: typer.Context,
    ohlc_path: Path = typer.Option(..., "--ohlc-path", help="CSV/parquet OHLC path."),
    symbol: str = typer.Option(..., "--symbol", help="Symbol the history belongs to."),
    config_path: Path = typer.Option(Path("config/lrs_study.yaml"), "--config", help="Config path."),
    study_path: Path | None = typer.Option(None, "--study-path", help="Override study.study_path."),
    chart_bars: int | None = typer.Option(None, "--chart-bars", help="Override study.chart_bars."),
    holding_period: int | None = typer.Option(None, "--holding-period", help="Override study.holding_period."),
    conf_level: int | None = typer.Option(None, "--conf-level", help="Override study.conf_level."),
    out: Path | None = typer.Option(None, "--out", help="Output root for JSON/Markdown artifacts."),
    last_peaks: int = typer.Option(10, "--last-peaks", help="Peaks per side to print."),
    force: bool = typer.Option(False, "--force", help="Rebuild both tables."),
) -> None:
    """Run the LRS study: load/build both tables and annotate the chart window's peaks."""
    console = Console(width=200)
    if chart_bars is not None and chart_bars < 1:
        raise typer.BadParameter("--chart-bars must be >= 1")
    if holding_period is not None and holding_period < 1:
        raise typer.BadParameter("--holding-period must be >= 1")
    if conf_level is not None and not 0 < conf_level <= 100:
        raise typer.BadParameter("--conf-level must be in (0, 100]")

    cfg = _load_config(config_path)
    setup_study_logging(cfg, level=_log_level(ctx))
    history = _load_history(ohlc_path)
    params = study_params_from_config(
        cfg,
        symbol=symbol,
        chart_bars=chart_bars,
        holding_period=holding_period,
        conf_level=conf_level,
    )
    cache = STableCache(
        study_path or Path(cfg["study"]["study_path"]),
        history.closes,
        indicator=params.indicator,
        force_rebuild=force,
    )
    try:
        result = run_study(
            history,
            params,
            cache,
            is_trading_day=get_trading_day_fn(cfg["calendar"]["kind"]),
        )
    except MisalignedSeriesError as exc:
        raise typer.BadParameter(str(exc)) from exc

    for side in SIDES:
        side_study = result.side(side)
        shown = side_study.peaks[-last_peaks:] if last_peaks > 0 else side_study.peaks
        title = (
            f"{params.symbol.upper()} {side} peaks "
            f"(last {len(shown)} of {len(side_study.peaks)}, std-dev {_cell(side_study.lrs_ext_std_dev)})"
        )
        console.print(_peaks_table(title, shown))
    if result.projected_dates:
        console.print("Projection dates: " + ", ".join(d.isoformat() for d in result.projected_dates))

    if out is None:
        return
    _write_report(console, out, build_lrs_study_artifact(result), last_peaks=last_peaks)


def study_sweep(
    ctx: typer.Context,
    ohlc_path: Path = typer.Option(..., "--ohlc-path", help="CSV/parquet OHLC path."),
    symbol: str = typer.Option(..., "--symbol", help="Symbol the history belongs to."),
    config_path: Path = typer.Option(Path("config/lrs_study.yaml"), "--config", help="Config path."),
    study_path: Path | None = typer.Option(None, "--study-path", help="Override study.study_path."),
    start: int | None = typer.Option(None, "--start", help="First LRS window (default sweep.windows.start)."),
    stop: int | None = typer.Option(None, "--stop", help="Last LRS window, inclusive (default sweep.windows.stop)."),
    top: int = typer.Option(5, "--top", help="Best tunings to print per side."),
    out: Path | None = typer.Option(None, "--out", help="Write the full ranking as CSV here."),
    report_dir: Path | None = typer.Option(
        None, "--report-dir", help="Also run the study and write JSON/Markdown with the ranking here."
    ),
) -> None:
    """Rank LRS window tunings per side by magnitude-weighted hit rate."""
    console = Console(width=200)
    cfg = _load_config(config_path)
    setup_study_logging(cfg, level=_log_level(ctx))

    default_windows = sweep_windows(cfg)
    lo = default_windows.start if start is None else start
    hi = default_windows.stop - 1 if stop is None else stop
    if lo < 2 or hi > 99 or lo > hi:
        raise typer.BadParameter("Sweep windows must satisfy 2 <= --start <= --stop <= 99")

    history = _load_history(ohlc_path)
    params = study_params_from_config(cfg, symbol=symbol)
    cache = STableCache(
        study_path or Path(cfg["study"]["study_path"]),
        history.closes,
        indicator=params.indicator,
    )
    rankings = sweep_tunings(history, params, cache, windows=range(lo, hi + 1))
    if not rankings:
        raise typer.BadParameter("No tuning had enough history to build a table.")

    for side in SIDES:
        side_rankings = [r for r in rankings if r.side == side]
        t = Table(title=f"{params.symbol.upper()} {side} tunings (top {min(top, len(side_rankings))})")
        for col in ("tuning", "ranking", "suggested m1", "rows"):
            t.add_column(col, justify="right")
        for r in side_rankings[: max(top, 0)]:
            t.add_row(r.tuning.label, _cell(r.ranking), _cell(r.suggested_multiple, digits=2), str(r.rows))
        console.print(t)

    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        frame_from_rankings(rankings).to_csv(out, index=False)
        console.print(f"Wrote CSV: {out}")

    if report_dir is not None:
        try:
            result = run_study(history, params, cache, is_trading_day=get_trading_day_fn(cfg["calendar"]["kind"]))
        except MisalignedSeriesError as exc:
            raise typer.BadParameter(str(exc)) from exc
        artifact = build_lrs_study_artifact(result, rankings=rankings, include_tables=False)
        _write_report(console, report_dir, artifact, last_peaks=top)


def register(app: typer.Typer) -> None:
    app.command("build-table")(study_build_table)
    app.command("run")(study_run)
    app.command("sweep")(study_sweep)


__all__ = ["register", "study_build_table", "study_run", "study_sweep"]
