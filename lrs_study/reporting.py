from __future__ import annotations

from lrs_study.schemas.lrs_study import LrsStudyArtifact, PeakAnnotationModel, SideSummaryModel


def _fmt(value: float | None, *, digits: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def _fmt_pct(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:+.2f}%"


def _peak_line(peak: PeakAnnotationModel) -> str:
    head = f"- `{peak.bar_date.isoformat()}` bar {peak.bar}: close={_fmt(peak.close)}, slope={_fmt(peak.slope, digits=4)}"
    p = peak.projection
    if p is None:
        return head + f", bin {peak.bin:g}: no history"
    row = p.row
    return (
        head
        + f", bin {peak.bin:g}: max {_fmt_pct(row.ext_max_avg)} (odds {_fmt(row.ext_max_odds)})"
        + f" -> {_fmt(p.ext_max_avg_price)} [{_fmt(p.ext_max_from_price)}..{_fmt(p.ext_max_to_price)}]"
        + f", min {_fmt_pct(row.ext_min_avg)} (odds {_fmt(row.ext_min_odds)})"
        + f" -> {_fmt(p.ext_min_avg_price)} [{_fmt(p.ext_min_from_price)}..{_fmt(p.ext_min_to_price)}]"
    )


def _side_lines(side: SideSummaryModel, *, last_peaks: int) -> list[str]:
    lines = [
        f"## {side.side.title()} ({side.line:02d}-{side.window:02d})",
        "",
        f"- Table: `{side.table_name}` ({side.rows} rows)",
        f"- Slope std-dev: {_fmt(side.lrs_ext_std_dev, digits=4)}",
        f"- Slope bins: {_fmt(side.lrs_ext_min)} .. {_fmt(side.lrs_ext_max)}",
        "",
    ]
    if not side.peaks:
        lines.extend(["No peaks beyond one slope std-dev in the chart window.", ""])
        return lines
    shown = side.peaks[-last_peaks:] if last_peaks > 0 else side.peaks
    lines.append(f"### Peaks (last {len(shown)} of {len(side.peaks)})")
    lines.append("")
    lines.extend(_peak_line(p) for p in shown)
    lines.append("")
    return lines


def render_study_markdown(artifact: LrsStudyArtifact, *, last_peaks: int = 10) -> str:
    as_of = artifact.as_of.isoformat() if artifact.as_of else "-"
    lines: list[str] = [
        f"# LRS Study ({artifact.symbol})",
        "",
        "Informational output only; not financial advice.",
        "",
        f"- As of: `{as_of}`",
        f"- Holding period: {artifact.holding_period} bars, confidence {artifact.conf_level}%",
        f"- Bin widths: slope {artifact.multiple:g}, excursion {artifact.multiple2:g}",
        f"- Chart bars: {artifact.chart_bars} (study window {artifact.study_bars})",
    ]
    if artifact.projected_dates:
        dates = ", ".join(d.isoformat() for d in artifact.projected_dates)
        lines.append(f"- Projection dates: {dates}")
    lines.append("")

    lines.extend(_side_lines(artifact.bullish, last_peaks=last_peaks))
    lines.extend(_side_lines(artifact.bearish, last_peaks=last_peaks))

    if artifact.rankings:
        lines.extend(["## Tuning ranking", "", "| Side | Tuning | Ranking | m1 | Rows |", "|---|---|---:|---:|---:|"])
        for r in artifact.rankings:
            lines.append(
                f"| {r.side} | {r.tuning} | {_fmt(r.ranking, digits=4)} | {_fmt(r.suggested_multiple)} | {r.rows} |"
            )
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
