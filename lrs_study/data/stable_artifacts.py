from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timezone
import io
from pathlib import Path

from lrs_study.technicals.bins import BinKey
from lrs_study.technicals.stable import STABLE_ROW_FIELDS, STable, STableKey, STableRow, Tuning

HEADER_FIELDS = (
    "name",
    "symbol",
    "study",
    "side",
    "line",
    "window",
    "conf_level",
    "holding_period",
    "multiple",
    "multiple2",
    "built_at",
)
_BIN_FIELDS = {"ext_max_from", "ext_max_to", "ext_min_from", "ext_min_to"}


class STableArtifactError(RuntimeError):
    pass


@dataclass(frozen=True)
class CacheMetadata:
    built_at: datetime
    holding_period_days: int

    def age_days(self, now: datetime) -> int:
        return (now - self.built_at).days

    def is_stale(self, now: datetime) -> bool:
        """Stale once whole calendar days since the build reach the holding period."""
        return self.age_days(now) >= int(self.holding_period_days)


def stable_artifact_path(base_dir: Path, key: STableKey) -> Path:
    return Path(base_dir) / "s-tables" / f"{key.name}.csv"


def _format_value(value: float | BinKey | None) -> str:
    if value is None:
        return ""
    if isinstance(value, BinKey):
        return str(value)
    return repr(float(value))


def render_stable_csv(table: STable, *, built_at: datetime) -> str:
    key = table.key
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(
        [
            key.name,
            key.symbol.upper(),
            key.study,
            key.side,
            key.tuning.line,
            key.tuning.window,
            int(key.conf_level),
            int(key.holding_period),
            repr(float(key.multiple)),
            repr(float(key.multiple2)),
            built_at.astimezone(timezone.utc).isoformat(),
        ]
    )
    for bin_key, row in table.sorted_rows():
        writer.writerow([str(bin_key)] + [_format_value(getattr(row, name)) for name in STABLE_ROW_FIELDS])
    return buf.getvalue()


def write_stable_artifact(path: Path, table: STable, *, built_at: datetime) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(render_stable_csv(table, built_at=built_at), encoding="utf-8")
    tmp.replace(path)
    return path


def _parse_row(values: list[str], *, line_no: int) -> tuple[BinKey, STableRow]:
    expected = 1 + len(STABLE_ROW_FIELDS)
    if len(values) != expected:
        raise STableArtifactError(f"Row {line_no}: expected {expected} columns, got {len(values)}")
    try:
        bin_key = BinKey.parse(values[0])
        parsed: dict[str, float | BinKey | None] = {}
        for name, raw in zip(STABLE_ROW_FIELDS, values[1:], strict=True):
            if name in _BIN_FIELDS:
                parsed[name] = BinKey.parse(raw) if raw.strip() else None
            else:
                parsed[name] = float(raw)
    except ValueError as exc:
        raise STableArtifactError(f"Row {line_no}: {exc}") from exc
    return bin_key, STableRow(**parsed)


def _parse_header(values: list[str], *, path: Path) -> tuple[STableKey, datetime | None]:
    if len(values) < len(HEADER_FIELDS) - 1:
        raise STableArtifactError(f"Malformed S-table header in {path}")
    header = dict(zip(HEADER_FIELDS, values))
    try:
        key = STableKey(
            symbol=header["symbol"],
            study=header["study"],
            side=header["side"],  # type: ignore[arg-type]
            tuning=Tuning(window=int(header["window"]), line=int(header["line"])),
            conf_level=int(header["conf_level"]),
            holding_period=int(header["holding_period"]),
            multiple=float(header["multiple"]),
            multiple2=float(header["multiple2"]),
        )
        built_at_raw = header.get("built_at", "").strip()
        built_at = datetime.fromisoformat(built_at_raw) if built_at_raw else None
    except (KeyError, ValueError) as exc:
        raise STableArtifactError(f"Malformed S-table header in {path}: {exc}") from exc
    if key.side not in ("bullish", "bearish"):
        raise STableArtifactError(f"Unknown side '{key.side}' in {path}")
    if built_at is not None and built_at.tzinfo is None:
        built_at = built_at.replace(tzinfo=timezone.utc)
    return key, built_at


def read_stable_artifact(path: Path) -> tuple[STable, CacheMetadata]:
    """
    Parse an S-table artifact back into an STable plus its cache metadata.

    Columns are read by position. When the header carries no build timestamp, the file
    modification time stands in for it.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise STableArtifactError(f"Unable to read S-table {path}: {exc}") from exc

    lines = list(csv.reader(io.StringIO(text)))
    if not lines:
        raise STableArtifactError(f"Empty S-table artifact: {path}")
    key, built_at = _parse_header(lines[0], path=path)
    if built_at is None:
        built_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    rows: dict[BinKey, STableRow] = {}
    for line_no, values in enumerate(lines[1:], start=2):
        if not values:
            continue
        bin_key, row = _parse_row(values, line_no=line_no)
        rows[bin_key] = row

    table = STable.from_rows(key, rows)
    return table, CacheMetadata(built_at=built_at, holding_period_days=key.holding_period)
