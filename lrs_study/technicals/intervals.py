from __future__ import annotations

from typing import Sequence

from lrs_study.technicals.bins import BinKey


def tail_trim_pct(conf_level: float) -> float:
    """Percent of mass trimmed from each tail for a `conf_level` (percent) interval."""
    conf_level = float(conf_level)
    if not 0.0 < conf_level <= 100.0:
        raise ValueError("conf_level must be in (0, 100]")
    return (100.0 - conf_level) / 2.0


def _walk(distribution: Sequence[tuple[BinKey, float]], limit: float) -> BinKey:
    cumulative = 0.0
    for bin_key, pct in distribution:
        cumulative += pct
        if cumulative >= limit:
            return bin_key
    # Rounded percentages can fall just short of the limit on the last bin.
    return distribution[-1][0]


def confidence_bounds(
    distribution: Sequence[tuple[BinKey, float]],
    conf_level: float,
) -> tuple[BinKey | None, BinKey | None]:
    """
    `(from, to)` bins after trimming `(100 - conf_level) / 2` percent from each tail.

    `distribution` holds the occupied `(bin, pct)` pairs of one normalized pivot row.
    Walking ascending, `from` is the first bin where cumulative mass reaches the trim
    limit; `to` is the same walk descending. A limit of 0 returns the outermost bins.
    """
    if not distribution:
        return (None, None)
    limit = tail_trim_pct(conf_level)
    ascending = sorted(distribution, key=lambda pair: pair[0])
    lower = _walk(ascending, limit)
    upper = _walk(list(reversed(ascending)), limit)
    return (lower, upper)
