from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Callable

import pandas as pd

from lrs_study.data.stable_artifacts import (
    STableArtifactError,
    read_stable_artifact,
    stable_artifact_path,
    write_stable_artifact,
)
from lrs_study.technicals.stable import IndicatorParams, STable, STableKey, build_stable

logger = logging.getLogger(__name__)

TableBuilder = Callable[[pd.Series, STableKey, IndicatorParams], STable]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class STableCache:
    """
    Disk-backed memo of built S-tables for one close history.

    A table is rebuilt in full when its artifact is missing, unreadable, built for a
    different key, or at least `holding_period` whole calendar days old. Concurrent
    writers to the same path are not coordinated (last writer wins).
    """

    def __init__(
        self,
        base_dir: Path,
        closes: pd.Series,
        *,
        indicator: IndicatorParams = IndicatorParams(),
        builder: TableBuilder = build_stable,
        clock: Clock = utc_now,
        force_rebuild: bool = False,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.closes = closes
        self.indicator = indicator
        self.builder = builder
        self.clock = clock
        self.force_rebuild = bool(force_rebuild)

    def path_for(self, key: STableKey) -> Path:
        return stable_artifact_path(self.base_dir, key)

    def get(self, key: STableKey) -> STable:
        path = self.path_for(key)
        if self.force_rebuild:
            logger.info("Rebuilding %s (forced)", key.name)
            return self._rebuild(key, path)
        if not path.exists():
            logger.info("No S-table at %s; building", path)
            return self._rebuild(key, path)

        try:
            table, meta = read_stable_artifact(path)
        except STableArtifactError as exc:
            logger.warning("Discarding unreadable S-table %s: %s", path, exc)
            return self._rebuild(key, path)

        if table.key != key:
            logger.warning("S-table %s was built for %s; rebuilding", path, table.key.name)
            return self._rebuild(key, path)

        now = self.clock()
        if meta.is_stale(now):
            logger.info(
                "S-table %s is %s day(s) old (holding period %s); rebuilding",
                key.name,
                meta.age_days(now),
                meta.holding_period_days,
            )
            return self._rebuild(key, path)

        logger.debug("Loaded S-table %s (%s rows)", key.name, len(table.rows))
        return table

    def _rebuild(self, key: STableKey, path: Path) -> STable:
        table = self.builder(self.closes, key, self.indicator)
        write_stable_artifact(path, table, built_at=self.clock())
        return table
