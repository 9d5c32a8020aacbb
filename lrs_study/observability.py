from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
from pathlib import Path
import time

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
RUN_LOGGER_NAME = "lrs_study"


@dataclass(frozen=True)
class RunLogger:
    logger: logging.Logger
    log_path: Path | None
    started_at: datetime
    start_perf: float
    command_name: str


def _safe_name(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in value.strip())
    return cleaned or "lrs_study"


def build_log_path(log_dir: Path, command_name: str, *, now: datetime | None = None) -> Path:
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return log_dir / f"{_safe_name(command_name)}_{timestamp}_{os.getpid()}.log"


def setup_run_logger(
    log_dir: Path,
    command_name: str,
    *,
    level: int = logging.INFO,
) -> RunLogger | None:
    """
    Attach a per-run file handler under `log_dir/<YYYY-MM-DD>/`.

    Returns None when the directory cannot be created; the run continues without a file log.
    """
    now_utc = datetime.now(timezone.utc)
    run_dir = log_dir / now_utc.strftime("%Y-%m-%d")
    try:
        run_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    log_path = build_log_path(run_dir, command_name, now=now_utc)

    logger = logging.getLogger(RUN_LOGGER_NAME)
    logger.setLevel(level)
    _reset_file_handlers(logger)

    handler = logging.FileHandler(log_path, mode="a")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    logger.info("Start %s", command_name)
    return RunLogger(
        logger=logger,
        log_path=log_path,
        started_at=now_utc,
        start_perf=time.perf_counter(),
        command_name=command_name,
    )


def finalize_run_logger(run_logger: RunLogger) -> None:
    elapsed = time.perf_counter() - run_logger.start_perf
    run_logger.logger.info("End %s duration=%.2fs", run_logger.command_name, elapsed)
    _reset_file_handlers(run_logger.logger)


def _reset_file_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)
