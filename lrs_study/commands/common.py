from __future__ import annotations

import logging
from pathlib import Path

import typer

from lrs_study.data.price_io import load_price_history
from lrs_study.data.study_config import ConfigError, load_lrs_study_config
from lrs_study.technicals.adapter import PriceHistory


def setup_study_logging(cfg: dict, *, level: str | None = None) -> None:
    level = (level or cfg["logging"]["level"]).upper()
    log_dir = Path(cfg["logging"]["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "lrs_study.log"
    handlers = [logging.StreamHandler(), logging.FileHandler(log_path)]
    logging.basicConfig(
        level=level,
        handlers=handlers,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Path, schema_path: Path | None = None) -> dict:
    schema_path = schema_path or config_path.with_name(f"{config_path.stem}.schema.json")
    try:
        return load_lrs_study_config(config_path, schema_path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_history(ohlc_path: Path) -> PriceHistory:
    try:
        history = load_price_history(ohlc_path)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    if len(history) == 0:
        raise typer.BadParameter(f"No OHLC data found in {ohlc_path}")
    return history


__all__ = ["setup_study_logging", "_load_config", "_load_history"]
