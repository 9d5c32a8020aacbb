from __future__ import annotations

import json
from pathlib import Path

import yaml
from jsonschema import Draft202012Validator

from lrs_study.technicals.stable import IndicatorParams, Tuning
from lrs_study.technicals.study import StudyParams


class ConfigError(ValueError):
    pass


def load_lrs_study_config(
    config_path: Path | str = Path("config/lrs_study.yaml"),
    schema_path: Path | str = Path("config/lrs_study.schema.json"),
) -> dict:
    config_path = Path(config_path)
    schema_path = Path(schema_path)

    if not config_path.exists():
        raise ConfigError(f"Missing config file: {config_path}")
    if not schema_path.exists():
        raise ConfigError(f"Missing schema file: {schema_path}")

    with config_path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)

    with schema_path.open("r", encoding="utf-8") as f:
        schema = json.load(f)

    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        messages = []
        for err in errors[:10]:
            loc = ".".join(str(p) for p in err.path) or "<root>"
            messages.append(f"{loc}: {err.message}")
        raise ConfigError("Config schema validation failed: " + "; ".join(messages))

    _light_validate(cfg)
    return cfg


def _light_validate(cfg: dict) -> None:
    windows = cfg["sweep"]["windows"]
    if int(windows["start"]) > int(windows["stop"]):
        raise ConfigError("sweep.windows.start must be <= sweep.windows.stop")

    if int(windows["stop"]) > 99:
        raise ConfigError("sweep.windows.stop must be <= 99 (tuning labels use two digits)")

    study = cfg["study"]
    if int(study["holding_period"]) >= int(study["chart_bars"]):
        raise ConfigError("study.holding_period must be < study.chart_bars")


def sweep_windows(cfg: dict) -> range:
    windows = cfg["sweep"]["windows"]
    return range(int(windows["start"]), int(windows["stop"]) + 1)


def study_params_from_config(
    cfg: dict,
    *,
    symbol: str,
    chart_bars: int | None = None,
    holding_period: int | None = None,
    conf_level: int | None = None,
) -> StudyParams:
    study = cfg["study"]
    tunings = cfg["tunings"]
    indicator = cfg["indicator"]
    return StudyParams(
        symbol=symbol,
        study=study["name"],
        bullish=Tuning(window=int(tunings["bullish"]["window"]), line=int(tunings["bullish"].get("line", 1))),
        bearish=Tuning(window=int(tunings["bearish"]["window"]), line=int(tunings["bearish"].get("line", 1))),
        chart_bars=int(chart_bars if chart_bars is not None else study["chart_bars"]),
        holding_period=int(holding_period if holding_period is not None else study["holding_period"]),
        conf_level=int(conf_level if conf_level is not None else study["conf_level"]),
        multiple=float(study["multiple"]),
        multiple2=float(study["multiple2"]),
        indicator=IndicatorParams(
            slope_multiplier=float(indicator["slope_multiplier"]),
            precision=int(indicator["precision"]),
        ),
        study_bars_margin=int(study.get("study_bars_margin", 5)),
        study_bars_rounding=int(study.get("study_bars_rounding", 10)),
    )
