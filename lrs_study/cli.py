from __future__ import annotations

import logging
from pathlib import Path

import typer

from lrs_study.commands.study import register as register_study
from lrs_study.observability import finalize_run_logger, setup_run_logger

app = typer.Typer(
    add_completion=False,
    help="Linear-regression-slope extreme study: S-tables, peak projections, tuning sweeps (not financial advice).",
)


@app.callback()
def main(
    ctx: typer.Context,
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Write a per-run log file under this dir."),
    log_level: str | None = typer.Option(None, "--log-level", help="Override logging.level from the config."),
) -> None:
    level: int | None = None
    if log_level is not None:
        resolved = logging.getLevelName(log_level.upper())
        if not isinstance(resolved, int):
            raise typer.BadParameter(f"Unknown log level: {log_level}")
        level = resolved
    ctx.obj = {"log_level": log_level.upper() if log_level else None}

    if log_dir is None:
        return
    run_logger = setup_run_logger(log_dir, ctx.invoked_subcommand or "lrs-study", level=level or logging.INFO)
    if run_logger is not None:
        ctx.call_on_close(lambda: finalize_run_logger(run_logger))


register_study(app)


if __name__ == "__main__":
    app()
