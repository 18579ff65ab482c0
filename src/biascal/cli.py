"""Command line interface for the biascal package."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import load_config
from .demo import run_demo
from .pipeline import run_calibration
from .plotting import generate_plots
from .reporting import export_results

app = typer.Typer(context_settings={"help_option_names": ["-h", "--help"]})


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)."),
) -> None:
    """BIAS demultiplexing and calibration."""

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level {log_level!r}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.command()
def calc(
    input_path: Path = typer.Option(..., "--in", help="Input CSV with per-record BLTS samples."),
    report_dir: Path = typer.Option(..., "--report", help="Output directory for reports."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON calibration configuration."),
    overrides: Optional[List[str]] = typer.Option(
        None,
        "--set",
        help="Configuration override as dotted key=value (repeatable), e.g. gains.alpha=0.06.",
    ),
    dlr_13: bool = typer.Option(
        False,
        "--dlr-13",
        help="Latching relay connects antennas 1-3 (default 1-2); ignored if the CSV has dlr_using_12.",
    ),
) -> None:
    """Demultiplex BLTS records into antenna signals and write reports."""

    settings = list(overrides or [])
    if dlr_13:
        settings.append("dlr_using_12=false")
    try:
        config = load_config(config_path, settings)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--set") from exc

    result = run_calibration(str(input_path), config)

    figure_path = None
    try:
        figure_path = generate_plots(result, report_dir)
    except RuntimeError as exc:
        typer.echo(f"[warning] plotting skipped: {exc}")

    export_results(result, report_dir, figure_path=figure_path, input_path=input_path)

    typer.echo(f"Report written to {report_dir}")


@app.command()
def demo(
    out_dir: Path = typer.Option(Path("demo_output"), "--out", help="Target directory for demo report."),
) -> None:
    """Generate synthetic records and reports."""

    run_demo(out_dir)
    typer.echo(f"Demo dataset and report written to {out_dir}")


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
