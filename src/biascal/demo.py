"""Demo dataset utilities."""
from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from .config import CalibrationConfig
from .data import BLTS_COLUMNS
from .demux import multiplex
from .pipeline import run_calibration
from .plotting import generate_plots
from .reporting import export_results

logger = logging.getLogger(__name__)

# (mux_set, diff_gain, n_records); NaN marks records with unknown configuration.
DEMO_SCHEDULE = (
    (0.0, 0.0, 120),
    (np.nan, np.nan, 16),
    (4.0, 1.0, 80),
    (1.0, 0.0, 60),
    (6.0, 1.0, 40),
    (0.0, 1.0, 100),
)


def create_demo_dataset(config: CalibrationConfig | None = None, seed: int = 42) -> pd.DataFrame:
    """Synthetic continuous-waveform records multiplexed through :data:`DEMO_SCHEDULE`."""

    config = config if config is not None else CalibrationConfig()
    rng = np.random.default_rng(seed)
    n_records = sum(n for _, _, n in DEMO_SCHEDULE)
    t = np.arange(n_records) * config.dt

    v1 = 1.0 + 0.4 * np.sin(2 * np.pi * 3.0 * t)
    v2 = 0.5 + 0.3 * np.sin(2 * np.pi * 5.0 * t + 0.7)
    v3 = -0.2 + 0.2 * np.cos(2 * np.pi * 2.0 * t)
    noise = 0.002
    v1, v2, v3 = (v + rng.normal(scale=noise, size=n_records) for v in (v1, v2, v3))
    truth = {
        "V1": v1,
        "V2": v2,
        "V3": v3,
        "V12": v1 - v2,
        "V13": v1 - v3,
        "V23": v2 - v3,
    }
    for name in ("V12", "V13", "V23"):
        truth[f"{name}_AC"] = truth[name] - truth[name].mean()

    rows = []
    first = 0
    for mux_set, diff_gain, count in DEMO_SCHEDULE:
        block = {name: values[first : first + count] for name, values in truth.items()}
        if np.isnan(mux_set):
            blts = [rng.normal(size=count) for _ in BLTS_COLUMNS]
        else:
            blts = multiplex(mux_set, diff_gain, config.dlr_using_12, block, config.gains)
        for i in range(count):
            row = {"mux_set": mux_set, "diff_gain": diff_gain}
            row.update({col: float(values[i]) for col, values in zip(BLTS_COLUMNS, blts)})
            rows.append(row)
        first += count

    return pd.DataFrame(rows)


def run_demo(out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    csv_path = out_dir / "demo_data.csv"
    config = CalibrationConfig()
    df = create_demo_dataset(config)
    df.to_csv(csv_path, index=False)

    result = run_calibration(str(csv_path), config)
    figure_path = None
    try:
        figure_path = generate_plots(result, out_dir)
    except RuntimeError as exc:
        logger.warning("Plotting skipped: %s", exc)

    export_results(result, out_dir, figure_path=figure_path, input_path=csv_path)
