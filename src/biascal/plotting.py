"""Plotting helpers for calibration outputs."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

from .pipeline import CalibrationResult

_PANELS = (
    ("Single-ended DC", ("V1", "V2", "V3")),
    ("Differential DC", ("V12", "V13", "V23")),
    ("Differential AC", ("V12_AC", "V13_AC", "V23_AC")),
)


def generate_plots(result: CalibrationResult, output_dir: Path) -> Path:
    plt = _require_matplotlib()
    output_dir.mkdir(parents=True, exist_ok=True)
    fig, axes = plt.subplots(len(_PANELS) + 1, 1, figsize=(12, 10), sharex=True)

    _plot_configuration(result, axes[0])
    for ax, (title, channels) in zip(axes[1:], _PANELS):
        _plot_channels(result, ax, title, channels)
    axes[-1].set_xlabel("Record")

    fig.tight_layout()
    out_path = output_dir / "plots.png"
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def _plot_configuration(result: CalibrationResult, ax) -> None:
    records = np.arange(len(result.data))
    ax.step(records, result.data.mux_set, where="post", label="MUX_SET")
    ax.step(records, result.data.diff_gain, where="post", label="DIFF_GAIN", linestyle="--")
    for processed in result.demux.segments:
        ax.axvline(processed.segment.first, color="gray", linewidth=0.5, alpha=0.5)
    ax.set_title("Instrument configuration")
    ax.legend(loc="best")


def _plot_channels(result: CalibrationResult, ax, title: str, channels: tuple[str, ...]) -> None:
    records = result.asr_table["record"].to_numpy()
    for name in channels:
        ax.plot(records, result.asr_table[name], label=name, linewidth=0.8)
    ax.set_title(title)
    ax.set_ylabel("Antenna potential")
    ax.legend(loc="best")


def _require_matplotlib() -> Any:
    home_cache = Path.home() / ".cache" / "fontconfig"
    try:
        home_cache.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError("matplotlib cannot write font cache in this environment") from exc

    try:
        import matplotlib
        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("matplotlib is required for plotting; install biascal[plot]") from exc
    except Exception as exc:  # pragma: no cover - environment issues
        raise RuntimeError(f"matplotlib initialisation failed: {exc}") from exc
    return plt
