"""Report writers for calibration results."""
from __future__ import annotations

from pathlib import Path

import numpy as np

from .demux import ASR_CHANNELS
from .pipeline import CalibrationResult


def export_results(
    result: CalibrationResult,
    output_dir: Path,
    *,
    figure_path: Path | None = None,
    input_path: Path | None = None,
) -> None:
    """Persist the ASR table, segment table and markdown report to *output_dir*."""

    output_dir.mkdir(parents=True, exist_ok=True)
    _write_asr_csv(result, output_dir)
    _write_segments_csv(result, output_dir)
    _write_report_md(result, output_dir, figure_path=figure_path, input_path=input_path)


def _write_asr_csv(result: CalibrationResult, output_dir: Path) -> None:
    result.asr_table.to_csv(output_dir / "asr.csv", index=False)


def _write_segments_csv(result: CalibrationResult, output_dir: Path) -> None:
    result.demux.segment_table().to_csv(output_dir / "segments.csv", index=False)


def _format_config_value(value: float) -> str:
    return "NaN" if np.isnan(value) else f"{value:g}"


def _write_report_md(
    result: CalibrationResult,
    output_dir: Path,
    *,
    figure_path: Path | None,
    input_path: Path | None,
) -> None:
    gains = result.config.gains
    tf = result.config.tf
    lines: list[str] = []
    lines.append("# BIAS Calibration Report")
    if input_path is not None:
        lines.append(f"*Input file:* `{input_path}`  ")
    lines.append(f"*Records:* {len(result.data)}  ")
    lines.append(f"*Segments:* {len(result.demux.segments)}  ")
    if result.used_transfer_functions:
        lines.append(
            f"*Calibration:* transfer functions (detrend degree {tf.detrend_degree}, "
            f"retrend {tf.retrend}, cutoff {tf.high_freq_limit_fraction:g} x Nyquist)  "
        )
    else:
        lines.append("*Calibration:* scalar gains  ")
    lines.append("")

    lines.append("## Scalar gains")
    lines.append("| Gain | Value |")
    lines.append("| --- | ---: |")
    lines.append(f"| alpha | {gains.alpha:.6g} |")
    lines.append(f"| beta | {gains.beta:.6g} |")
    lines.append(f"| gamma (low gain) | {gains.gamma_low_gain:.6g} |")
    lines.append(f"| gamma (high gain) | {gains.gamma_high_gain:.6g} |")
    lines.append("")

    lines.append("## Segments")
    lines.append("| Records | MUX_SET | DIFF_GAIN | DLR | Mode | BIAS_1..5 |")
    lines.append("| --- | ---: | ---: | --- | --- | --- |")
    for processed in result.demux.segments:
        seg = processed.segment
        channels = ", ".join(d.asr_channel or "-" for d in processed.routing)
        dlr = "V12" if processed.dlr_using_12 else "V13"
        lines.append(
            f"| {seg.first}-{seg.last} | {_format_config_value(seg.mux_set)} | "
            f"{_format_config_value(seg.diff_gain)} | {dlr} | {processed.description} | {channels} |"
        )
    lines.append("")

    lines.append("## ASR coverage")
    lines.append("| Channel | Finite samples | Fraction |")
    lines.append("| --- | ---: | ---: |")
    for name in ASR_CHANNELS:
        values = result.demux.asr[name]
        finite = int(np.count_nonzero(np.isfinite(values)))
        fraction = finite / values.size if values.size else 0.0
        lines.append(f"| {name} | {finite} | {fraction:.3f} |")
    lines.append("")

    if figure_path is not None:
        lines.append(f"![ASR channels]({figure_path.name})")
        lines.append("")

    lines.append("### Notes")
    lines.append("- Records with unknown mux mode (NaN) have NaN in every ASR channel.")
    lines.append("- Mux modes 1-3 derive no DC channels; the missing ones stay NaN.")

    (output_dir / "report.md").write_text("\n".join(lines), encoding="utf-8")
