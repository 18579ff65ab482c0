"""High level orchestration: segment, calibrate and demultiplex whole datasets."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import CalibrationConfig, ScalarGains, TfSettings
from .data import RecordData, load_records_csv
from .demux import ASR_CHANNELS, N_BLTS, ROUTING_TABLE, BltsRouting, route, routing_for, scalar_gain
from .rct import BiasItfSet
from .segments import Segment, find_sequences
from .tf import TransferFunction, apply_tf, combine

logger = logging.getLogger(__name__)

# LFR sampling frequencies F0..F3.
LFR_SAMPLING_FREQUENCIES_HZ: Tuple[float, ...] = (24576.0, 4096.0, 256.0, 16.0)


def lfr_sampling_frequency(freq_index: int) -> float:
    """Sampling frequency in Hz for LFR frequency index 0..3 (F0..F3)."""

    if isinstance(freq_index, float) and not freq_index.is_integer():
        raise ValueError(f"Illegal LFR frequency index {freq_index!r}")
    index = int(freq_index)
    if not 0 <= index < len(LFR_SAMPLING_FREQUENCIES_HZ):
        raise ValueError(f"Illegal LFR frequency index {freq_index!r}")
    return LFR_SAMPLING_FREQUENCIES_HZ[index]


@dataclass(frozen=True)
class ProcessedSegment:
    segment: Segment
    dlr_using_12: bool
    routing: Tuple[BltsRouting, ...]

    @property
    def description(self) -> str:
        if math.isnan(self.segment.mux_set):
            return "Unknown"
        return ROUTING_TABLE[int(self.segment.mux_set)].description


@dataclass(frozen=True)
class DemuxResult:
    """Nine ASR arrays in record order plus the segments they were built from."""

    asr: Dict[str, np.ndarray]
    segments: List[ProcessedSegment]

    def segment_table(self) -> pd.DataFrame:
        rows = []
        for processed in self.segments:
            seg = processed.segment
            row: Dict[str, object] = {
                "first": seg.first,
                "last": seg.last,
                "n_records": len(seg),
                "mux_set": seg.mux_set,
                "diff_gain": seg.diff_gain,
                "dlr_using_12": processed.dlr_using_12,
                "mode": processed.description,
            }
            for i, descriptor in enumerate(processed.routing, start=1):
                row[f"bias_{i}"] = descriptor.asr_channel or ""
            rows.append(row)
        return pd.DataFrame(rows)


# (segment, routing, segment samples) -> (samples to route, gains to divide by)
_BltsTransform = Callable[[Segment, List[BltsRouting], List[np.ndarray]], Tuple[List[np.ndarray], ScalarGains]]


def _normalise_inputs(
    blts: Sequence[np.ndarray],
    mux_set: Sequence[float] | np.ndarray,
    diff_gain: Sequence[float] | np.ndarray,
    dlr_using_12: bool | Sequence[bool] | np.ndarray,
) -> Tuple[List[np.ndarray], np.ndarray, np.ndarray, np.ndarray]:
    if len(blts) != N_BLTS:
        raise ValueError(f"Expected {N_BLTS} BLTS channels, got {len(blts)}")
    samples = [np.asarray(values, dtype=float) for values in blts]
    mux = np.asarray(mux_set, dtype=float)
    gain = np.asarray(diff_gain, dtype=float)
    if mux.ndim != 1 or gain.shape != mux.shape:
        raise ValueError(f"mux_set and diff_gain must be 1-D of equal length, got {mux.shape} and {gain.shape}")
    n_records = mux.size

    shape = samples[0].shape
    if samples[0].ndim not in (1, 2) or shape[0] != n_records:
        raise ValueError(f"BLTS samples must be shaped ({n_records},) or ({n_records}, n_samples), got {shape}")
    for i, values in enumerate(samples[1:], start=2):
        if values.shape != shape:
            raise ValueError(f"BIAS_{i} shape mismatch: expected {shape}, got {values.shape}")

    dlr = np.asarray(dlr_using_12)
    if dlr.ndim == 0:
        dlr = np.full(n_records, bool(dlr))
    elif dlr.shape != mux.shape:
        raise ValueError(f"dlr_using_12 must be a scalar or shaped {mux.shape}, got {dlr.shape}")
    elif not np.all((dlr == 0) | (dlr == 1)):
        raise ValueError("dlr_using_12 must contain booleans only")
    return samples, mux, gain, dlr.astype(bool)


def _process(
    blts: Sequence[np.ndarray],
    mux_set: Sequence[float] | np.ndarray,
    diff_gain: Sequence[float] | np.ndarray,
    dlr_using_12: bool | Sequence[bool] | np.ndarray,
    transform: _BltsTransform,
) -> DemuxResult:
    samples, mux, gain, dlr = _normalise_inputs(blts, mux_set, diff_gain, dlr_using_12)

    n_unknown = int(np.count_nonzero(np.isnan(mux)))
    if n_unknown:
        logger.warning("%d record(s) have unknown mux mode; their ASRs are NaN", n_unknown)

    asr = {name: np.full(samples[0].shape, np.nan) for name in ASR_CHANNELS}
    processed: List[ProcessedSegment] = []
    for first, last in find_sequences(mux, gain, dlr):
        seg = Segment(first=first, last=last, mux_set=float(mux[first]), diff_gain=float(gain[first]))
        seg_dlr = bool(dlr[first])
        logger.info(
            "Records %d-%d : Demultiplexing; MUX_SET=%g; DIFF_GAIN=%g",
            seg.first,
            seg.last,
            seg.mux_set,
            seg.diff_gain,
        )

        routing = routing_for(seg.mux_set, seg_dlr)
        seg_samples, gains = transform(seg, routing, [values[seg.slice] for values in samples])
        seg_asr, routing = route(seg.mux_set, seg.diff_gain, seg_dlr, seg_samples, gains)
        for name, values in seg_asr.items():
            asr[name][seg.slice] = values
        processed.append(ProcessedSegment(segment=seg, dlr_using_12=seg_dlr, routing=tuple(routing)))

    return DemuxResult(asr=asr, segments=processed)


def demultiplex_records(
    blts: Sequence[np.ndarray],
    mux_set: Sequence[float] | np.ndarray,
    diff_gain: Sequence[float] | np.ndarray,
    dlr_using_12: bool | Sequence[bool] | np.ndarray = True,
    gains: ScalarGains | None = None,
) -> DemuxResult:
    """Demultiplex a whole dataset using scalar gains only.

    *blts* holds five arrays shaped ``(n_records,)`` (continuous waveform) or
    ``(n_records, n_samples)`` (snapshots). The records are split into runs of
    constant mux mode, diff gain and latching relay setting; each run is routed
    separately and the results are stitched back in record order.
    """

    gains = gains if gains is not None else ScalarGains()

    def scale_only(seg: Segment, routing: List[BltsRouting], seg_samples: List[np.ndarray]):
        return seg_samples, gains

    return _process(blts, mux_set, diff_gain, dlr_using_12, scale_only)


def _apply_to_samples(values: np.ndarray, tf: TransferFunction, dt: float, settings: TfSettings) -> np.ndarray:
    def calibrate(y: np.ndarray) -> np.ndarray:
        y2, _, _, _ = apply_tf(
            dt,
            y,
            tf,
            detrend_degree=settings.detrend_degree,
            retrend=settings.retrend,
            hf_cutoff_fraction=settings.high_freq_limit_fraction,
        )
        return y2

    if values.ndim == 1:
        return calibrate(values)
    # Snapshots are calibrated one record at a time.
    return np.array([calibrate(row) for row in values]).reshape(values.shape)


def calibrate_records(
    blts: Sequence[np.ndarray],
    mux_set: Sequence[float] | np.ndarray,
    diff_gain: Sequence[float] | np.ndarray,
    dlr_using_12: bool | Sequence[bool] | np.ndarray,
    config: CalibrationConfig,
    bias_itfs: BiasItfSet | None = None,
    digitizer_itfs: Sequence[Optional[TransferFunction]] | None = None,
) -> DemuxResult:
    """Calibrate BLTS signals with transfer functions, then demultiplex.

    Each BLTS channel is calibrated according to what it carries in its
    segment: the BIAS ITF of its category (times the channel's digitizer ITF,
    if given). Signals without a BIAS ITF are divided by the scalar gain of
    their category instead. Continuous waveforms are calibrated as one series
    per segment, sampled at ``config.sampling_frequency_hz``.
    """

    if digitizer_itfs is not None and len(digitizer_itfs) != N_BLTS:
        raise ValueError(f"Expected {N_BLTS} digitizer ITFs (None for none), got {len(digitizer_itfs)}")
    dt = config.dt

    def calibrate(seg: Segment, routing: List[BltsRouting], seg_samples: List[np.ndarray]):
        calibrated: List[np.ndarray] = []
        for i, (descriptor, values) in enumerate(zip(routing, seg_samples)):
            if descriptor.category is None:
                calibrated.append(values)
                continue
            bias_tf = bias_itfs.for_category(descriptor.category, seg.diff_gain) if bias_itfs else None
            digitizer_tf = digitizer_itfs[i] if digitizer_itfs is not None else None
            if bias_tf is None:
                values = values / scalar_gain(config.gains, descriptor.category, seg.diff_gain)
            tfs = [tf for tf in (bias_tf, digitizer_tf) if tf is not None]
            if tfs:
                logger.debug("BIAS_%d (%s): applying %d transfer function(s)", i + 1, descriptor.asr_channel, len(tfs))
                values = _apply_to_samples(values, combine(*tfs), dt, config.tf)
            calibrated.append(values)
        return calibrated, ScalarGains.unity()

    return _process(blts, mux_set, diff_gain, dlr_using_12, calibrate)


@dataclass(frozen=True)
class CalibrationResult:
    data: RecordData
    config: CalibrationConfig
    demux: DemuxResult
    asr_table: pd.DataFrame
    used_transfer_functions: bool


def run_calibration(
    path: str,
    config: CalibrationConfig | None = None,
    *,
    bias_itfs: BiasItfSet | None = None,
    digitizer_itfs: Sequence[Optional[TransferFunction]] | None = None,
) -> CalibrationResult:
    """Load records from CSV and produce the ASR table.

    Without transfer functions the BLTS samples are only divided by the
    scalar gains. A `dlr_using_12` column in the file takes precedence over
    the configured setting.
    """

    config = config if config is not None else CalibrationConfig()
    data = load_records_csv(path)
    dlr = data.dlr_using_12 if data.dlr_using_12 is not None else config.dlr_using_12

    use_tfs = bias_itfs is not None or digitizer_itfs is not None
    if use_tfs:
        demux = calibrate_records(
            data.blts,
            data.mux_set,
            data.diff_gain,
            dlr,
            config,
            bias_itfs=bias_itfs,
            digitizer_itfs=digitizer_itfs,
        )
    else:
        demux = demultiplex_records(data.blts, data.mux_set, data.diff_gain, dlr, config.gains)

    asr_table = _build_asr_table(data, demux)
    return CalibrationResult(
        data=data,
        config=config,
        demux=demux,
        asr_table=asr_table,
        used_transfer_functions=use_tfs,
    )


def _build_asr_table(data: RecordData, demux: DemuxResult) -> pd.DataFrame:
    df = pd.DataFrame(
        {
            "record": np.arange(len(data)),
            "mux_set": data.mux_set,
            "diff_gain": data.diff_gain,
        }
    )
    for name in ASR_CHANNELS:
        df[name] = demux.asr[name]
    return df
