"""Interpretation of calibration table (RCT) contents into transfer functions.

Only the array contents are handled here; locating, selecting and parsing
the RCT files themselves is up to the caller. BIAS tables hold *forward*
transfer functions (FTF) which are inverted into ITFs. LFR tables hold
tabulated FTFs which are extrapolated and inverted. TDS RSWF tables are
already inverted and TDS CWF tables are scalar factors. The BIAS table also
carries DC offsets and bias current calibration, see :class:`BiasOffsets`.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .demux import Category
from .tf import (
    RationalTransferFunction,
    TabulatedTransferFunction,
    TfKind,
    TransferFunction,
    extend_extrapolate,
)

logger = logging.getLogger(__name__)

# Minimum number of numerator or denominator coefficients in the BIAS RCT.
N_MIN_TF_NUMER_DENOM_COEFFS = 8
# Minimum number of rows in tabulated transfer functions.
TF_TABLE_MIN_LENGTH = 10

# Index layout of the BIAS RCT coefficient array (n_coeffs, 2, 4).
NUMERATOR = 0
DENOMINATOR = 1
DC_SINGLE = 0
DC_DIFF = 1
AC_LOW_GAIN = 2
AC_HIGH_GAIN = 3

# Number of BLTS channels tabulated per LFR sampling frequency F0..F3.
LFR_N_BLTS_PER_LSF = (5, 5, 5, 3)


class CalibrationTableError(ValueError):
    """Calibration table contents can not be interpreted."""


def create_itf_sequence(
    ftf_numerators: np.ndarray, ftf_denominators: np.ndarray
) -> List[RationalTransferFunction]:
    """Invert rows of FTF coefficients into a list of ITFs.

    Row ``i`` of both arguments holds the coefficients (increasing powers of
    ``s``) of one FTF.
    """

    num = np.atleast_2d(np.asarray(ftf_numerators, dtype=float))
    den = np.atleast_2d(np.asarray(ftf_denominators, dtype=float))
    if num.shape[0] != den.shape[0]:
        raise ValueError(f"Numerator rows ({num.shape[0]}) and denominator rows ({den.shape[0]}) differ")

    itfs: List[RationalTransferFunction] = []
    for num_row, den_row in zip(num, den):
        ftf = RationalTransferFunction(num_row, den_row, kind=TfKind.FTF)
        itf = ftf.inverse()
        if not itf.has_real_impulse_response():
            raise ValueError("ITF does not have a real impulse response")
        itfs.append(itf)
    return itfs


@dataclass(frozen=True)
class BiasItfSet:
    """BIAS inverse transfer functions for one calibration epoch."""

    dc_single: RationalTransferFunction
    dc_diff: RationalTransferFunction
    ac_low_gain: RationalTransferFunction
    ac_high_gain: RationalTransferFunction

    @staticmethod
    def from_ftf_coefficients(coeffs: np.ndarray, *, source: str = "BIAS RCT") -> "BiasItfSet":
        """Build from one epoch of coefficients shaped ``(n_coeffs, 2, 4)``."""

        return read_bias_itf_sets(np.asarray(coeffs, dtype=float)[np.newaxis], source=source)[0]

    def for_category(self, category: Category, diff_gain: float) -> Optional[RationalTransferFunction]:
        """ITF calibrating a BLTS signal of *category*; None if there is none.

        Internal reference signals (GND, 2.5 V) and AC signals with unknown
        diff gain have no ITF.
        """

        if category is Category.DC_SINGLE:
            return self.dc_single
        if category is Category.DC_DIFF:
            return self.dc_diff
        if category is Category.AC:
            gain = float(diff_gain)
            if math.isnan(gain):
                return None
            if gain == 0.0:
                return self.ac_low_gain
            if gain == 1.0:
                return self.ac_high_gain
            raise ValueError(f"Illegal diff_gain value {diff_gain!r} (expected 0, 1 or NaN)")
        return None


def read_bias_itf_sets(tf_coeffs: np.ndarray, *, source: str = "BIAS RCT") -> List[BiasItfSet]:
    """Interpret ``TRANSFER_FUNCTION_COEFFS`` shaped ``(n_epochs, n_coeffs, 2, 4)``."""

    try:
        coeffs = np.asarray(tf_coeffs, dtype=float)
        if coeffs.ndim != 4 or coeffs.shape[2:] != (2, 4):
            raise ValueError(f"Expected coefficient array shaped (n_epochs, n_coeffs, 2, 4), got {coeffs.shape}")
        if coeffs.shape[1] < N_MIN_TF_NUMER_DENOM_COEFFS:
            raise ValueError(
                f"Expected at least {N_MIN_TF_NUMER_DENOM_COEFFS} coefficients per polynomial, "
                f"got {coeffs.shape[1]}"
            )

        def sequence(index: int) -> List[RationalTransferFunction]:
            return create_itf_sequence(coeffs[:, :, NUMERATOR, index], coeffs[:, :, DENOMINATOR, index])

        dc_single = sequence(DC_SINGLE)
        dc_diff = sequence(DC_DIFF)
        ac_low = sequence(AC_LOW_GAIN)
        ac_high = sequence(AC_HIGH_GAIN)
    except ValueError as exc:
        raise CalibrationTableError(f"Can not interpret calibration table {source!r}: {exc}") from exc

    logger.debug("Read %d BIAS ITF epoch(s) from %s", len(dc_single), source)
    return [BiasItfSet(*itfs) for itfs in zip(dc_single, dc_diff, ac_low, ac_high)]


@dataclass(frozen=True)
class BiasOffsets:
    """Time-dependent BIAS offsets and bias current calibration.

    Current offsets and gains follow ``epoch_l`` (shape ``(n_epoch_l, 3)``);
    DC single-ended and differential offsets follow ``epoch_h`` (shape
    ``(n_epoch_h, 3)``, differential columns E12, E13, E23).
    """

    epoch_l: np.ndarray
    epoch_h: np.ndarray
    current_offsets_ampere: np.ndarray
    current_gains_apc: np.ndarray
    dc_single_offsets_volt: np.ndarray
    dc_diff_offsets_volt: np.ndarray

    @property
    def e12_volt(self) -> np.ndarray:
        return self.dc_diff_offsets_volt[:, 0]

    @property
    def e13_volt(self) -> np.ndarray:
        return self.dc_diff_offsets_volt[:, 1]

    @property
    def e23_volt(self) -> np.ndarray:
        return self.dc_diff_offsets_volt[:, 2]


def _check_epochs(name: str, epoch: np.ndarray) -> None:
    if epoch.ndim != 1:
        raise ValueError(f"{name} must be 1-D, got shape {epoch.shape}")
    if np.any(np.diff(epoch) <= 0):
        raise ValueError(f"{name} is not strictly increasing")


def _per_epoch_table(name: str, values: np.ndarray, n_epochs: int) -> np.ndarray:
    table = np.asarray(values, dtype=float)
    if table.ndim == 1:
        table = table[np.newaxis]
    if table.shape != (n_epochs, 3):
        raise ValueError(f"{name} must be shaped ({n_epochs}, 3), got {table.shape}")
    return table


def read_bias_offsets(
    epoch_l: np.ndarray,
    epoch_h: np.ndarray,
    current_offsets: np.ndarray,
    current_gains: np.ndarray,
    v_offset: np.ndarray,
    e_offset: np.ndarray,
    *,
    n_tf_epochs: Optional[int] = None,
    source: str = "BIAS RCT",
) -> BiasOffsets:
    """Interpret the non-TF contents of the BIAS RCT.

    ``BIAS_CURRENT_OFFSET``/``BIAS_CURRENT_GAIN`` are indexed by ``Epoch_L``,
    ``V_OFFSET``/``E_OFFSET`` by ``Epoch_H``. *n_tf_epochs* is the number of
    epochs in ``TRANSFER_FUNCTION_COEFFS``, which also follows ``Epoch_L``.
    """

    try:
        ep_l = np.asarray(epoch_l)
        ep_h = np.asarray(epoch_h)
        _check_epochs("Epoch_L", ep_l)
        _check_epochs("Epoch_H", ep_h)
        if n_tf_epochs is not None and n_tf_epochs != ep_l.size:
            raise ValueError(
                f"Transfer function coefficients have {n_tf_epochs} epoch(s), Epoch_L has {ep_l.size}"
            )
        offsets = BiasOffsets(
            epoch_l=ep_l,
            epoch_h=ep_h,
            current_offsets_ampere=_per_epoch_table("BIAS_CURRENT_OFFSET", current_offsets, ep_l.size),
            current_gains_apc=_per_epoch_table("BIAS_CURRENT_GAIN", current_gains, ep_l.size),
            dc_single_offsets_volt=_per_epoch_table("V_OFFSET", v_offset, ep_h.size),
            dc_diff_offsets_volt=_per_epoch_table("E_OFFSET", e_offset, ep_h.size),
        )
    except ValueError as exc:
        raise CalibrationTableError(f"Can not interpret calibration table {source!r}: {exc}") from exc

    logger.debug("Read BIAS offsets for %d low and %d high epoch(s) from %s", ep_l.size, ep_h.size, source)
    return offsets


def _check_table(freq_hz: np.ndarray, *columns: np.ndarray) -> None:
    if freq_hz.ndim != 1:
        raise ValueError(f"Frequency table must be 1-D, got shape {freq_hz.shape}")
    if freq_hz.size < TF_TABLE_MIN_LENGTH:
        raise ValueError(f"Frequency table has {freq_hz.size} rows, expected at least {TF_TABLE_MIN_LENGTH}")
    for column in columns:
        if column.shape != freq_hz.shape:
            raise ValueError(f"Table column shape {column.shape} does not match frequencies {freq_hz.shape}")


def lfr_itf_from_table(
    freq_hz: np.ndarray,
    amplitude: np.ndarray,
    phase_deg: np.ndarray,
    *,
    extrapolate_hz: float = 0.0,
    source: str = "LFR RCT",
) -> TabulatedTransferFunction:
    """Turn one tabulated LFR FTF into an ITF.

    The table is first extended by *extrapolate_hz* (amplitude exponentially,
    phase linearly) since calibrating continuous waveforms needs TF values
    slightly above the tabulated frequencies. Above the extended table the
    ITF is zero.
    """

    try:
        freq = np.asarray(freq_hz, dtype=float)
        ampl = np.asarray(amplitude, dtype=float)
        phase = np.asarray(phase_deg, dtype=float)
        _check_table(freq, ampl, phase)

        _, ampl = extend_extrapolate(freq, ampl, extrapolate_hz, y_method="exponential")
        freq, phase = extend_extrapolate(freq, phase, extrapolate_hz, y_method="linear")

        ftf = TabulatedTransferFunction(
            omega_rps=freq * 2 * np.pi,
            amplitude=ampl,
            phase_rad=np.deg2rad(phase),
            kind=TfKind.FTF,
            zero_above_table=True,
        )
        return ftf.inverse()
    except ValueError as exc:
        raise CalibrationTableError(f"Error when interpreting calibration table {source!r}: {exc}") from exc


def read_lfr_itf_table(
    freq_tables_hz: Sequence[np.ndarray],
    amplitude_tables: Sequence[np.ndarray],
    phase_tables_deg: Sequence[np.ndarray],
    *,
    extrapolate_hz: float = 0.0,
    source: str = "LFR RCT",
) -> List[List[TabulatedTransferFunction]]:
    """ITFs indexed ``[i_lsf][i_blts]`` for LFR sampling frequencies F0..F3.

    Amplitude and phase tables are shaped ``(n_freqs, n_blts)`` with five BLTS
    channels for F0-F2 and three for F3.
    """

    if not (len(freq_tables_hz) == len(amplitude_tables) == len(phase_tables_deg) == len(LFR_N_BLTS_PER_LSF)):
        raise CalibrationTableError(f"Calibration table {source!r} must contain one table per LFR sampling frequency")

    table: List[List[TabulatedTransferFunction]] = []
    for i_lsf, n_blts in enumerate(LFR_N_BLTS_PER_LSF):
        ampl = np.asarray(amplitude_tables[i_lsf], dtype=float)
        phase = np.asarray(phase_tables_deg[i_lsf], dtype=float)
        if ampl.ndim != 2 or ampl.shape[1] != n_blts or phase.shape != ampl.shape:
            raise CalibrationTableError(
                f"Calibration table {source!r}: F{i_lsf} tables must be shaped (n_freqs, {n_blts}), "
                f"got {ampl.shape} and {phase.shape}"
            )
        table.append(
            [
                lfr_itf_from_table(
                    freq_tables_hz[i_lsf],
                    ampl[:, i_blts],
                    phase[:, i_blts],
                    extrapolate_hz=extrapolate_hz,
                    source=f"{source} F{i_lsf} BIAS_{i_blts + 1}",
                )
                for i_blts in range(n_blts)
            ]
        )
    return table


def tds_rswf_itf_from_table(
    freq_hz: np.ndarray,
    amplitude: np.ndarray,
    phase_deg: np.ndarray,
    *,
    source: str = "TDS RSWF RCT",
) -> TabulatedTransferFunction:
    """ITF for one TDS BLTS channel.

    The table is output-to-input already; an amplitude that decreases
    toward high frequencies is rejected as not inverted.
    """

    try:
        freq = np.asarray(freq_hz, dtype=float)
        ampl = np.asarray(amplitude, dtype=float)
        phase = np.asarray(phase_deg, dtype=float)
        _check_table(freq, ampl, phase)
        return TabulatedTransferFunction(
            omega_rps=freq * 2 * np.pi,
            amplitude=ampl,
            phase_rad=np.deg2rad(phase),
            kind=TfKind.ITF,
            zero_above_table=True,
        )
    except ValueError as exc:
        raise CalibrationTableError(f"Error when interpreting calibration table {source!r}: {exc}") from exc


def read_tds_rswf_itfs(
    freq_hz: np.ndarray,
    amplitude: np.ndarray,
    phase_deg: np.ndarray,
    *,
    source: str = "TDS RSWF RCT",
) -> List[TabulatedTransferFunction]:
    """ITFs for the three TDS BLTS channels; tables are shaped ``(3, n_freqs)``."""

    ampl = np.asarray(amplitude, dtype=float)
    phase = np.asarray(phase_deg, dtype=float)
    if ampl.ndim != 2 or ampl.shape[0] != 3 or phase.shape != ampl.shape:
        raise CalibrationTableError(
            f"Calibration table {source!r}: expected amplitude/phase tables shaped (3, n_freqs), "
            f"got {ampl.shape} and {phase.shape}"
        )
    return [
        tds_rswf_itf_from_table(freq_hz, ampl[i], phase[i], source=f"{source} BIAS_{i + 1}")
        for i in range(3)
    ]


def tds_cwf_factors(table: np.ndarray, *, source: str = "TDS CWF RCT") -> np.ndarray:
    """Volt-per-count factors for the three TDS CWF BLTS channels.

    These are plain multipliers, not frequency dependent.
    """

    factors = np.squeeze(np.asarray(table, dtype=float))
    if factors.shape != (3,):
        raise CalibrationTableError(
            f"Calibration table {source!r}: expected 3 TDS CWF factors, got shape {np.shape(table)}"
        )
    if not np.isfinite(factors).all():
        raise CalibrationTableError(f"Calibration table {source!r}: TDS CWF factors must be finite")
    return factors


def digitizer_itfs_for_lfr(
    lfr_table: Sequence[Sequence[TransferFunction]], i_lsf: int
) -> List[Optional[TransferFunction]]:
    """Per-BLTS digitizer ITFs for one LFR sampling frequency, padded to five."""

    itfs: List[Optional[TransferFunction]] = list(lfr_table[i_lsf])
    return itfs + [None] * (5 - len(itfs))
