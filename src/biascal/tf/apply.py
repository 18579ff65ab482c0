"""Apply transfer functions to evenly sampled signals in the frequency domain.

De-trending removes a polynomial fit before the TF is applied; it does not
imply re-trending. Re-trending adds the fit back, scaled by ``tf(0)``, which
is only meaningful for lowpass-like TFs. The high-frequency cutoff depends
on the sampling frequency and is therefore applied by wrapping the TF here
rather than stored in the TF itself.
"""
from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np

from .base import TransferFunction, as_omega

logger = logging.getLogger(__name__)


def high_freq_cutoff(tf: TransferFunction, limit_rps: float) -> TransferFunction:
    """Wrap *tf* so that it is zero for ``|omega| >= limit_rps``."""

    def tf_cut(omega_rps: np.ndarray | float) -> np.ndarray:
        omega = as_omega(omega_rps)
        z = np.broadcast_to(np.asarray(tf(omega), dtype=complex), omega.shape)
        return np.where(np.abs(omega) < limit_rps, z, 0j)

    return tf_cut


def combine(*tfs: TransferFunction) -> TransferFunction:
    """Product of transfer functions, e.g. BIAS ITF times digitizer ITF."""

    if not tfs:
        raise ValueError("combine requires at least one transfer function")

    def tf_product(omega_rps: np.ndarray | float) -> np.ndarray:
        omega = as_omega(omega_rps)
        z = np.ones(omega.shape, dtype=complex)
        for tf in tfs:
            z = z * tf(omega)
        return z

    return tf_product


def apply_tf_freq(dt: float, y: np.ndarray, tf: TransferFunction) -> np.ndarray:
    """Multiply the spectrum of real signal *y* by *tf* and transform back.

    The signal is treated as periodic. Only non-negative frequencies are
    evaluated; the result is real, which corresponds to a TF with a real
    impulse response. A signal containing NaN gives an all-NaN result.
    """

    if not (dt > 0 and math.isfinite(dt)):
        raise ValueError(f"Sample spacing dt must be positive and finite, got {dt!r}")
    y = np.asarray(y, dtype=float)
    if y.ndim != 1:
        raise ValueError(f"Expected 1-D signal, got shape {y.shape}")
    n = y.size
    if n == 0:
        return y.copy()
    if np.any(np.isnan(y)):
        return np.full(n, np.nan)

    omega_rps = 2 * np.pi * np.fft.rfftfreq(n, d=dt)
    z = np.broadcast_to(np.asarray(tf(omega_rps), dtype=complex), omega_rps.shape)
    return np.fft.irfft(np.fft.rfft(y) * z, n=n)


def apply_tf(
    dt: float,
    y: np.ndarray,
    tf: TransferFunction,
    *,
    detrend_degree: int = -1,
    retrend: bool = False,
    hf_cutoff_fraction: float = math.inf,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, TransferFunction]:
    """Apply *tf* to *y* with optional de-/re-trending and a high-frequency cutoff.

    Parameters
    ----------
    dt:
        Sample spacing in seconds.
    y:
        1-D real signal.
    tf:
        Callable ``omega [rad/s] -> complex``.
    detrend_degree:
        Degree of the polynomial fit removed before applying the TF; negative
        disables de-trending. Must be below the number of samples.
    retrend:
        Add the fit back after the TF, scaled by ``tf(0)``. Requires
        de-trending.
    hf_cutoff_fraction:
        Fraction of the Nyquist frequency at and above which the TF is zero.
        May be ``inf``.

    Returns
    -------
    y2, y1b, y2b, tf_eff
        Calibrated signal, the (de-trended) signal the TF was applied to, the
        signal directly after the TF, and the TF actually used.
    """

    detrending = detrend_degree >= 0
    if retrend and not detrending:
        raise ValueError("Re-trending requires de-trending (detrend_degree >= 0)")
    if math.isnan(hf_cutoff_fraction) or hf_cutoff_fraction < 0:
        raise ValueError(f"hf_cutoff_fraction must be >= 0, got {hf_cutoff_fraction!r}")
    if not (dt > 0 and math.isfinite(dt)):
        raise ValueError(f"Sample spacing dt must be positive and finite, got {dt!r}")

    nyquist_rps = np.pi / dt
    tf_eff = high_freq_cutoff(tf, hf_cutoff_fraction * nyquist_rps)

    y = np.asarray(y, dtype=float)
    if y.ndim != 1:
        raise ValueError(f"Expected 1-D signal, got shape {y.shape}")
    n = y.size
    if detrending and 0 < n <= detrend_degree:
        raise ValueError(f"Cannot fit a degree {detrend_degree} trend to {n} sample(s)")
    if n == 0 or np.any(np.isnan(y)):
        nan_result = np.full(n, np.nan)
        return nan_result, y.copy(), nan_result.copy(), tf_eff

    x = np.arange(n, dtype=float)
    trend_coeffs = None
    if detrending:
        trend_coeffs = np.polyfit(x, y, detrend_degree)
        y1b = y - np.polyval(trend_coeffs, x)
    else:
        y1b = y.copy()

    y2b = apply_tf_freq(dt, y1b, tf_eff)

    if retrend:
        z0 = complex(np.asarray(tf_eff(np.array([0.0])))[0])
        logger.debug("Re-trending with tf(0)=%s", z0)
        y2 = y2b + np.real(np.polyval(trend_coeffs * z0, x))
    else:
        y2 = y2b
    return y2, y1b, y2b, tf_eff
