"""Tabulated transfer functions and extrapolation of their tables."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

from .base import NonInvertedTransferFunctionError, TfKind, as_omega, readonly

INTERPOLATIONS = ("loglinear", "linear")


def _check_grid(x: np.ndarray, name: str) -> None:
    if x.ndim != 1 or x.size < 2:
        raise ValueError(f"{name} must be 1-D with at least two entries")
    if not np.all(np.isfinite(x)):
        raise ValueError(f"{name} must be finite")
    if np.any(np.diff(x) <= 0):
        raise ValueError(f"{name} must be strictly increasing")


def _grid_extension(x_prev: float, x_last: float, x_target: float, spacing: str) -> np.ndarray:
    """Points continuing the grid ``x_prev, x_last`` until *x_target* is covered."""

    if spacing == "linear":
        step = x_last - x_prev
        n = int(math.ceil((x_target - x_last) / step))
        return x_last + step * np.arange(1, max(n, 1) + 1)
    if spacing == "exponential":
        if x_prev <= 0 or x_last <= 0 or x_target <= 0:
            raise ValueError("Exponential grid spacing requires strictly positive x values")
        ratio = x_last / x_prev
        n = int(math.ceil(math.log(x_target / x_last) / math.log(ratio)))
        return x_last * ratio ** np.arange(1, max(n, 1) + 1)
    raise ValueError(f"Unknown x spacing {spacing!r}")


def _value_extension(
    x_a: float, x_b: float, y_a: float, y_b: float, x_new: np.ndarray, method: str
) -> np.ndarray:
    """Continue ``y`` beyond ``(x_b, y_b)`` using the last two points."""

    if method == "linear":
        return y_b + (y_b - y_a) / (x_b - x_a) * (x_new - x_b)
    if method == "exponential":
        if y_a == 0 or y_b == 0 or (y_a > 0) != (y_b > 0):
            raise ValueError("Exponential extrapolation requires non-zero values of equal sign")
        return y_b * (y_b / y_a) ** ((x_new - x_b) / (x_b - x_a))
    raise ValueError(f"Unknown extrapolation method {method!r}")


def extend_extrapolate(
    x: np.ndarray,
    y: np.ndarray,
    distance: float,
    *,
    direction: str = "positive",
    x_spacing: str = "exponential",
    y_method: str = "exponential",
) -> Tuple[np.ndarray, np.ndarray]:
    """Extend the table ``(x, y)`` by at least *distance* in *direction*.

    New x points continue the spacing of the two outermost points either
    geometrically (``"exponential"``) or arithmetically (``"linear"``); new y
    values follow the line (``"linear"``) or exponential (``"exponential"``)
    through the same two points. The last new point lies at or beyond
    ``x[-1] + distance`` (``x[0] - distance`` for ``"negative"``).
    """

    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    _check_grid(x, "x")
    if y.shape != x.shape:
        raise ValueError(f"y shape {y.shape} does not match x shape {x.shape}")
    if not distance >= 0:
        raise ValueError("Extrapolation distance must be non-negative")
    if distance == 0:
        return x.copy(), y.copy()

    if direction == "positive":
        x_new = _grid_extension(x[-2], x[-1], x[-1] + distance, x_spacing)
        y_new = _value_extension(x[-2], x[-1], y[-2], y[-1], x_new, y_method)
        return np.concatenate([x, x_new]), np.concatenate([y, y_new])
    if direction == "negative":
        x_new = _grid_extension(x[1], x[0], x[0] - distance, x_spacing)
        y_new = _value_extension(x[1], x[0], y[1], y[0], x_new, y_method)
        return np.concatenate([x_new[::-1], x]), np.concatenate([y_new[::-1], y])
    raise ValueError(f"Unknown direction {direction!r}")


@dataclass(frozen=True, eq=False)
class TabulatedTransferFunction:
    """Transfer function given as rows (omega, amplitude, phase).

    Between rows, phase is interpolated linearly in omega and amplitude either
    log-linearly (default) or linearly. Below the first row the first row is
    held. Above the last row the last row is held, or the TF is zero if
    ``zero_above_table`` is set. Negative frequencies return the complex
    conjugate, i.e. the TF has a real impulse response.
    """

    omega_rps: np.ndarray
    amplitude: np.ndarray
    phase_rad: np.ndarray
    kind: TfKind = TfKind.FTF
    interpolation: str = "loglinear"
    zero_above_table: bool = False

    def __post_init__(self) -> None:
        omega = np.asarray(self.omega_rps, dtype=float)
        amplitude = np.asarray(self.amplitude, dtype=float)
        phase = np.asarray(self.phase_rad, dtype=float)
        _check_grid(omega, "omega_rps")
        if omega[0] < 0:
            raise ValueError("omega_rps must be non-negative")
        if amplitude.shape != omega.shape or phase.shape != omega.shape:
            raise ValueError("omega_rps, amplitude and phase_rad must have equal lengths")
        if not (np.all(np.isfinite(amplitude)) and np.all(np.isfinite(phase))):
            raise ValueError("amplitude and phase_rad must be finite")
        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {INTERPOLATIONS}")
        if self.interpolation == "loglinear" and np.any(amplitude <= 0):
            raise ValueError("Log-linear interpolation requires strictly positive amplitudes")
        if np.any(amplitude < 0):
            raise ValueError("amplitude must be non-negative")

        object.__setattr__(self, "omega_rps", readonly(omega))
        object.__setattr__(self, "amplitude", readonly(amplitude))
        object.__setattr__(self, "phase_rad", readonly(phase))
        object.__setattr__(self, "kind", TfKind(self.kind))
        if self.kind is TfKind.ITF and self.toward_zero_at_high_freq():
            raise NonInvertedTransferFunctionError(
                "Tabulated ITF goes toward zero at high frequency; it is probably not inverted "
                "(physical output-to-input)"
            )

    @classmethod
    def from_complex(cls, omega_rps: np.ndarray, z: np.ndarray, **kwargs) -> "TabulatedTransferFunction":
        z = np.asarray(z, dtype=complex)
        return cls(omega_rps, np.abs(z), np.unwrap(np.angle(z)), **kwargs)

    @property
    def z(self) -> np.ndarray:
        return self.amplitude * np.exp(1j * self.phase_rad)

    def __call__(self, omega_rps: np.ndarray | float) -> np.ndarray:
        return self.evaluate(omega_rps)

    def evaluate(self, omega_rps: np.ndarray | float) -> np.ndarray:
        omega = as_omega(omega_rps)
        w = np.abs(omega)
        if self.interpolation == "loglinear":
            amplitude = np.exp(np.interp(w, self.omega_rps, np.log(self.amplitude)))
        else:
            amplitude = np.interp(w, self.omega_rps, self.amplitude)
        phase = np.interp(w, self.omega_rps, self.phase_rad)
        z = amplitude * np.exp(1j * phase)
        if self.zero_above_table:
            z = np.where(w > self.omega_rps[-1], 0.0, z)
        return np.where(omega < 0, np.conj(z), z)

    def inverse(self) -> "TabulatedTransferFunction":
        """Reciprocate amplitude and negate phase row by row (FTF <-> ITF)."""

        if np.any(self.amplitude == 0):
            raise ValueError("Cannot invert a tabulated TF with zero amplitude rows")
        return replace(
            self,
            amplitude=1.0 / self.amplitude,
            phase_rad=-self.phase_rad,
            kind=self.kind.inverted,
        )

    def toward_zero_at_high_freq(self) -> bool:
        return bool(self.amplitude[-1] < self.amplitude[0])

    def extrapolated(
        self,
        amount_rps: float,
        *,
        amplitude_method: str = "exponential",
        phase_method: str = "linear",
        x_spacing: str = "exponential",
    ) -> "TabulatedTransferFunction":
        """Return a copy with synthetic rows beyond the last tabulated frequency."""

        if amount_rps == 0:
            return self
        omega, amplitude = extend_extrapolate(
            self.omega_rps, self.amplitude, amount_rps, x_spacing=x_spacing, y_method=amplitude_method
        )
        _, phase = extend_extrapolate(
            self.omega_rps, self.phase_rad, amount_rps, x_spacing=x_spacing, y_method=phase_method
        )
        return replace(self, omega_rps=omega, amplitude=amplitude, phase_rad=phase)

    def __repr__(self) -> str:
        return (
            f"TabulatedTransferFunction(kind={self.kind.value}, rows={self.omega_rps.size}, "
            f"omega=[{self.omega_rps[0]:.6g}, {self.omega_rps[-1]:.6g}] rad/s)"
        )
