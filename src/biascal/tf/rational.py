from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .base import NonInvertedTransferFunctionError, TfKind, as_omega, readonly


def _degree(coeffs: np.ndarray) -> int:
    nonzero = np.flatnonzero(coeffs != 0)
    return int(nonzero[-1]) if nonzero.size else -1


def _as_coefficients(values, name: str) -> np.ndarray:
    coeffs = np.atleast_1d(np.asarray(values))
    if coeffs.ndim != 1 or coeffs.size == 0:
        raise ValueError(f"{name} must be a non-empty 1-D coefficient sequence")
    if not np.issubdtype(coeffs.dtype, np.number):
        raise ValueError(f"{name} must be numeric")
    if not np.all(np.isfinite(coeffs)):
        raise ValueError(f"{name} must be finite")
    if np.iscomplexobj(coeffs):
        return coeffs.astype(complex)
    return coeffs.astype(float)


@dataclass(frozen=True, eq=False)
class RationalTransferFunction:
    """Rational transfer function in the Laplace variable ``s = i*omega``.

        Z(omega) = (b0 + b1*s + b2*s^2 + ...) / (a0 + a1*s + a2*s^2 + ...)

    ``numerator`` holds ``b0, b1, ...`` and ``denominator`` ``a0, a1, ...``
    (increasing powers). Instances are immutable.
    """

    numerator: np.ndarray
    denominator: np.ndarray
    kind: TfKind = TfKind.FTF

    def __post_init__(self) -> None:
        numerator = _as_coefficients(self.numerator, "numerator")
        denominator = _as_coefficients(self.denominator, "denominator")
        if _degree(denominator) < 0:
            raise ValueError("denominator must have at least one non-zero coefficient")
        object.__setattr__(self, "numerator", readonly(numerator))
        object.__setattr__(self, "denominator", readonly(denominator))
        object.__setattr__(self, "kind", TfKind(self.kind))
        if self.kind is TfKind.ITF and self.zero_in_high_freq_limit():
            raise NonInvertedTransferFunctionError(
                "Rational ITF tends to zero at high frequency; it is probably not inverted "
                "(physical output-to-input)"
            )

    def __call__(self, omega_rps: np.ndarray | float) -> np.ndarray:
        return self.evaluate(omega_rps)

    def evaluate(self, omega_rps: np.ndarray | float) -> np.ndarray:
        s = 1j * as_omega(omega_rps)
        # np.polyval wants the highest power first.
        return np.polyval(self.numerator[::-1], s) / np.polyval(self.denominator[::-1], s)

    def inverse(self) -> "RationalTransferFunction":
        """Swap numerator and denominator (FTF <-> ITF)."""

        return RationalTransferFunction(
            numerator=self.denominator,
            denominator=self.numerator,
            kind=self.kind.inverted,
        )

    def has_real_impulse_response(self) -> bool:
        return not (np.any(np.imag(self.numerator) != 0) or np.any(np.imag(self.denominator) != 0))

    def zero_in_high_freq_limit(self) -> bool:
        return _degree(self.numerator) < _degree(self.denominator)

    def __repr__(self) -> str:
        return (
            f"RationalTransferFunction(kind={self.kind.value}, "
            f"numerator={self.numerator.tolist()}, denominator={self.denominator.tolist()})"
        )
