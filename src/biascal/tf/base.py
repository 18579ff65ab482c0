from __future__ import annotations

import enum
from typing import Callable

import numpy as np

# Anything evaluable as omega [rad/s] -> complex gain.
TransferFunction = Callable[[np.ndarray], np.ndarray]


class TfKind(str, enum.Enum):
    FTF = "FTF"  # physical input -> output
    ITF = "ITF"  # output -> input, used for calibration

    @property
    def inverted(self) -> "TfKind":
        return TfKind.ITF if self is TfKind.FTF else TfKind.FTF


class NonInvertedTransferFunctionError(ValueError):
    """An ITF that vanishes at high frequency, i.e. an FTF mislabelled as ITF."""


def as_omega(omega_rps: np.ndarray | float) -> np.ndarray:
    omega = np.asarray(omega_rps, dtype=float)
    if np.any(np.isnan(omega)):
        raise ValueError("Angular frequency must not contain NaN")
    return omega


def readonly(values: np.ndarray) -> np.ndarray:
    arr = np.array(values, copy=True)
    arr.setflags(write=False)
    return arr
