"""
Transfer function models and their application to sampled signals.

Transfer functions are immutable callables ``omega [rad/s] -> complex`` so
one instance can be shared by every segment and channel of a calibration
epoch.
"""

from .apply import apply_tf, apply_tf_freq, combine, high_freq_cutoff
from .base import NonInvertedTransferFunctionError, TfKind, TransferFunction
from .rational import RationalTransferFunction
from .tabulated import TabulatedTransferFunction, extend_extrapolate

__all__ = [
    "NonInvertedTransferFunctionError",
    "RationalTransferFunction",
    "TabulatedTransferFunction",
    "TfKind",
    "TransferFunction",
    "apply_tf",
    "apply_tf_freq",
    "combine",
    "extend_extrapolate",
    "high_freq_cutoff",
]
