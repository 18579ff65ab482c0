"""Split record sequences into runs of constant instrument configuration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Segment:
    """Inclusive record range ``[first, last]`` with one configuration."""

    first: int
    last: int
    mux_set: float
    diff_gain: float

    @property
    def slice(self) -> slice:
        return slice(self.first, self.last + 1)

    def __len__(self) -> int:
        return self.last - self.first + 1


def _changes(values: np.ndarray) -> np.ndarray:
    """Boolean mask over record pairs (i-1, i): True where the value changes."""

    prev = values[:-1]
    curr = values[1:]
    same = prev == curr
    if values.dtype.kind in "fc":
        same |= np.isnan(prev) & np.isnan(curr)
    return ~same


def find_sequences(*sequences: Sequence[float] | np.ndarray) -> List[Tuple[int, int]]:
    """Return maximal ``(first, last)`` runs where every sequence is constant.

    NaN compares equal to NaN (and only to NaN). All sequences must be 1-D and
    of equal length. An empty input yields an empty list.
    """

    if not sequences:
        raise ValueError("find_sequences requires at least one sequence")
    arrays = [np.asarray(seq) for seq in sequences]
    for arr in arrays:
        if arr.ndim != 1:
            raise ValueError(f"Expected 1-D sequence, got shape {arr.shape}")
    n = arrays[0].size
    for i, arr in enumerate(arrays[1:], start=1):
        if arr.size != n:
            raise ValueError(f"Sequence {i} length mismatch: expected {n}, got {arr.size}")
    if n == 0:
        return []

    change = np.zeros(n - 1, dtype=bool)
    for arr in arrays:
        change |= _changes(arr)

    starts = np.concatenate(([0], np.flatnonzero(change) + 1))
    stops = np.concatenate((starts[1:] - 1, [n - 1]))
    return [(int(a), int(b)) for a, b in zip(starts, stops)]


def segment(mux_set: Sequence[float] | np.ndarray, diff_gain: Sequence[float] | np.ndarray) -> List[Segment]:
    """Partition records into segments of constant mux mode and diff gain.

    Returns :class:`Segment` objects carrying the configuration of each run;
    use :func:`find_sequences` for plain ``(first, last)`` tuples.
    """

    mux = np.asarray(mux_set, dtype=float)
    gain = np.asarray(diff_gain, dtype=float)
    return [
        Segment(first=first, last=last, mux_set=float(mux[first]), diff_gain=float(gain[first]))
        for first, last in find_sequences(mux, gain)
    ]
