from __future__ import annotations

import numpy as np
import pytest

from biascal.segments import Segment, find_sequences, segment


def _same(a: float, b: float) -> bool:
    return a == b or (np.isnan(a) and np.isnan(b))


def test_segment_splits_on_mode_and_gain_changes():
    nan = np.nan
    mux = [0, 0, 4, 4, 4, nan, nan, 0]
    gain = [0, 0, 0, 1, 1, nan, nan, 0]

    segments = segment(mux, gain)

    assert all(isinstance(s, Segment) for s in segments)
    assert find_sequences(mux, gain) == [(s.first, s.last) for s in segments]
    assert [(s.first, s.last) for s in segments] == [(0, 1), (2, 2), (3, 4), (5, 6), (7, 7)]
    assert segments[2].mux_set == 4.0
    assert segments[2].diff_gain == 1.0
    assert np.isnan(segments[3].mux_set)
    assert len(segments[3]) == 2
    assert segments[3].slice == slice(5, 7)


def test_nan_only_equals_nan():
    assert find_sequences([np.nan, 0.0, np.nan]) == [(0, 0), (1, 1), (2, 2)]
    assert find_sequences([np.nan, np.nan, 1.0]) == [(0, 1), (2, 2)]


def test_empty_input_gives_no_segments():
    assert find_sequences([], []) == []
    assert segment([], []) == []


def test_length_mismatch_raises():
    with pytest.raises(ValueError):
        find_sequences([0, 1, 2], [0, 1])


def test_requires_one_dimensional_sequences():
    with pytest.raises(ValueError):
        find_sequences(np.zeros((2, 2)))
    with pytest.raises(ValueError):
        find_sequences()


def test_random_sequences_are_partitioned_into_maximal_constant_runs():
    rng = np.random.default_rng(7)
    mux = rng.choice([0.0, 1.0, np.nan], size=200, p=[0.6, 0.3, 0.1])
    gain = rng.choice([0.0, 1.0], size=200, p=[0.8, 0.2])

    segments = segment(mux, gain)

    covered = np.concatenate([np.arange(s.first, s.last + 1) for s in segments])
    np.testing.assert_array_equal(covered, np.arange(200))
    for s in segments:
        assert all(_same(m, s.mux_set) for m in mux[s.slice])
        assert all(_same(g, s.diff_gain) for g in gain[s.slice])
    for left, right in zip(segments, segments[1:]):
        assert not (_same(left.mux_set, right.mux_set) and _same(left.diff_gain, right.diff_gain))


def test_segment_length():
    assert len(Segment(first=3, last=3, mux_set=0.0, diff_gain=0.0)) == 1
