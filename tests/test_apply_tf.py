from __future__ import annotations

import numpy as np
import pytest

from biascal.tf import RationalTransferFunction, apply_tf, apply_tf_freq, combine, high_freq_cutoff


def _all_pass(omega: np.ndarray) -> np.ndarray:
    return np.ones(np.shape(omega), dtype=complex)


def test_detrend_retrend_with_all_pass_returns_input():
    rng = np.random.default_rng(11)
    y = 3.0 + rng.normal(size=64)

    y2, y1b, y2b, _ = apply_tf(0.1, y, _all_pass, detrend_degree=0, retrend=True)

    np.testing.assert_allclose(y2, y)
    assert np.isclose(y1b.mean(), 0.0)
    np.testing.assert_allclose(y2b, y1b, atol=1e-12)


def test_detrending_without_retrending_removes_the_trend():
    y = 0.5 + 0.25 * np.arange(32)
    y2, _, _, _ = apply_tf(1.0, y, _all_pass, detrend_degree=1)
    np.testing.assert_allclose(y2, np.zeros(32), atol=1e-9)


def test_constant_gain_scales_signal():
    y = np.sin(np.linspace(0.0, 4.0, 50))
    np.testing.assert_allclose(apply_tf_freq(0.01, y, lambda omega: 2.0 * _all_pass(omega)), 2.0 * y, atol=1e-12)


def test_linear_phase_delays_signal_by_one_sample():
    dt = 0.5
    y = np.random.default_rng(5).normal(size=32)

    y2 = apply_tf_freq(dt, y, lambda omega: np.exp(-1j * omega * dt))

    np.testing.assert_allclose(y2, np.roll(y, 1), atol=1e-12)


def test_cutoff_removes_frequencies_above_fraction_of_nyquist():
    n = 64
    k = np.arange(n)
    low = np.sin(2 * np.pi * 2 * k / n)
    high = np.sin(2 * np.pi * 24 * k / n)

    y2, _, _, tf_eff = apply_tf(1.0, low + high, _all_pass, hf_cutoff_fraction=0.5)

    np.testing.assert_allclose(y2, low, atol=1e-12)
    assert tf_eff(0.6 * np.pi) == 0
    assert tf_eff(0.4 * np.pi) == 1

    y_zero, _, _, _ = apply_tf(1.0, low + high, _all_pass, hf_cutoff_fraction=0.0)
    np.testing.assert_allclose(y_zero, np.zeros(n), atol=1e-12)


def test_high_freq_cutoff_acts_on_absolute_frequency():
    tf = high_freq_cutoff(_all_pass, 10.0)
    np.testing.assert_array_equal(tf(np.array([-20.0, -5.0, 5.0, 10.0])), [0, 1, 1, 0])


def test_rational_itf_undoes_its_forward_filter():
    dt = 1e-3
    ftf = RationalTransferFunction([1.0], [1.0, 1e-3])
    y = np.random.default_rng(2).normal(size=127)

    filtered = apply_tf_freq(dt, y, ftf)
    restored = apply_tf_freq(dt, filtered, ftf.inverse())

    np.testing.assert_allclose(restored, y, atol=1e-9)


def test_combine_multiplies_transfer_functions():
    tf = combine(lambda w: 2.0 * _all_pass(w), lambda w: 3.0 * _all_pass(w))
    np.testing.assert_allclose(tf(np.array([0.0, 1.0])), [6.0, 6.0])
    with pytest.raises(ValueError):
        combine()


def test_nan_input_gives_nan_output():
    y = np.array([1.0, np.nan, 3.0, 4.0])
    y2, _, _, _ = apply_tf(1.0, y, _all_pass, detrend_degree=1)
    assert np.isnan(y2).all()
    assert apply_tf_freq(1.0, np.array([]), _all_pass).size == 0


def test_invalid_settings_raise():
    y = np.ones(8)
    with pytest.raises(ValueError):
        apply_tf(1.0, y, _all_pass, retrend=True)
    with pytest.raises(ValueError):
        apply_tf(1.0, y, _all_pass, hf_cutoff_fraction=-0.1)
    with pytest.raises(ValueError):
        apply_tf(0.0, y, _all_pass)
    with pytest.raises(ValueError):
        apply_tf(1.0, np.ones((2, 4)), _all_pass)


def test_untrended_signal_is_returned_as_a_copy():
    y = np.linspace(0.0, 1.0, 16)

    _, y1b, _, _ = apply_tf(1.0, y, _all_pass)
    y1b[0] = 99.0

    assert y[0] == 0.0


def test_detrend_degree_must_be_below_sample_count():
    with pytest.raises(ValueError, match="degree 3"):
        apply_tf(1.0, np.ones(2), _all_pass, detrend_degree=3)
    with pytest.raises(ValueError):
        apply_tf(1.0, np.ones(2), _all_pass, detrend_degree=2)
    y2, _, _, _ = apply_tf(1.0, np.ones(2), _all_pass, detrend_degree=1)
    assert y2.shape == (2,)
