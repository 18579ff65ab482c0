from __future__ import annotations

import numpy as np
import pytest

from biascal.tf import NonInvertedTransferFunctionError, TabulatedTransferFunction, TfKind, extend_extrapolate

OMEGA = np.array([1.0, 10.0, 100.0])
AMPLITUDE = np.array([1.0, 0.5, 0.1])
PHASE = np.array([0.0, -0.5, -1.0])


def _lowpass(**kwargs) -> TabulatedTransferFunction:
    return TabulatedTransferFunction(OMEGA, AMPLITUDE, PHASE, **kwargs)


def test_evaluates_table_rows_exactly():
    tf = _lowpass()
    np.testing.assert_allclose(tf(OMEGA), AMPLITUDE * np.exp(1j * PHASE))
    np.testing.assert_allclose(tf.z, AMPLITUDE * np.exp(1j * PHASE))


def test_interpolates_amplitude_log_linearly_and_phase_linearly():
    z = _lowpass()(5.5)
    assert np.isclose(np.abs(z), np.sqrt(0.5))
    assert np.isclose(np.angle(z), -0.25)

    z_linear = _lowpass(interpolation="linear")(5.5)
    assert np.isclose(np.abs(z_linear), 0.75)


def test_outside_table_holds_edges_or_is_zero():
    tf = _lowpass()
    assert np.isclose(tf(0.0), 1.0)
    assert np.isclose(tf(1e4), 0.1 * np.exp(-1j))
    assert _lowpass(zero_above_table=True)(1e4) == 0
    assert _lowpass(zero_above_table=True)(100.0) != 0


def test_negative_frequency_gives_complex_conjugate():
    tf = _lowpass()
    assert np.isclose(tf(-10.0), np.conj(tf(10.0)))


def test_inverse_reciprocates_amplitude_and_negates_phase():
    itf = _lowpass().inverse()

    assert itf.kind is TfKind.ITF
    np.testing.assert_allclose(itf.amplitude, 1.0 / AMPLITUDE)
    np.testing.assert_allclose(itf.phase_rad, -PHASE)
    np.testing.assert_allclose(itf(OMEGA) * _lowpass()(OMEGA), np.ones(3))
    np.testing.assert_allclose(itf.inverse()(OMEGA), _lowpass()(OMEGA))


def test_itf_toward_zero_is_rejected():
    with pytest.raises(NonInvertedTransferFunctionError):
        _lowpass(kind=TfKind.ITF)
    highpass = TabulatedTransferFunction(OMEGA, AMPLITUDE[::-1], PHASE)
    with pytest.raises(NonInvertedTransferFunctionError):
        highpass.inverse()


def test_extrapolation_appends_rows_beyond_table():
    tf = _lowpass().extrapolated(500.0)

    np.testing.assert_allclose(tf.omega_rps, [1.0, 10.0, 100.0, 1000.0])
    assert np.isclose(tf.amplitude[-1], 0.1 * 0.2**10)
    assert np.isclose(tf.phase_rad[-1], -6.0)
    unchanged = _lowpass()
    assert unchanged.extrapolated(0.0) is unchanged


def test_extend_extrapolate_linear_in_both_directions():
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([0.0, 1.0, 2.0])

    x_pos, y_pos = extend_extrapolate(x, y, 2.5, x_spacing="linear", y_method="linear")
    np.testing.assert_allclose(x_pos, [0, 1, 2, 3, 4, 5])
    np.testing.assert_allclose(y_pos, x_pos)

    x_neg, y_neg = extend_extrapolate(x, y, 2.5, direction="negative", x_spacing="linear", y_method="linear")
    np.testing.assert_allclose(x_neg, [-3, -2, -1, 0, 1, 2])
    np.testing.assert_allclose(y_neg, x_neg)


def test_extend_extrapolate_rejects_bad_input():
    with pytest.raises(ValueError):
        extend_extrapolate([0.0, 1.0], [1.0, 2.0], -1.0)
    with pytest.raises(ValueError):
        extend_extrapolate([1.0, 0.0], [1.0, 2.0], 1.0)
    with pytest.raises(ValueError):
        extend_extrapolate([1.0, 2.0], [1.0, -2.0], 1.0)


def test_invalid_tables_raise():
    with pytest.raises(ValueError):
        TabulatedTransferFunction([1.0, 1.0, 2.0], [1.0, 1.0, 1.0], [0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        TabulatedTransferFunction([1.0, 2.0], [1.0, 0.0], [0.0, 0.0])
    with pytest.raises(ValueError):
        TabulatedTransferFunction([1.0, 2.0], [1.0], [0.0, 0.0])


def test_from_complex_round_trips_values():
    z = np.array([1.0 + 0.0j, 0.5j, -0.25 + 0.0j])
    tf = TabulatedTransferFunction.from_complex(OMEGA, z)
    np.testing.assert_allclose(tf(OMEGA), z, atol=1e-12)
