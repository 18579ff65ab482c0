from __future__ import annotations

import numpy as np
import pytest

from biascal.tf import NonInvertedTransferFunctionError, RationalTransferFunction, TfKind

OMEGA = np.array([0.0, 0.1, 1.0, 7.5, 100.0, -3.0])


def test_evaluates_polynomial_ratio_in_s():
    tf = RationalTransferFunction([1.0], [1.0, 1.0])
    assert np.isclose(tf(1.0), 0.5 - 0.5j)
    assert np.isclose(tf(0.0), 1.0)


def test_double_inversion_returns_original_values():
    ftf = RationalTransferFunction([2.0, 0.5], [1.0, 0.2, 0.03])

    itf = ftf.inverse()

    assert itf.kind is TfKind.ITF
    assert itf.inverse().kind is TfKind.FTF
    np.testing.assert_allclose(itf.inverse()(OMEGA), ftf(OMEGA))
    np.testing.assert_allclose(ftf(OMEGA) * itf(OMEGA), np.ones(OMEGA.size))


def test_itf_vanishing_at_high_frequency_is_rejected():
    with pytest.raises(NonInvertedTransferFunctionError):
        RationalTransferFunction([1.0], [1.0, 1.0], kind=TfKind.ITF)

    highpass_ftf = RationalTransferFunction([0.0, 0.0, 1.0], [1.0, 1.0])
    with pytest.raises(NonInvertedTransferFunctionError):
        highpass_ftf.inverse()


def test_trailing_zero_coefficients_do_not_count_towards_degree():
    tf = RationalTransferFunction([1.0, 0.0, 0.0], [1.0, 0.0])
    assert not tf.zero_in_high_freq_limit()
    assert RationalTransferFunction([1.0, 0.0], [1.0, 2.0, 0.0]).zero_in_high_freq_limit()


def test_real_impulse_response_requires_real_coefficients():
    assert RationalTransferFunction([1.0], [1.0, 2.0]).has_real_impulse_response()
    assert not RationalTransferFunction([1.0 + 1.0j], [1.0]).has_real_impulse_response()


def test_coefficients_are_immutable():
    tf = RationalTransferFunction([1.0, 2.0], [3.0])
    with pytest.raises(ValueError):
        tf.numerator[0] = 5.0


def test_invalid_coefficients_raise():
    with pytest.raises(ValueError):
        RationalTransferFunction([1.0], [0.0, 0.0])
    with pytest.raises(ValueError):
        RationalTransferFunction([], [1.0])
    with pytest.raises(ValueError):
        RationalTransferFunction([np.nan], [1.0])
    with pytest.raises(ValueError):
        RationalTransferFunction([1.0], [1.0])(np.nan)
