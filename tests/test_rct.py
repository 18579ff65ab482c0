from __future__ import annotations

import numpy as np
import pytest

from biascal.demux import Category
from biascal.rct import (
    BiasItfSet,
    CalibrationTableError,
    create_itf_sequence,
    digitizer_itfs_for_lfr,
    lfr_itf_from_table,
    read_bias_itf_sets,
    read_bias_offsets,
    read_lfr_itf_table,
    tds_cwf_factors,
    tds_rswf_itf_from_table,
)
from biascal.tf import NonInvertedTransferFunctionError, TfKind

GAINS = (0.5, 1.0, 5.0, 100.0)


def _bias_coeffs(n_coeffs: int = 8) -> np.ndarray:
    coeffs = np.zeros((n_coeffs, 2, 4))
    for i, gain in enumerate(GAINS):
        coeffs[0, 0, i] = gain
        coeffs[0, 1, i] = 1.0
        coeffs[1, 1, i] = 1e-4
    return coeffs


def _lfr_table(n: int = 12):
    freq = np.geomspace(1.0, 1000.0, n)
    amplitude = 1.0 / (1.0 + (freq / 300.0) ** 2)
    phase = -freq / 10.0
    return freq, amplitude, phase


def test_bias_ftf_coefficients_are_inverted_per_category():
    itfs = BiasItfSet.from_ftf_coefficients(_bias_coeffs())

    assert itfs.dc_single.kind is TfKind.ITF
    assert np.isclose(itfs.dc_single(0.0), 1 / 0.5)
    assert np.isclose(itfs.dc_diff(0.0), 1.0)
    assert itfs.for_category(Category.AC, 0) is itfs.ac_low_gain
    assert itfs.for_category(Category.AC, 1) is itfs.ac_high_gain
    assert np.isclose(itfs.for_category(Category.AC, 1)(0.0), 1 / 100.0)
    assert itfs.for_category(Category.AC, np.nan) is None
    assert itfs.for_category(Category.GROUND, 0) is None
    assert itfs.for_category(Category.REF25V, 0) is None
    assert itfs.for_category(Category.DC_DIFF, np.nan) is itfs.dc_diff


def test_several_epochs_are_read_in_order():
    coeffs = np.stack([_bias_coeffs(), 2 * _bias_coeffs()])
    coeffs[1, :, 1, :] = _bias_coeffs()[:, 1, :]

    sets = read_bias_itf_sets(coeffs)

    assert len(sets) == 2
    assert np.isclose(sets[1].dc_single(0.0), 1.0)


def test_too_few_coefficients_is_a_table_error():
    with pytest.raises(CalibrationTableError):
        BiasItfSet.from_ftf_coefficients(_bias_coeffs(n_coeffs=6))


def test_table_holding_inverse_functions_is_rejected():
    coeffs = _bias_coeffs()
    coeffs[:, [0, 1], :] = coeffs[:, [1, 0], :]

    with pytest.raises(CalibrationTableError) as excinfo:
        BiasItfSet.from_ftf_coefficients(coeffs)
    assert isinstance(excinfo.value.__cause__, NonInvertedTransferFunctionError)


def test_create_itf_sequence_checks_row_counts():
    itfs = create_itf_sequence([[2.0, 0.0]], [[1.0, 0.1]])
    assert len(itfs) == 1
    assert np.isclose(itfs[0](0.0), 0.5)
    with pytest.raises(ValueError):
        create_itf_sequence([[1.0], [1.0]], [[1.0]])


def test_lfr_table_is_extrapolated_and_inverted():
    freq, amplitude, phase = _lfr_table()

    itf = lfr_itf_from_table(freq, amplitude, phase, extrapolate_hz=2000.0)

    assert itf.kind is TfKind.ITF
    z = itf(2 * np.pi * freq)
    np.testing.assert_allclose(np.abs(z), 1.0 / amplitude)
    np.testing.assert_allclose(np.angle(z), -np.deg2rad(phase), atol=1e-9)
    assert itf(2 * np.pi * 1500.0) != 0
    assert itf(2 * np.pi * 1e6) == 0


def test_lfr_table_without_extrapolation_is_zero_above_table():
    itf = lfr_itf_from_table(*_lfr_table())
    assert itf(2 * np.pi * 1500.0) == 0
    assert itf(2 * np.pi * 999.0) != 0


def test_short_lfr_table_is_a_table_error():
    freq, amplitude, phase = _lfr_table(n=5)
    with pytest.raises(CalibrationTableError, match="LFR"):
        lfr_itf_from_table(freq, amplitude, phase)


def test_lfr_tables_for_all_sampling_frequencies():
    freq, amplitude, phase = _lfr_table()
    freqs = [freq] * 4
    amplitudes = [np.tile(amplitude[:, None], (1, n)) for n in (5, 5, 5, 3)]
    phases = [np.tile(phase[:, None], (1, n)) for n in (5, 5, 5, 3)]

    table = read_lfr_itf_table(freqs, amplitudes, phases)

    assert [len(row) for row in table] == [5, 5, 5, 3]
    padded = digitizer_itfs_for_lfr(table, 3)
    assert len(padded) == 5
    assert padded[3] is None and padded[4] is None

    with pytest.raises(CalibrationTableError):
        read_lfr_itf_table(freqs, amplitudes[:3] + [amplitudes[0]], phases)


def test_tds_tables_must_already_be_inverted():
    freq, amplitude, phase = _lfr_table()

    itf = tds_rswf_itf_from_table(freq, 1.0 / amplitude, -phase)
    assert np.isclose(abs(itf(2 * np.pi * freq[-2])), 1.0 / amplitude[-2])

    with pytest.raises(CalibrationTableError):
        tds_rswf_itf_from_table(freq, amplitude, phase)


def _offset_tables():
    epoch_l = np.array([100, 200])
    epoch_h = np.array([100, 150, 300])
    current_offsets = np.array([[1e-9, 2e-9, 3e-9], [4e-9, 5e-9, 6e-9]])
    current_gains = np.full((2, 3), 1e-9)
    v_offset = np.arange(9.0).reshape(3, 3)
    e_offset = np.array([[0.1, 0.2, 0.3], [0.4, 0.5, 0.6], [0.7, 0.8, 0.9]])
    return epoch_l, epoch_h, current_offsets, current_gains, v_offset, e_offset


def test_bias_offsets_follow_their_epochs():
    offsets = read_bias_offsets(*_offset_tables(), n_tf_epochs=2)

    assert offsets.current_offsets_ampere.shape == (2, 3)
    assert offsets.current_gains_apc.shape == (2, 3)
    assert offsets.dc_single_offsets_volt.shape == (3, 3)
    np.testing.assert_allclose(offsets.e12_volt, [0.1, 0.4, 0.7])
    np.testing.assert_allclose(offsets.e13_volt, [0.2, 0.5, 0.8])
    np.testing.assert_allclose(offsets.e23_volt, [0.3, 0.6, 0.9])


def test_single_epoch_offsets_may_be_one_dimensional():
    offsets = read_bias_offsets([100], [100], [1.0, 2.0, 3.0], [1.0, 1.0, 1.0], [0.0, 0.0, 0.0], [0.1, 0.2, 0.3])

    assert offsets.current_offsets_ampere.shape == (1, 3)
    np.testing.assert_allclose(offsets.e23_volt, [0.3])


def test_non_increasing_epochs_are_a_table_error():
    tables = list(_offset_tables())
    tables[0] = np.array([200, 100])
    with pytest.raises(CalibrationTableError, match="Epoch_L"):
        read_bias_offsets(*tables)

    tables = list(_offset_tables())
    tables[1] = np.array([100, 100, 300])
    with pytest.raises(CalibrationTableError, match="Epoch_H"):
        read_bias_offsets(*tables)


def test_offset_table_shapes_must_match_epochs():
    tables = list(_offset_tables())
    tables[4] = np.zeros((2, 3))
    with pytest.raises(CalibrationTableError, match="V_OFFSET"):
        read_bias_offsets(*tables)

    tables = list(_offset_tables())
    tables[3] = np.zeros((2, 2))
    with pytest.raises(CalibrationTableError, match="BIAS_CURRENT_GAIN"):
        read_bias_offsets(*tables)


def test_tf_epoch_count_must_match_epoch_l():
    with pytest.raises(CalibrationTableError, match="Epoch_L"):
        read_bias_offsets(*_offset_tables(), n_tf_epochs=3)


def test_tds_cwf_factors_are_three_scalars():
    np.testing.assert_allclose(tds_cwf_factors([[[1.0, 2.0, 3.0]]]), [1.0, 2.0, 3.0])

    with pytest.raises(CalibrationTableError):
        tds_cwf_factors([1.0, 2.0])
    with pytest.raises(CalibrationTableError):
        tds_cwf_factors([1.0, np.nan, 3.0])
