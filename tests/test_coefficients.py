import numpy as np
import pytest

from octcalib.core.coefficients import N_COEFFICIENTS, CorrectionCoefficients


def test_identity_vector_layout():
    v = CorrectionCoefficients.identity().as_vector()
    expected = np.array([0, 1, 0, 0, 0, 1, 0, 0, 1, 0, 0] + [0] * 15, dtype=np.float64)
    assert v.shape == (N_COEFFICIENTS,)
    np.testing.assert_array_equal(v, expected)


def test_field_names_are_ordered():
    names = CorrectionCoefficients.field_names()
    assert names[:11] == ("q10", "q11", "q12", "q13", "q20", "q21", "q22", "q23", "s01", "s02", "s03")
    assert names[11:] == tuple(f"c{k}" for k in range(15))


def test_from_vector_keeps_positions():
    v = np.arange(N_COEFFICIENTS, dtype=np.float64)
    c = CorrectionCoefficients.from_vector(v)
    assert c.q10 == 0.0 and c.q23 == 7.0 and c.s03 == 10.0 and c.c14 == 25.0
    np.testing.assert_array_equal(c.shape_terms, v[11:])
    assert c.as_dict()["s01"] == 8.0


def test_from_vector_rejects_wrong_length_and_non_finite():
    with pytest.raises(ValueError):
        CorrectionCoefficients.from_vector(np.zeros(25))
    v = CorrectionCoefficients.identity().as_vector()
    v[3] = np.nan
    with pytest.raises(ValueError):
        CorrectionCoefficients.from_vector(v)
