import numpy as np
import pytest

from octcalib.calib.radial_profile import radial_profile, radial_profile_with_angles, sample_angles
from octcalib.core.ellipsoid_fit import AxisAlignedEllipsoidFitter, SphereFitter
from octcalib.sim.phantom import fibonacci_sphere


@pytest.mark.parametrize("n_angles", [1, 2, 7, 20, 180])
def test_angle_set_length_range_and_order(n_angles):
    rng = np.random.default_rng(0)
    for _ in range(50):
        angles = sample_angles(n_angles, rng)
        assert angles.shape == (n_angles,)
        assert np.all(angles > -0.5 * np.pi)
        assert np.all(angles <= 0.5 * np.pi)
        assert np.all(np.diff(angles) > 0.0)


def test_angle_set_changes_between_calls_and_is_reproducible():
    rng = np.random.default_rng(1)
    a = sample_angles(20, rng)
    b = sample_angles(20, rng)
    assert not np.allclose(a, b)

    c = sample_angles(20, np.random.default_rng(1))
    np.testing.assert_array_equal(a, c)


def test_angle_spacing_is_uniform():
    for seed in range(10):
        angles = sample_angles(20, np.random.default_rng(seed))
        np.testing.assert_allclose(np.diff(angles), np.pi / 20, atol=1e-12)


def test_sample_angles_rejects_empty():
    with pytest.raises(ValueError):
        sample_angles(0, np.random.default_rng(0))


@pytest.mark.parametrize("fitter", [AxisAlignedEllipsoidFitter(), SphereFitter()])
def test_dense_sphere_profile_is_flat(fitter):
    centered = fibonacci_sphere(5.0, 20000)
    radii = radial_profile(centered, n_angles=20, band_width=0.5, fitter=fitter, rng=np.random.default_rng(0))
    assert radii.shape == (20,)
    assert np.all(np.isfinite(radii))
    assert np.max(np.abs(radii - 5.0)) < 0.05


def test_sparse_sections_are_invalid():
    centered = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [-1.0, 0.0, 0.0]])
    profile = radial_profile_with_angles(
        centered, n_angles=10, band_width=0.5, fitter=SphereFitter(), rng=np.random.default_rng(0)
    )
    assert profile.angles.shape == (10,)
    assert np.all(np.isnan(profile.radii))
    assert profile.n_valid == 0


def test_unfittable_section_is_invalid():
    # Coplanar sections: enough points but no sphere to fit.
    t = np.linspace(-2.0, 2.0, 200)
    flat = np.stack([t, np.zeros_like(t), np.zeros_like(t)], axis=1)
    radii = radial_profile(flat, n_angles=5, band_width=10.0, fitter=SphereFitter(), rng=np.random.default_rng(0))
    assert np.all(np.isnan(radii))
