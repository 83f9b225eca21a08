import dataclasses

import numpy as np
import pytest

from octcalib.calib.loss import (
    PhantomLoss,
    UndefinedLossError,
    loss_from_radius_matrix,
    radius_matrix,
    summarize_radius_matrix,
    surface_radius_profile,
)
from octcalib.config import ProfileSettings
from octcalib.core.coefficients import CorrectionCoefficients
from octcalib.core.correction import FieldDistortionCorrector
from octcalib.core.ellipsoid_fit import AxisAlignedEllipsoidFitter, SphereFitter
from octcalib.sim.phantom import sphere_cap_surface

R_TRUE = 5.0


def _cap(center=(0.0, 0.0, 0.0), **kw):
    return sphere_cap_surface(R_TRUE, center=center, half_extent=4.0, n_lateral=81, **kw)


def _loss(surfaces, *, seed=0, fitter=None, n_angles=24, band_width=0.5):
    return PhantomLoss(
        surfaces,
        R_TRUE,
        settings=ProfileSettings(n_angles=n_angles, band_width=band_width),
        corrector=FieldDistortionCorrector(field_radius=4.0),
        fitter=fitter if fitter is not None else AxisAlignedEllipsoidFitter(),
        rng=np.random.default_rng(seed),
    )


def test_loss_averages_valid_entries_only():
    radii = np.array([[5.1, np.nan, 4.8], [np.nan, np.nan, np.nan], [5.0, 5.3, np.nan]])
    expected = np.mean(np.array([0.1, -0.2, 0.0, 0.3]) ** 2)
    assert loss_from_radius_matrix(radii, R_TRUE) == pytest.approx(expected)

    poisoned = radii.copy()
    poisoned[np.isnan(poisoned)] = np.inf
    assert loss_from_radius_matrix(poisoned, R_TRUE) == pytest.approx(expected)
    poisoned[1, 1] = -np.inf
    assert loss_from_radius_matrix(poisoned, R_TRUE) == pytest.approx(expected)


def test_all_invalid_matrix_is_undefined():
    with pytest.raises(UndefinedLossError):
        loss_from_radius_matrix(np.full((2, 5), np.nan), R_TRUE)
    with pytest.raises(UndefinedLossError):
        loss_from_radius_matrix(np.empty((0, 5)), R_TRUE)


def test_identity_on_exact_sphere_has_zero_loss():
    surfaces = [_cap(), _cap(center=(0.4, -0.3, 2.0))]
    identity = CorrectionCoefficients.identity()
    for seed in range(3):
        ev = _loss(surfaces, seed=seed).evaluate(identity)
        assert ev.radii.shape == (2, 24)
        assert np.all(np.isfinite(ev.radii))
        assert ev.loss < 1e-10


def test_identity_on_exact_sphere_with_sphere_fitter():
    loss = _loss([_cap(dropout=0.2)], fitter=SphereFitter())
    assert loss(CorrectionCoefficients.identity()) < 1e-10


def test_sphere_fitter_is_less_noise_sensitive_on_thin_sections():
    noisy = [_cap(noise_std=0.005, rng=np.random.default_rng(1))]
    identity = CorrectionCoefficients.identity()
    xyz = _loss(noisy).evaluate(identity)
    sphere = _loss(noisy, fitter=SphereFitter()).evaluate(identity)
    assert sphere.loss < 1e-4
    assert sphere.loss < xyz.loss
    assert np.ptp(sphere.radii) < np.ptp(xyz.radii)


def test_distortion_raises_the_loss():
    loss = _loss([_cap()])
    identity = CorrectionCoefficients.identity()
    stretched = dataclasses.replace(identity, q11=1.05)
    assert loss(stretched) > 1e-4 > loss(identity)


def test_loss_is_stochastic_but_seedable():
    stretched = dataclasses.replace(CorrectionCoefficients.identity(), q11=1.05)
    surfaces = [_cap()]

    loss = _loss(surfaces, seed=7, fitter=SphereFitter())
    first = loss.evaluate(stretched).radii
    second = loss.evaluate(stretched).radii
    assert not np.allclose(first, second)

    replay = _loss(surfaces, seed=7, fitter=SphereFitter()).evaluate(stretched).radii
    np.testing.assert_array_equal(first, replay)


def test_tiny_surface_gives_undefined_loss():
    tiny = np.array([[0.0, 0.0, -5.0], [1.0, 0.0, -4.9], [0.0, 1.0, -4.9]])
    loss = _loss([tiny])
    with pytest.raises(UndefinedLossError):
        loss(CorrectionCoefficients.identity())
    assert loss.n_evaluations == 1
    assert loss.n_undefined == 1


def test_invalid_surface_row_is_excluded():
    good = _cap()
    empty = np.full((50, 3), np.nan)
    loss = _loss([good, empty])
    ev = loss.evaluate(CorrectionCoefficients.identity())
    assert np.all(np.isfinite(ev.radii[0]))
    assert np.all(np.isnan(ev.radii[1]))
    assert ev.loss < 1e-10


def test_surface_profile_length_matches_settings():
    row = surface_radius_profile(
        _cap(),
        CorrectionCoefficients.identity(),
        settings=ProfileSettings(n_angles=9, band_width=0.5),
        corrector=FieldDistortionCorrector(field_radius=4.0),
        fitter=SphereFitter(),
        rng=np.random.default_rng(0),
    )
    assert row.shape == (9,)
    np.testing.assert_allclose(row, R_TRUE, atol=1e-8)


def test_radius_matrix_of_no_surfaces_is_empty():
    m = radius_matrix(
        [],
        CorrectionCoefficients.identity(),
        settings=ProfileSettings(n_angles=6, band_width=0.5),
        corrector=FieldDistortionCorrector(),
        fitter=SphereFitter(),
        rng=np.random.default_rng(0),
    )
    assert m.shape == (0, 6)


def test_phantom_loss_validates_inputs():
    with pytest.raises(ValueError):
        _loss([])
    with pytest.raises(ValueError):
        PhantomLoss(
            [_cap()],
            0.0,
            settings=ProfileSettings(),
            corrector=FieldDistortionCorrector(),
            fitter=SphereFitter(),
        )


def test_radius_summary():
    stats = summarize_radius_matrix(np.array([[4.0, np.nan], [6.0, 5.0]]), R_TRUE)
    assert stats.n_valid == 3
    assert stats.n_total == 4
    assert stats.valid_fraction == pytest.approx(0.75)
    assert stats.mean_radius == pytest.approx(5.0)
    assert stats.rms_deviation == pytest.approx(np.sqrt(2.0 / 3.0))

    empty = summarize_radius_matrix(np.full((1, 3), np.nan), R_TRUE)
    assert empty.n_valid == 0
    assert np.isnan(empty.mean_radius)
