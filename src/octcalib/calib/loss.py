from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from octcalib.calib.radial_profile import radial_profile
from octcalib.config import ProfileSettings
from octcalib.core.coefficients import CorrectionCoefficients
from octcalib.core.correction import SurfaceCorrector
from octcalib.core.ellipsoid_fit import EllipsoidFitError, EllipsoidFitter
from octcalib.core.surface import as_surface, drop_invalid_points

logger = logging.getLogger(__name__)

# Fewest valid points a whole surface needs before it is centred and profiled.
MIN_SURFACE_POINTS = 4


class UndefinedLossError(ValueError):
    """No valid radius was measured on any surface."""


@dataclass(frozen=True)
class LossEvaluation:
    loss: float
    radii: np.ndarray  # (n_surfaces, n_angles), NaN = invalid


@dataclass(frozen=True)
class RadiusStats:
    n_valid: int
    n_total: int
    mean_radius: float
    std_radius: float
    rms_deviation: float

    @property
    def valid_fraction(self) -> float:
        return self.n_valid / self.n_total if self.n_total else 0.0


def loss_from_radius_matrix(radii: np.ndarray, true_radius: float) -> float:
    """
    Mean of (r - true_radius)^2 over the finite entries of `radii`.

    Raises UndefinedLossError when there is no finite entry.
    """
    radii = np.asarray(radii, dtype=np.float64)
    valid = radii[np.isfinite(radii)]
    if valid.size == 0:
        raise UndefinedLossError("no valid radius in any section of any surface")
    dev = valid - float(true_radius)
    return float(np.mean(dev * dev))


def summarize_radius_matrix(radii: np.ndarray, true_radius: float) -> RadiusStats:
    radii = np.asarray(radii, dtype=np.float64)
    valid = radii[np.isfinite(radii)]
    if valid.size == 0:
        nan = float("nan")
        return RadiusStats(n_valid=0, n_total=int(radii.size), mean_radius=nan, std_radius=nan, rms_deviation=nan)
    return RadiusStats(
        n_valid=int(valid.size),
        n_total=int(radii.size),
        mean_radius=float(np.mean(valid)),
        std_radius=float(np.std(valid)),
        rms_deviation=float(np.sqrt(loss_from_radius_matrix(valid, true_radius))),
    )


def surface_radius_profile(
    surface: np.ndarray,
    coeffs: CorrectionCoefficients,
    *,
    settings: ProfileSettings,
    corrector: SurfaceCorrector,
    fitter: EllipsoidFitter,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Correct one raw surface, centre it on its fitted centre and profile it.

    Returns an all-NaN row when the surface cannot be centred.
    """
    corrected = drop_invalid_points(corrector.correct(as_surface(surface), coeffs))
    row = np.full((int(settings.n_angles),), np.nan, dtype=np.float64)
    if corrected.shape[0] < MIN_SURFACE_POINTS:
        logger.debug("surface has %d valid points after correction, skipping", corrected.shape[0])
        return row
    try:
        center = fitter.fit(corrected).center
    except EllipsoidFitError as e:
        logger.debug("surface centring fit failed: %s", e)
        return row
    return radial_profile(
        corrected - center.reshape(1, 3),
        n_angles=settings.n_angles,
        band_width=settings.band_width,
        fitter=fitter,
        rng=rng,
    )


def radius_matrix(
    surfaces: Sequence[np.ndarray],
    coeffs: CorrectionCoefficients,
    *,
    settings: ProfileSettings,
    corrector: SurfaceCorrector,
    fitter: EllipsoidFitter,
    rng: np.random.Generator,
) -> np.ndarray:
    rows = [
        surface_radius_profile(s, coeffs, settings=settings, corrector=corrector, fitter=fitter, rng=rng)
        for s in surfaces
    ]
    if not rows:
        return np.empty((0, int(settings.n_angles)), dtype=np.float64)
    return np.stack(rows, axis=0)


class PhantomLoss:
    """
    Sphericity loss of a set of phantom surfaces under candidate coefficients.

    The generator is held for the lifetime of the object and never reseeded,
    so repeated evaluations of the same coefficients see different angular
    samplings.
    """

    def __init__(
        self,
        surfaces: Sequence[np.ndarray],
        true_radius: float,
        *,
        settings: ProfileSettings,
        corrector: SurfaceCorrector,
        fitter: EllipsoidFitter,
        rng: np.random.Generator | None = None,
    ) -> None:
        if float(true_radius) <= 0:
            raise ValueError("true_radius must be > 0")
        self.surfaces = tuple(as_surface(s) for s in surfaces)
        if not self.surfaces:
            raise ValueError("need at least one phantom surface")
        self.true_radius = float(true_radius)
        self.settings = settings
        self.corrector = corrector
        self.fitter = fitter
        self.rng = rng if rng is not None else np.random.default_rng()
        self.n_evaluations = 0
        self.n_undefined = 0

    def radii(self, coeffs: CorrectionCoefficients) -> np.ndarray:
        """Radius matrix under `coeffs`; not counted as a loss evaluation."""
        return radius_matrix(
            self.surfaces,
            coeffs,
            settings=self.settings,
            corrector=self.corrector,
            fitter=self.fitter,
            rng=self.rng,
        )

    def evaluate(self, coeffs: CorrectionCoefficients) -> LossEvaluation:
        radii = self.radii(coeffs)
        self.n_evaluations += 1
        try:
            loss = loss_from_radius_matrix(radii, self.true_radius)
        except UndefinedLossError:
            self.n_undefined += 1
            raise
        logger.debug("loss evaluation %d: %.6g", self.n_evaluations, loss)
        return LossEvaluation(loss=loss, radii=radii)

    def __call__(self, coeffs: CorrectionCoefficients) -> float:
        return self.evaluate(coeffs).loss
