from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from octcalib.core.ellipsoid_fit import EllipsoidFitError, EllipsoidFitter
from octcalib.core.geometry import MIN_SECTION_POINTS, angular_sector_indices

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RadialProfile:
    angles: np.ndarray  # (N,) sorted, in (-pi/2, pi/2]
    radii: np.ndarray  # (N,) NaN where the section could not be fitted

    @property
    def n_valid(self) -> int:
        return int(np.count_nonzero(np.isfinite(self.radii)))


def sample_angles(n_angles: int, rng: np.random.Generator) -> np.ndarray:
    """
    n section angles spaced pi/n apart from -pi/2 (one half-turn), all
    shifted by one random offset in [0, pi/n), wrapped back into
    (-pi/2, pi/2] and sorted. The result is strictly increasing.

    Every call draws a fresh offset from `rng`.
    """
    n_angles = int(n_angles)
    if n_angles < 1:
        raise ValueError("n_angles must be >= 1")
    angles = np.linspace(-0.5 * np.pi, 0.5 * np.pi, n_angles, endpoint=False) + rng.uniform(0.0, np.pi / n_angles)
    angles[angles > 0.5 * np.pi] -= np.pi
    # Zero offset leaves the first angle on the open end of the range.
    angles[angles <= -0.5 * np.pi] += np.pi
    return np.sort(angles)


def radial_profile_with_angles(
    centered: np.ndarray,
    *,
    n_angles: int,
    band_width: float,
    fitter: EllipsoidFitter,
    rng: np.random.Generator,
) -> RadialProfile:
    centered = np.asarray(centered, dtype=np.float64)
    angles = sample_angles(n_angles, rng)
    radii = np.full((angles.size,), np.nan, dtype=np.float64)

    for i, theta in enumerate(angles):
        idx = angular_sector_indices(centered[:, :2], float(theta), band_width)
        if idx.size < MIN_SECTION_POINTS:
            continue
        try:
            radii[i] = fitter.fit(centered[idx]).radius
        except EllipsoidFitError as e:
            logger.debug("section fit failed at theta=%.4f (%d points): %s", theta, idx.size, e)

    return RadialProfile(angles=angles, radii=radii)


def radial_profile(
    centered: np.ndarray,
    *,
    n_angles: int,
    band_width: float,
    fitter: EllipsoidFitter,
    rng: np.random.Generator,
) -> np.ndarray:
    """Fitted radius per angular section of a centred surface (NaN = not measurable)."""
    return radial_profile_with_angles(
        centered, n_angles=n_angles, band_width=band_width, fitter=fitter, rng=rng
    ).radii
