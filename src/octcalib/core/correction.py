from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np
from numpy.polynomial import polynomial as P

from octcalib.core.coefficients import CorrectionCoefficients
from octcalib.core.shape_basis import SHAPE_NMAX, shape_design_matrix


class SurfaceCorrector(Protocol):
    def correct(self, points: np.ndarray, coeffs: CorrectionCoefficients) -> np.ndarray:
        """Map raw (N,3) surface points to corrected (N,3) points; NaN rows stay NaN."""
        ...


@dataclass(frozen=True)
class FieldDistortionCorrector:
    """
    Reference OCT field-distortion model.

      x1 = q10 + q11 x + q12 x^2 + q13 x^3
      y1 = q20 + q21 y + q22 y^2 + q23 y^3
      s  = s01 + s02 z + s03 z^2
      x' = s x1,  y' = s y1
      z' = z + sum_k c_k Z_k(x / field_radius, y / field_radius)

    Stateless: the output depends only on the points and the coefficients.
    """

    field_radius: float = 1.0

    def __post_init__(self) -> None:
        if self.field_radius <= 0:
            raise ValueError("field_radius must be > 0")

    def correct(self, points: np.ndarray, coeffs: CorrectionCoefficients) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError("points must have shape (N,3)")
        x = points[:, 0]
        y = points[:, 1]
        z = points[:, 2]

        x1 = P.polyval(x, coeffs.field_x)
        y1 = P.polyval(y, coeffs.field_y)
        s = P.polyval(z, coeffs.depth_scale)

        A = shape_design_matrix(x, y, field_radius=self.field_radius, nmax=SHAPE_NMAX)
        z1 = z + A @ coeffs.shape_terms
        return np.stack([s * x1, s * y1, z1], axis=1)
