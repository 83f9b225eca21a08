"""
Algebraic sphere and axis-aligned ellipsoid fits of 3D point clouds.

Both fitters normalise the cloud (mean-centred, unit RMS radius) before
building the design matrix, then map the solution back to input units.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

import numpy as np


class EllipsoidFitError(ValueError):
    pass


@dataclass(frozen=True)
class EllipsoidFit:
    center: np.ndarray  # (3,)
    radii: np.ndarray  # (3,) semi-axes along x, y, z

    @property
    def radius(self) -> float:
        """Principal (first-axis) radius."""
        return float(self.radii[0])


class EllipsoidFitter(Protocol):
    def fit(self, points: np.ndarray) -> EllipsoidFit:
        ...


def _normalize(points: np.ndarray, min_points: int) -> tuple[np.ndarray, np.ndarray, float]:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError("points must have shape (N,3)")
    points = points[np.all(np.isfinite(points), axis=1)]
    if points.shape[0] < min_points:
        raise EllipsoidFitError(f"need >= {min_points} finite points, got {points.shape[0]}")
    mu = points.mean(axis=0)
    q = points - mu
    scale = float(np.sqrt(np.mean(np.sum(q * q, axis=1))))
    if not np.isfinite(scale) or scale <= 0.0:
        raise EllipsoidFitError("degenerate point cloud (all points coincide)")
    return q / scale, mu, scale


@dataclass(frozen=True)
class AxisAlignedEllipsoidFitter:
    """
    Ellipsoid with axes along x, y, z ("xyz" mode):

      A x^2 + B y^2 + C z^2 + D x + E y + F z + G = 0

    The coefficient vector is the right singular vector of the smallest
    singular value of the design matrix; a null space wider than one
    dimension means the cloud does not pin down the quadric.
    """

    rcond: float = 1e-10
    min_points: int = 6

    def fit(self, points: np.ndarray) -> EllipsoidFit:
        q, mu, scale = _normalize(points, self.min_points)
        x, y, z = q[:, 0], q[:, 1], q[:, 2]
        D = np.stack([x * x, y * y, z * z, x, y, z, np.ones_like(x)], axis=1)

        _u, s, vt = np.linalg.svd(D, full_matrices=D.shape[0] < D.shape[1])
        s_full = np.zeros((D.shape[1],), dtype=np.float64)
        s_full[: s.size] = s
        if s_full[0] <= 0.0 or s_full[-2] <= self.rcond * s_full[0]:
            raise EllipsoidFitError("rank-deficient design matrix")

        a, b, c, d, e, f, g = vt[-1]
        quad = np.array([a, b, c], dtype=np.float64)
        if np.any(np.abs(quad) <= self.rcond * np.max(np.abs(vt[-1]))):
            raise EllipsoidFitError("quadric is not an ellipsoid")
        lin = np.array([d, e, f], dtype=np.float64)

        center_q = -lin / (2.0 * quad)
        gam = float(np.sum(lin * lin / (4.0 * quad)) - g)
        r2 = gam / quad
        if not np.all(np.isfinite(r2)) or np.any(r2 <= 0.0):
            raise EllipsoidFitError("quadric is not an ellipsoid")

        return EllipsoidFit(center=mu + scale * center_q, radii=scale * np.sqrt(r2))


@dataclass(frozen=True)
class SphereFitter:
    """
    Isotropic algebraic (Kasa) sphere fit:

      x^2 + y^2 + z^2 = 2 cx x + 2 cy y + 2 cz z + k,   r^2 = k + |c|^2
    """

    rcond: float = 1e-10
    min_points: int = 4

    def fit(self, points: np.ndarray) -> EllipsoidFit:
        q, mu, scale = _normalize(points, self.min_points)
        A = np.concatenate([2.0 * q, np.ones((q.shape[0], 1), dtype=np.float64)], axis=1)
        rhs = np.sum(q * q, axis=1)
        sol, _res, rank, _sv = np.linalg.lstsq(A, rhs, rcond=self.rcond)
        if rank < A.shape[1]:
            raise EllipsoidFitError("rank-deficient design matrix")

        center_q = sol[:3]
        r2 = float(sol[3] + np.dot(center_q, center_q))
        if not np.isfinite(r2) or r2 <= 0.0:
            raise EllipsoidFitError("non-positive squared radius")
        r = scale * np.sqrt(r2)
        return EllipsoidFit(center=mu + scale * center_q, radii=np.full((3,), r, dtype=np.float64))


def make_fitter(kind: Literal["xyz", "sphere"] = "xyz") -> EllipsoidFitter:
    if kind == "xyz":
        return AxisAlignedEllipsoidFitter()
    if kind == "sphere":
        return SphereFitter()
    raise ValueError(f"unknown fitter: {kind!r}")
