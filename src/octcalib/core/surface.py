from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np


def as_surface(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError("surface must have shape (N,3)")
    return points


def drop_invalid_points(points: np.ndarray) -> np.ndarray:
    """Rows with any non-finite coordinate removed."""
    points = as_surface(points)
    return points[np.all(np.isfinite(points), axis=1)]


class SurfaceDetector(Protocol):
    def detect(self, volume: np.ndarray, spacing: tuple[float, float, float]) -> np.ndarray:
        """(nz, ny, nx) intensity volume -> (ny*nx, 3) surface points, NaN where nothing was found."""
        ...


@dataclass(frozen=True)
class ThresholdSurfaceDetector:
    """
    First depth sample per A-scan whose intensity reaches `threshold`.

    `spacing` is (dz, dy, dx) in physical units. Lateral coordinates are
    centred on the scan field; depth starts at 0 for the first sample.
    """

    threshold: float

    def detect(self, volume: np.ndarray, spacing: tuple[float, float, float]) -> np.ndarray:
        volume = np.asarray(volume, dtype=np.float64)
        if volume.ndim != 3:
            raise ValueError("volume must have shape (nz, ny, nx)")
        dz, dy, dx = (float(s) for s in spacing)
        if dz <= 0 or dy <= 0 or dx <= 0:
            raise ValueError("spacing values must be > 0")

        nz, ny, nx = volume.shape
        hit = volume >= float(self.threshold)
        found = np.any(hit, axis=0)
        iz = np.argmax(hit, axis=0).astype(np.float64)
        iz[~found] = np.nan

        iy, ix = np.meshgrid(np.arange(ny, dtype=np.float64), np.arange(nx, dtype=np.float64), indexing="ij")
        x = (ix - (nx - 1) / 2.0) * dx
        y = (iy - (ny - 1) / 2.0) * dy
        z = iz * dz
        pts = np.stack([x.reshape(-1), y.reshape(-1), z.reshape(-1)], axis=1)
        pts[~found.reshape(-1)] = np.nan
        return pts
