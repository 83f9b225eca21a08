from __future__ import annotations

import numpy as np

# Below this many points a section cannot constrain a sphere.
MIN_SECTION_POINTS = 4


def _as_points3(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] not in (2, 3):
        raise ValueError("points must have shape (N,2) or (N,3)")
    if points.shape[1] == 2:
        points = np.concatenate([points, np.zeros((points.shape[0], 1), dtype=np.float64)], axis=1)
    return points


def point_to_line_distance(points: np.ndarray, l1: np.ndarray, l2: np.ndarray) -> np.ndarray:
    """
    Perpendicular distance of each point to the infinite line through l1 and l2.

    `points` is (N,3) or (N,2) (z taken as 0). `l1`/`l2` are 3-vectors or (N,3)
    rows. Distance = |(l1 - l2) x (p - l2)| / |l1 - l2|.
    """
    points = _as_points3(points)
    l1 = np.broadcast_to(np.asarray(l1, dtype=np.float64), points.shape)
    l2 = np.broadcast_to(np.asarray(l2, dtype=np.float64), points.shape)

    d = l1 - l2
    d_norm = np.linalg.norm(d, axis=-1)
    if np.any(d_norm <= 0.0):
        raise ValueError("line points l1 and l2 must differ")
    return np.linalg.norm(np.cross(d, points - l2), axis=-1) / d_norm


def section_direction(theta: float) -> np.ndarray:
    return np.array([np.cos(theta), np.sin(theta), 0.0], dtype=np.float64)


def angular_sector_indices(xy: np.ndarray, theta: float, band_width: float) -> np.ndarray:
    """
    Indices of points within a band of full width `band_width` around the line
    through the origin at angle `theta` (strictly closer than band_width / 2).
    """
    if band_width <= 0:
        raise ValueError("band_width must be > 0")
    xy = np.asarray(xy, dtype=np.float64)
    if xy.ndim != 2 or xy.shape[1] < 2:
        raise ValueError("xy must have shape (N,2) or (N,3)")
    if xy.shape[0] == 0:
        return np.empty((0,), dtype=np.intp)

    d = section_direction(theta)
    dist = point_to_line_distance(xy[:, :2], d, -d)
    return np.flatnonzero(dist < 0.5 * float(band_width))
