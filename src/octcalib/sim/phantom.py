from __future__ import annotations

import numpy as np


def fibonacci_sphere(radius: float, n: int, center: tuple[float, float, float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """Near-uniform (n,3) sampling of a full sphere (golden-angle spiral)."""
    if radius <= 0:
        raise ValueError("radius must be > 0")
    if n < 1:
        raise ValueError("n must be >= 1")
    k = np.arange(n, dtype=np.float64) + 0.5
    z = 1.0 - 2.0 * k / n
    rho = np.sqrt(np.clip(1.0 - z * z, 0.0, None))
    phi = np.pi * (3.0 - np.sqrt(5.0)) * k
    unit = np.stack([rho * np.cos(phi), rho * np.sin(phi), z], axis=1)
    return float(radius) * unit + np.asarray(center, dtype=np.float64).reshape(1, 3)


def sphere_cap_surface(
    radius: float,
    *,
    center: tuple[float, float, float] = (0.0, 0.0, 0.0),
    half_extent: float,
    n_lateral: int = 101,
    noise_std: float = 0.0,
    dropout: float = 0.0,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """
    Top surface of a sphere as seen by a depth scanner on a square lateral grid.

    Depth increases away from the probe, so the visible surface is
    z = cz - sqrt(R^2 - (x-cx)^2 - (y-cy)^2). Grid positions outside the
    sphere footprint, and a random `dropout` fraction of the others, are NaN
    rows. Returns (n_lateral**2, 3).
    """
    if radius <= 0:
        raise ValueError("radius must be > 0")
    if half_extent <= 0:
        raise ValueError("half_extent must be > 0")
    if not 0.0 <= dropout < 1.0:
        raise ValueError("dropout must be in [0, 1)")
    if rng is None:
        rng = np.random.default_rng(0)

    cx, cy, cz = (float(c) for c in center)
    g = np.linspace(-half_extent, half_extent, int(n_lateral))
    yy, xx = np.meshgrid(g, g, indexing="ij")
    x = xx.reshape(-1)
    y = yy.reshape(-1)
    h2 = radius * radius - (x - cx) ** 2 - (y - cy) ** 2
    z = np.full_like(x, np.nan)
    inside = h2 > 0.0
    z[inside] = cz - np.sqrt(h2[inside])
    if noise_std > 0:
        z[inside] += rng.normal(scale=noise_std, size=int(np.count_nonzero(inside)))

    pts = np.stack([x, y, z], axis=1)
    if dropout > 0:
        pts[rng.uniform(size=x.size) < dropout] = np.nan
    pts[~inside] = np.nan
    return pts
