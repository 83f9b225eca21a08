from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

# Radial order of the surface-shape expansion: 15 modes (c0..c14).
SHAPE_NMAX = 4


@dataclass(frozen=True)
class ShapeMode:
    """
    Real Zernike mode used as a surface-shape basis term.

    `kind` is "m0" for m=0, otherwise "cos" or "sin" for the azimuthal factor.
    """

    n: int
    m: int
    kind: str

    def __post_init__(self) -> None:
        if self.n < 0 or self.m < 0 or self.m > self.n:
            raise ValueError("mode must satisfy 0 <= m <= n")
        if (self.n - self.m) % 2 != 0:
            raise ValueError("n-m must be even")
        if (self.m == 0) != (self.kind == "m0") or self.kind not in {"m0", "cos", "sin"}:
            raise ValueError("kind must be 'm0' for m=0 and 'cos'/'sin' otherwise")


def shape_modes(nmax: int = SHAPE_NMAX) -> list[ShapeMode]:
    """
    Modes up to radial order `nmax`, ordered by n, then m; cos before sin.
    """
    if nmax < 0:
        raise ValueError("nmax must be >= 0")
    modes: list[ShapeMode] = []
    for n in range(nmax + 1):
        for m in range(n % 2, n + 1, 2):
            if m == 0:
                modes.append(ShapeMode(n=n, m=0, kind="m0"))
            else:
                modes.append(ShapeMode(n=n, m=m, kind="cos"))
                modes.append(ShapeMode(n=n, m=m, kind="sin"))
    return modes


_RADIAL_CACHE: dict[tuple[int, int], tuple[tuple[int, float], ...]] = {}


def _radial_terms(n: int, m: int) -> tuple[tuple[int, float], ...]:
    key = (n, m)
    terms = _RADIAL_CACHE.get(key)
    if terms is None:
        out = []
        for k in range((n - m) // 2 + 1):
            num = math.factorial(n - k)
            den = math.factorial(k) * math.factorial((n + m) // 2 - k) * math.factorial((n - m) // 2 - k)
            out.append((n - 2 * k, (-1.0) ** k * num / den))
        terms = tuple(out)
        _RADIAL_CACHE[key] = terms
    return terms


def eval_shape_mode(mode: ShapeMode, r: np.ndarray, theta: np.ndarray) -> np.ndarray:
    r = np.asarray(r, dtype=np.float64)
    theta = np.asarray(theta, dtype=np.float64)
    radial = np.zeros_like(r)
    for power, coeff in _radial_terms(mode.n, mode.m):
        radial += coeff * r**power
    if mode.kind == "m0":
        return radial
    if mode.kind == "cos":
        return radial * np.cos(mode.m * theta)
    return radial * np.sin(mode.m * theta)


def shape_design_matrix(x: np.ndarray, y: np.ndarray, *, field_radius: float, nmax: int = SHAPE_NMAX) -> np.ndarray:
    """
    Design matrix (N,K) of the shape modes at lateral positions (x, y).

    Positions are normalised by `field_radius`; points outside the unit disk
    are evaluated on the polynomial continuation rather than masked.
    """
    if field_radius <= 0:
        raise ValueError("field_radius must be > 0")
    x = np.asarray(x, dtype=np.float64).reshape(-1) / float(field_radius)
    y = np.asarray(y, dtype=np.float64).reshape(-1) / float(field_radius)
    r = np.hypot(x, y)
    theta = np.arctan2(y, x)
    modes = shape_modes(nmax)
    A = np.empty((r.size, len(modes)), dtype=np.float64)
    for k, mode in enumerate(modes):
        A[:, k] = eval_shape_mode(mode, r, theta)
    return A
