from __future__ import annotations

from dataclasses import astuple, dataclass, fields

import numpy as np

N_COEFFICIENTS = 26


@dataclass(frozen=True)
class CorrectionCoefficients:
    """
    Named distortion-correction coefficients of an OCT scan.

    Groups (in vector order):
      field correction: q10..q13 (x polynomial), q20..q23 (y polynomial)
      depth-dependent lateral scaling: s01..s03
      surface-shape terms: c0..c14 (real Zernike modes up to order 4)

    The defaults are the identity mapping.
    """

    q10: float = 0.0
    q11: float = 1.0
    q12: float = 0.0
    q13: float = 0.0
    q20: float = 0.0
    q21: float = 1.0
    q22: float = 0.0
    q23: float = 0.0
    s01: float = 1.0
    s02: float = 0.0
    s03: float = 0.0
    c0: float = 0.0
    c1: float = 0.0
    c2: float = 0.0
    c3: float = 0.0
    c4: float = 0.0
    c5: float = 0.0
    c6: float = 0.0
    c7: float = 0.0
    c8: float = 0.0
    c9: float = 0.0
    c10: float = 0.0
    c11: float = 0.0
    c12: float = 0.0
    c13: float = 0.0
    c14: float = 0.0

    @classmethod
    def identity(cls) -> "CorrectionCoefficients":
        return cls()

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "CorrectionCoefficients":
        v = np.asarray(v, dtype=np.float64).reshape(-1)
        if v.size != N_COEFFICIENTS:
            raise ValueError(f"expected {N_COEFFICIENTS} coefficients, got {v.size}")
        if not np.all(np.isfinite(v)):
            raise ValueError("coefficients must be finite")
        return cls(*(float(c) for c in v.tolist()))

    def as_vector(self) -> np.ndarray:
        return np.array(astuple(self), dtype=np.float64)

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.field_names(), astuple(self), strict=True))

    @property
    def field_x(self) -> np.ndarray:
        return np.array([self.q10, self.q11, self.q12, self.q13], dtype=np.float64)

    @property
    def field_y(self) -> np.ndarray:
        return np.array([self.q20, self.q21, self.q22, self.q23], dtype=np.float64)

    @property
    def depth_scale(self) -> np.ndarray:
        return np.array([self.s01, self.s02, self.s03], dtype=np.float64)

    @property
    def shape_terms(self) -> np.ndarray:
        return self.as_vector()[11:]
