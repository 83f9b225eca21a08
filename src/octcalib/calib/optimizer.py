from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence

import numpy as np

from octcalib.calib.loss import PhantomLoss, RadiusStats, UndefinedLossError, summarize_radius_matrix
from octcalib.config import CalibrationConfig, SearchSettings
from octcalib.core.coefficients import CorrectionCoefficients
from octcalib.core.correction import FieldDistortionCorrector, SurfaceCorrector
from octcalib.core.ellipsoid_fit import EllipsoidFitter, make_fitter
from octcalib.core.surface import SurfaceDetector, as_surface, drop_invalid_points

logger = logging.getLogger(__name__)


class TerminationStatus(Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    MAX_EVALUATIONS_REACHED = "max_evaluations_reached"


@dataclass(frozen=True)
class SearchResult:
    x: np.ndarray
    fun: float
    status: TerminationStatus
    n_iterations: int
    n_evaluations: int
    message: str


class DirectSearchOptimizer(Protocol):
    def minimize(
        self, objective: Callable[[np.ndarray], float], x0: np.ndarray, settings: SearchSettings
    ) -> SearchResult:
        ...


# scipy's Nelder-Mead warnflag values.
_SCIPY_STATUS = {
    0: TerminationStatus.CONVERGED,
    1: TerminationStatus.MAX_EVALUATIONS_REACHED,
    2: TerminationStatus.MAX_ITERATIONS_REACHED,
}


def initial_simplex(x0: np.ndarray, step: float) -> np.ndarray:
    """(N+1, N) simplex: x0 plus one vertex per axis offset by `step`."""
    x0 = np.asarray(x0, dtype=np.float64).reshape(-1)
    return np.concatenate([x0.reshape(1, -1), x0.reshape(1, -1) + step * np.eye(x0.size)], axis=0)


class NelderMeadSearch:
    """Derivative-free simplex search backed by scipy.optimize.minimize."""

    def minimize(
        self, objective: Callable[[np.ndarray], float], x0: np.ndarray, settings: SearchSettings
    ) -> SearchResult:
        from scipy.optimize import minimize  # type: ignore

        x0 = np.asarray(x0, dtype=np.float64).reshape(-1)
        options: dict[str, object] = {
            "xatol": float(settings.xatol),
            "fatol": float(settings.fatol),
            "adaptive": bool(settings.adaptive),
            "disp": False,
        }
        if settings.max_iterations is not None:
            options["maxiter"] = int(settings.max_iterations)
        if settings.max_evaluations is not None:
            options["maxfev"] = int(settings.max_evaluations)
        if settings.initial_step is not None:
            options["initial_simplex"] = initial_simplex(x0, float(settings.initial_step))

        res = minimize(objective, x0, method="Nelder-Mead", options=options)
        status = _SCIPY_STATUS.get(int(res.status))
        if status is None:
            raise RuntimeError(f"unexpected Nelder-Mead status {res.status}: {res.message}")
        return SearchResult(
            x=np.asarray(res.x, dtype=np.float64).copy(),
            fun=float(res.fun),
            status=status,
            n_iterations=int(res.nit),
            n_evaluations=int(res.nfev),
            message=str(res.message),
        )


@dataclass(frozen=True)
class CalibrationDiagnostics:
    n_iterations: int
    n_evaluations: int
    n_undefined_evaluations: int
    message: str
    initial_stats: RadiusStats
    final_stats: RadiusStats


@dataclass(frozen=True)
class CalibrationResult:
    coefficients: CorrectionCoefficients
    loss: float  # inf if no evaluation produced a valid radius
    status: TerminationStatus
    diagnostics: CalibrationDiagnostics

    @property
    def converged(self) -> bool:
        return self.status is TerminationStatus.CONVERGED

    @property
    def vector(self) -> np.ndarray:
        return self.coefficients.as_vector()


def default_field_radius(surfaces: Sequence[np.ndarray]) -> float:
    """Largest lateral distance from the field centre over all valid points (1.0 if none)."""
    r_max = 0.0
    for s in surfaces:
        pts = drop_invalid_points(s)
        if pts.shape[0]:
            r_max = max(r_max, float(np.max(np.hypot(pts[:, 0], pts[:, 1]))))
    return r_max if r_max > 0.0 else 1.0


def make_objective(loss: PhantomLoss) -> Callable[[np.ndarray], float]:
    """
    Vector-in, float-out adapter for the search.

    Undefined losses come back as +inf so the simplex steps away from them.
    Only the first one is logged as a warning; repeats go to debug.
    """

    def objective(v: np.ndarray) -> float:
        coeffs = CorrectionCoefficients.from_vector(v)
        try:
            return loss(coeffs)
        except UndefinedLossError:
            level = logging.WARNING if loss.n_undefined == 1 else logging.DEBUG
            logger.log(level, "undefined loss (no valid section) at evaluation %d", loss.n_evaluations)
            return float("inf")

    return objective


def _radius_stats(loss: PhantomLoss, coeffs: CorrectionCoefficients) -> RadiusStats:
    return summarize_radius_matrix(loss.radii(coeffs), loss.true_radius)


def calibrate_phantom(
    surfaces: Sequence[np.ndarray],
    config: CalibrationConfig,
    *,
    corrector: SurfaceCorrector | None = None,
    fitter: EllipsoidFitter | None = None,
    search: DirectSearchOptimizer | None = None,
    rng: np.random.Generator | None = None,
) -> CalibrationResult:
    """
    Fit correction coefficients so every phantom surface becomes a sphere of
    radius `config.true_radius`.

    The search always starts from the identity coefficients. A search that
    stops on its iteration or evaluation budget is not an error: its best
    vertex is returned with the corresponding status.
    """
    surfaces = [as_surface(s) for s in surfaces]
    if corrector is None:
        corrector = FieldDistortionCorrector(field_radius=default_field_radius(surfaces))
    if fitter is None:
        fitter = make_fitter(config.fitter)
    if search is None:
        search = NelderMeadSearch()
    if rng is None:
        rng = np.random.default_rng(config.seed)

    loss = PhantomLoss(
        surfaces,
        config.true_radius,
        settings=config.profile,
        corrector=corrector,
        fitter=fitter,
        rng=rng,
    )
    x0 = CorrectionCoefficients.identity()
    logger.info(
        "calibrating on %d surfaces (true radius %.6g, %d angles, band %.6g)",
        len(surfaces),
        config.true_radius,
        config.profile.n_angles,
        config.profile.band_width,
    )
    initial_stats = _radius_stats(loss, x0)

    res = search.minimize(make_objective(loss), x0.as_vector(), config.search)
    n_undefined = loss.n_undefined
    coeffs = CorrectionCoefficients.from_vector(res.x)
    final_stats = _radius_stats(loss, coeffs)

    if res.status is TerminationStatus.CONVERGED:
        logger.info("converged after %d iterations (%d evaluations), loss %.6g", res.n_iterations, res.n_evaluations, res.fun)
    else:
        logger.warning("search stopped without converging (%s): %s", res.status.value, res.message)

    return CalibrationResult(
        coefficients=coeffs,
        loss=res.fun,
        status=res.status,
        diagnostics=CalibrationDiagnostics(
            n_iterations=res.n_iterations,
            n_evaluations=res.n_evaluations,
            n_undefined_evaluations=n_undefined,
            message=res.message,
            initial_stats=initial_stats,
            final_stats=final_stats,
        ),
    )


def calibrate_phantom_volumes(
    volumes: Sequence[np.ndarray],
    spacing: tuple[float, float, float],
    config: CalibrationConfig,
    *,
    detector: SurfaceDetector,
    corrector: SurfaceCorrector | None = None,
    fitter: EllipsoidFitter | None = None,
    search: DirectSearchOptimizer | None = None,
    rng: np.random.Generator | None = None,
) -> CalibrationResult:
    """Detect one surface per phantom volume, then run `calibrate_phantom`."""
    surfaces = [detector.detect(v, spacing) for v in volumes]
    return calibrate_phantom(surfaces, config, corrector=corrector, fitter=fitter, search=search, rng=rng)
