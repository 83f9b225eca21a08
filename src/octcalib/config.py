from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


class ConfigValidationError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigValidationError(msg)


@dataclass(frozen=True)
class ProfileSettings:
    """
    Angular sampling used to turn one centred surface into a radial profile.

    - `n_angles`: number of sections across (-pi/2, pi/2]
    - `band_width`: full width of the band around each section line, in the
      same physical units as the surface coordinates
    """

    n_angles: int = 180
    band_width: float = 0.1

    def __post_init__(self) -> None:
        _require(int(self.n_angles) >= 1, "profile.n_angles must be >= 1")
        _require(float(self.band_width) > 0.0, "profile.band_width must be > 0")


@dataclass(frozen=True)
class SearchSettings:
    """
    Nelder-Mead stopping rules and starting simplex.

    The starting simplex offsets each coefficient by `initial_step`.
    `initial_step=None` falls back to scipy's 5% simplex, which is far wider
    than a realistic correction.
    """

    xatol: float = 1e-3
    fatol: float = 1e-6
    max_iterations: int | None = None
    max_evaluations: int | None = None
    adaptive: bool = True
    initial_step: float | None = 1e-3  # None: scipy's default simplex

    def __post_init__(self) -> None:
        _require(float(self.xatol) > 0.0, "search.xatol must be > 0")
        _require(float(self.fatol) > 0.0, "search.fatol must be > 0")
        _require(self.max_iterations is None or int(self.max_iterations) >= 1, "search.max_iterations must be >= 1")
        _require(self.max_evaluations is None or int(self.max_evaluations) >= 1, "search.max_evaluations must be >= 1")
        _require(self.initial_step is None or float(self.initial_step) > 0.0, "search.initial_step must be > 0")


@dataclass(frozen=True)
class CalibrationConfig:
    """
    `fitter` selects the per-section fit. "xyz" (axis-aligned ellipsoid) is
    the default; its seven-term fit is poorly conditioned on thin bands, so
    use "sphere" for noisy surfaces.
    """

    true_radius: float
    profile: ProfileSettings = field(default_factory=ProfileSettings)
    search: SearchSettings = field(default_factory=SearchSettings)
    seed: int | None = None
    fitter: Literal["xyz", "sphere"] = "xyz"

    def __post_init__(self) -> None:
        _require(float(self.true_radius) > 0.0, "true_radius must be > 0")
        _require(self.fitter in ("xyz", "sphere"), "fitter must be 'xyz' or 'sphere'")


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def parse_calibration_config(data: dict[str, Any]) -> CalibrationConfig:
    radius_raw = data.get("true_radius")
    _require(radius_raw is not None, "true_radius is required")

    profile = data.get("profile", {})
    search = data.get("search", {})
    _require(isinstance(profile, dict), "profile must be a mapping")
    _require(isinstance(search, dict), "search must be a mapping")

    profile_defaults = ProfileSettings()
    search_defaults = SearchSettings()
    try:
        true_radius = float(radius_raw)
        profile_settings = ProfileSettings(
            n_angles=int(profile.get("n_angles", profile_defaults.n_angles)),
            band_width=float(profile.get("band_width", profile_defaults.band_width)),
        )
        search_settings = SearchSettings(
            xatol=float(search.get("xatol", search_defaults.xatol)),
            fatol=float(search.get("fatol", search_defaults.fatol)),
            max_iterations=_optional_int(search.get("max_iterations")),
            max_evaluations=_optional_int(search.get("max_evaluations")),
            adaptive=bool(search.get("adaptive", search_defaults.adaptive)),
            initial_step=_optional_float(search.get("initial_step", search_defaults.initial_step)),
        )
        seed = _optional_int(data.get("seed"))
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigValidationError):
            raise
        raise ConfigValidationError(f"invalid numeric value: {e}") from e

    return CalibrationConfig(
        true_radius=true_radius,
        profile=profile_settings,
        search=search_settings,
        seed=seed,
        fitter=str(data.get("fitter", "xyz")),  # type: ignore[arg-type]
    )
