from octcalib.calib.loss import PhantomLoss, UndefinedLossError, loss_from_radius_matrix
from octcalib.calib.optimizer import (
    CalibrationResult,
    NelderMeadSearch,
    TerminationStatus,
    calibrate_phantom,
    calibrate_phantom_volumes,
)
from octcalib.config import CalibrationConfig, ConfigValidationError, ProfileSettings, SearchSettings, parse_calibration_config
from octcalib.core.coefficients import CorrectionCoefficients
from octcalib.core.correction import FieldDistortionCorrector
from octcalib.core.ellipsoid_fit import AxisAlignedEllipsoidFitter, EllipsoidFitError, SphereFitter

__all__ = [
    "AxisAlignedEllipsoidFitter",
    "CalibrationConfig",
    "CalibrationResult",
    "ConfigValidationError",
    "CorrectionCoefficients",
    "EllipsoidFitError",
    "FieldDistortionCorrector",
    "NelderMeadSearch",
    "PhantomLoss",
    "ProfileSettings",
    "SearchSettings",
    "SphereFitter",
    "TerminationStatus",
    "UndefinedLossError",
    "calibrate_phantom",
    "calibrate_phantom_volumes",
    "loss_from_radius_matrix",
    "parse_calibration_config",
]
