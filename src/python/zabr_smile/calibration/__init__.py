"""
Calibration module.

Contains:
- Parameter transformation between optimizer space and ZABR parameters
- Weighted residual and free-parameter objective
- Deterministic restart sequence
- Local optimizers (Levenberg-Marquardt, simplex)
- Multi-start ZABR calibrator and smile interpolation

Example:
    >>> from zabr_smile.calibration import SmileContext, ZabrCalibrator
    >>> calibrator = ZabrCalibrator(error_accept=0.001, max_guesses=20)
    >>> result = calibrator.calibrate(
    ...     [0.03, 0.04, 0.05], [0.22, 0.20, 0.19], SmileContext(5.0, 0.04)
    ... )
    >>> result.termination_status
"""

from .interpolation import ZabrInterpolation
from .objective import (
    PENALTY_RESIDUAL,
    ProjectedObjective,
    WeightedResidual,
    uniform_weights,
    vega_weights,
)
from .optimizers import (
    OPTIMIZERS,
    EndCriteria,
    LevenbergMarquardt,
    OptimizationMethod,
    OptimizationOutcome,
    Simplex,
    TerminationStatus,
    create_optimizer,
)
from .restarts import DEFAULT_SEED, RestartSequence, scale_sample, starting_points
from .transform import ZabrParametersTransformation
from .zabr_calibrator import FitResult, SmileContext, ZabrCalibrator, validate_market_data

__all__ = [
    "DEFAULT_SEED",
    "OPTIMIZERS",
    "PENALTY_RESIDUAL",
    "EndCriteria",
    "FitResult",
    "LevenbergMarquardt",
    "OptimizationMethod",
    "OptimizationOutcome",
    "ProjectedObjective",
    "RestartSequence",
    "Simplex",
    "SmileContext",
    "TerminationStatus",
    "WeightedResidual",
    "ZabrCalibrator",
    "ZabrInterpolation",
    "ZabrParametersTransformation",
    "create_optimizer",
    "scale_sample",
    "starting_points",
    "uniform_weights",
    "validate_market_data",
    "vega_weights",
]
