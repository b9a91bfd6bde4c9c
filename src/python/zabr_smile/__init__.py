"""
ZABR Smile Calibration

Fits the five-parameter ZABR stochastic volatility model (SABR plus a
vol-of-vol exponent) to the implied volatilities of a single expiry and
exposes the result as a queryable smile.

Core components:
- Short maturity ZABR smile in lognormal and normal volatility
- Smooth reparameterization instead of bound-constrained optimization
- Weighted least squares over any subset of free parameters
- Deterministic multi-start search from a seeded Halton sequence

Usage:
    # As a library
    from zabr_smile import SmileContext, ZabrInterpolation
    smile = ZabrInterpolation(strikes, vols, SmileContext(expiry=5.0, forward=0.04))
    smile.update()
    vol = smile(0.045)

    # As a CLI
    $ zabr-smile demo
    $ zabr-smile calibrate --data smile.csv --forward 0.04 --expiry 5
"""

__version__ = "1.0.0"
__author__ = "Quantitative Research Team"

from . import calibration, models
from .calibration import (
    EndCriteria,
    FitResult,
    LevenbergMarquardt,
    Simplex,
    SmileContext,
    TerminationStatus,
    ZabrCalibrator,
    ZabrInterpolation,
)
from .errors import (
    CalibrationError,
    InvalidDomainError,
    InvalidInputError,
    UnsupportedOperationError,
    ZabrError,
)
from .models import (
    EvaluationMode,
    ParameterGuess,
    ZabrParameters,
    ZabrSmileSection,
    generate_synthetic_smile,
    implied_volatility,
)

__all__ = [
    "__version__",
    "calibration",
    "models",
    "CalibrationError",
    "EndCriteria",
    "EvaluationMode",
    "FitResult",
    "InvalidDomainError",
    "InvalidInputError",
    "LevenbergMarquardt",
    "ParameterGuess",
    "Simplex",
    "SmileContext",
    "TerminationStatus",
    "UnsupportedOperationError",
    "ZabrCalibrator",
    "ZabrError",
    "ZabrInterpolation",
    "ZabrParameters",
    "ZabrSmileSection",
    "generate_synthetic_smile",
    "implied_volatility",
]
