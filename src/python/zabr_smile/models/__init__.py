"""
Smile models module.

Contains:
- ZABR parameters and short maturity smile evaluation
- Black formula sensitivities used for vega weighting
- Calibrated smile sections

Example:
    >>> from zabr_smile.models import ZabrParameters, implied_volatility
    >>> params = ZabrParameters(alpha=0.04, beta=0.5, nu=0.4, rho=-0.2, gamma=1.0)
    >>> vol = implied_volatility(params, forward=0.04, strikes=0.05)
"""

from .black import black_std_dev_derivative
from .smile_section import ZabrSmileSection
from .zabr import (
    DEFAULT_VALUES,
    PARAMETER_NAMES,
    EvaluationMode,
    ParameterGuess,
    ZabrParameters,
    generate_synthetic_smile,
    implied_volatility,
    zabr_x,
    zabr_y,
)

__all__ = [
    "DEFAULT_VALUES",
    "PARAMETER_NAMES",
    "EvaluationMode",
    "ParameterGuess",
    "ZabrParameters",
    "ZabrSmileSection",
    "black_std_dev_derivative",
    "generate_synthetic_smile",
    "implied_volatility",
    "zabr_x",
    "zabr_y",
]
