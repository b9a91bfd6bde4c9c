"""
Calibrated ZABR smile section.

A section is the frozen output of a calibration: parameters plus the expiry
and forward the fit was run against. Evaluation never mutates it.
"""

from dataclasses import dataclass
from typing import Any, Dict, Union

import numpy as np

from ..errors import UnsupportedOperationError
from .zabr import EvaluationMode, StrikeLike, ZabrParameters, implied_volatility


@dataclass(frozen=True)
class ZabrSmileSection:
    """
    Volatility smile for a single expiry.

    Attributes:
        parameters: Calibrated ZABR parameters
        expiry: Option expiry in years
        forward: Forward level the smile is centred on
        evaluation: Evaluation mode used for the fit
    """

    parameters: ZabrParameters
    expiry: float
    forward: float
    evaluation: EvaluationMode = EvaluationMode.SHORT_MATURITY_LOGNORMAL

    def volatility(self, strike: StrikeLike) -> Union[float, np.ndarray]:
        """
        Model volatility at one or more strikes.

        Raises:
            InvalidDomainError: If a strike is not positive
        """
        return implied_volatility(self.parameters, self.forward, strike, self.evaluation)

    def variance(self, strike: StrikeLike) -> Union[float, np.ndarray]:
        """Total variance σ(K)² · T."""
        vol = self.volatility(strike)
        return vol * vol * self.expiry

    def atm_level(self) -> float:
        return self.forward

    def primitive(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR primitive not implemented")

    def derivative(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR derivative not implemented")

    def second_derivative(self, strike: float) -> float:
        raise UnsupportedOperationError("ZABR second derivative not implemented")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "parameters": self.parameters.to_dict(),
            "expiry": self.expiry,
            "forward": self.forward,
            "evaluation": self.evaluation.value,
        }
