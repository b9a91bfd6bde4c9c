"""
Calibration objective definitions.

WeightedResidual compares model and market volatilities for a full parameter
set. ProjectedObjective restricts it to the free parameters in optimizer
space. Both are pure: evaluating them never changes any parameter state.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

import numpy as np

from ..errors import InvalidInputError
from ..models.black import black_std_dev_derivative
from ..models.zabr import EvaluationMode, ParameterGuess, ZabrParameters, implied_volatility
from .transform import ZabrParametersTransformation

logger = logging.getLogger(__name__)

# Residual used in place of non-finite model output
PENALTY_RESIDUAL = 1e10


def uniform_weights(n: int) -> np.ndarray:
    """Equal weights 1/n."""
    return np.full(n, 1.0 / n)


def vega_weights(
    strikes: np.ndarray,
    market_vols: np.ndarray,
    forward: float,
    expiry: float,
) -> np.ndarray:
    """
    Weights proportional to Black vega, normalized to sum to one.

    Falls back to uniform weights when every vega vanishes.
    """
    std_devs = np.sqrt(market_vols * market_vols * expiry)
    vegas = black_std_dev_derivative(strikes, forward, std_devs)
    total = float(np.sum(vegas))
    if not total > 0:
        logger.warning("All vegas are zero, using uniform weights")
        return uniform_weights(len(strikes))
    return vegas / total


class WeightedResidual:
    """
    Weighted differences between model and market volatilities.

    Attributes:
        strikes: Market strikes
        market_vols: Market volatilities
        weights: One weight per strike
        forward: Forward level used for model evaluation
        evaluation: Evaluation mode
    """

    def __init__(
        self,
        strikes: Sequence[float],
        market_vols: Sequence[float],
        weights: Sequence[float],
        forward: float,
        evaluation: Union[str, EvaluationMode] = EvaluationMode.SHORT_MATURITY_LOGNORMAL,
    ):
        self.strikes = np.asarray(strikes, dtype=float)
        self.market_vols = np.asarray(market_vols, dtype=float)
        self.weights = np.asarray(weights, dtype=float)
        self.forward = float(forward)
        self.evaluation = EvaluationMode.from_name(evaluation)

        if not (len(self.strikes) == len(self.market_vols) == len(self.weights)):
            raise InvalidInputError(
                f"strikes ({len(self.strikes)}), vols ({len(self.market_vols)}) and "
                f"weights ({len(self.weights)}) must have the same length"
            )
        if len(self.strikes) == 0:
            raise InvalidInputError("at least one market point is required")
        if not np.all(np.isfinite(self.weights)) or np.any(self.weights < 0):
            raise InvalidInputError(f"weights must be finite and non-negative, got {self.weights}")
        if not np.any(self.weights > 0):
            raise InvalidInputError("at least one weight must be positive")

    @property
    def n_points(self) -> int:
        return len(self.strikes)

    def differences(self, params: ZabrParameters) -> np.ndarray:
        """Model minus market volatility per point."""
        model = np.asarray(
            implied_volatility(params, self.forward, self.strikes, self.evaluation)
        )
        diff = model - self.market_vols
        return np.where(np.isfinite(diff), diff, PENALTY_RESIDUAL)

    def weighted_differences(self, params: ZabrParameters) -> np.ndarray:
        """Differences scaled by sqrt(weight); their squares sum to squared_error."""
        return self.differences(params) * np.sqrt(self.weights)

    def squared_error(self, params: ZabrParameters) -> float:
        """Weighted sum of squared differences."""
        diff = self.differences(params)
        return float(np.sum(self.weights * diff * diff))

    def rms_error(self, params: ZabrParameters) -> float:
        """
        Root mean square error sqrt(n · squared_error / (n - 1)).

        A single point has no degrees of freedom left; its RMS error is the
        absolute difference at that point.
        """
        n = self.n_points
        if n == 1:
            return float(abs(self.differences(params)[0]))
        return float(np.sqrt(n * self.squared_error(params) / (n - 1)))

    def max_error(self, params: ZabrParameters) -> float:
        """Largest absolute unweighted difference."""
        return float(np.max(np.abs(self.differences(params))))


class ProjectedObjective:
    """
    WeightedResidual seen through the free parameters in optimizer space.

    Fixed slots are filled from the guess: in optimizer space with the
    inverse-transformed fixed values, and in parameter space with the exact
    fixed values so they never drift through the transformation.
    """

    def __init__(
        self,
        residual: WeightedResidual,
        guess: ParameterGuess,
        transformation: Optional[ZabrParametersTransformation] = None,
    ):
        self.residual = residual
        self.transformation = transformation or ZabrParametersTransformation()
        self.free_mask = guess.free_mask
        self._fixed_values = guess.parameters.to_array()
        self._fixed_unconstrained = self.transformation.inverse(self._fixed_values)

    @property
    def n_free(self) -> int:
        return int(np.count_nonzero(self.free_mask))

    def project(self, full: np.ndarray) -> np.ndarray:
        """Full unconstrained vector -> free subvector."""
        return np.asarray(full, dtype=float)[self.free_mask]

    def include(self, free: np.ndarray) -> np.ndarray:
        """Free subvector -> full unconstrained vector."""
        full = self._fixed_unconstrained.copy()
        full[self.free_mask] = free
        return full

    def parameters(self, free: np.ndarray) -> ZabrParameters:
        """Free subvector -> ZABR parameters with fixed values substituted."""
        values = self.transformation.direct(self.include(free))
        values[~self.free_mask] = self._fixed_values[~self.free_mask]
        return ZabrParameters.from_array(values)

    def residuals(self, free: np.ndarray) -> np.ndarray:
        return self.residual.weighted_differences(self.parameters(free))

    def value(self, free: np.ndarray) -> float:
        return self.residual.squared_error(self.parameters(free))
