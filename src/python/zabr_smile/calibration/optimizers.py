"""
Local optimizers used by the multi-start calibration.

The calibration only relies on a minimal contract: given a residual function,
a starting point and an EndCriteria, return a candidate point together with a
TerminationStatus. Failing to converge is reported, never raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import numpy as np
from scipy.optimize import least_squares, minimize

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

ResidualFunction = Callable[[np.ndarray], np.ndarray]


class TerminationStatus(Enum):
    """Outcome of a local optimization."""

    NO_OPTIMIZATION_NEEDED = "no_optimization_needed"
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    STATIONARY_POINT = "stationary_point"
    STATIONARY_FUNCTION_VALUE = "stationary_function_value"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class EndCriteria:
    """
    Stopping rule for a local optimization.

    Attributes:
        max_iterations: Maximum number of function evaluations
        root_epsilon: Tolerance on the change of the solution
        function_epsilon: Tolerance on the change of the objective
        gradient_norm_epsilon: Tolerance on the gradient norm
    """

    max_iterations: int = 60000
    root_epsilon: float = 1e-8
    function_epsilon: float = 1e-8
    gradient_norm_epsilon: float = 1e-8

    def __post_init__(self):
        if self.max_iterations < 1:
            raise InvalidInputError(
                f"max_iterations must be positive, got {self.max_iterations}"
            )


@dataclass(frozen=True)
class OptimizationOutcome:
    """Result of one local optimization."""

    x: np.ndarray = field(compare=False)
    status: TerminationStatus
    n_evaluations: int = 0
    message: str = ""


class OptimizationMethod(ABC):
    """Local optimizer over an unconstrained vector."""

    name: str = "abstract"

    @abstractmethod
    def minimize(
        self,
        residuals: ResidualFunction,
        x0: np.ndarray,
        end_criteria: EndCriteria,
    ) -> OptimizationOutcome:
        """
        Minimize the sum of squared residuals starting from x0.

        Args:
            residuals: Function returning the residual vector at a point
            x0: Starting point
            end_criteria: Stopping rule

        Returns:
            OptimizationOutcome with the final point and termination status
        """


class LevenbergMarquardt(OptimizationMethod):
    """
    Levenberg-Marquardt via scipy's MINPACK wrapper.

    MINPACK needs at least as many residuals as variables, so shorter
    residual vectors are padded with zeros; padding does not change the
    objective.
    """

    name = "levenberg_marquardt"

    # scipy least_squares status -> TerminationStatus
    _STATUS = {
        0: TerminationStatus.MAX_ITERATIONS,
        1: TerminationStatus.CONVERGED,
        2: TerminationStatus.CONVERGED,
        3: TerminationStatus.CONVERGED,
        4: TerminationStatus.CONVERGED,
    }

    def __init__(self, diff_step: float = 1e-7):
        self.diff_step = diff_step

    def minimize(
        self,
        residuals: ResidualFunction,
        x0: np.ndarray,
        end_criteria: EndCriteria,
    ) -> OptimizationOutcome:
        x0 = np.asarray(x0, dtype=float)
        n = len(x0)

        def padded(x):
            r = np.asarray(residuals(x), dtype=float)
            if len(r) < n:
                r = np.concatenate([r, np.zeros(n - len(r))])
            return r

        result = least_squares(
            padded,
            x0,
            method="lm",
            ftol=end_criteria.function_epsilon,
            xtol=end_criteria.root_epsilon,
            gtol=end_criteria.gradient_norm_epsilon,
            max_nfev=end_criteria.max_iterations,
            diff_step=self.diff_step,
        )
        status = self._STATUS.get(result.status, TerminationStatus.UNKNOWN)

        logger.debug(
            f"Levenberg-Marquardt: status={status.value}, "
            f"cost={result.cost:.3e}, nfev={result.nfev}"
        )

        return OptimizationOutcome(
            x=result.x,
            status=status,
            n_evaluations=int(result.nfev),
            message=str(result.message),
        )


class Simplex(OptimizationMethod):
    """
    Nelder-Mead simplex on the sum of squared residuals.

    The initial simplex is x0 plus `lambda_` along each coordinate axis.
    """

    name = "simplex"

    def __init__(self, lambda_: float = 0.01):
        if lambda_ <= 0:
            raise InvalidInputError(f"simplex lambda must be positive, got {lambda_}")
        self.lambda_ = lambda_

    def minimize(
        self,
        residuals: ResidualFunction,
        x0: np.ndarray,
        end_criteria: EndCriteria,
    ) -> OptimizationOutcome:
        x0 = np.asarray(x0, dtype=float)

        def objective(x):
            r = np.asarray(residuals(x), dtype=float)
            return float(np.dot(r, r))

        initial_simplex = np.vstack([x0, x0 + self.lambda_ * np.eye(len(x0))])
        result = minimize(
            objective,
            x0,
            method="Nelder-Mead",
            options={
                "maxfev": end_criteria.max_iterations,
                "maxiter": end_criteria.max_iterations,
                "xatol": end_criteria.root_epsilon,
                "fatol": end_criteria.function_epsilon,
                "initial_simplex": initial_simplex,
            },
        )
        if result.success:
            status = TerminationStatus.STATIONARY_POINT
        elif result.status in (1, 2):
            status = TerminationStatus.MAX_ITERATIONS
        else:
            status = TerminationStatus.UNKNOWN

        logger.debug(
            f"Simplex: status={status.value}, f={result.fun:.3e}, nfev={result.nfev}"
        )

        return OptimizationOutcome(
            x=result.x,
            status=status,
            n_evaluations=int(result.nfev),
            message=str(result.message),
        )


OPTIMIZERS = {
    LevenbergMarquardt.name: LevenbergMarquardt,
    Simplex.name: Simplex,
}


def create_optimizer(name: str, **kwargs) -> OptimizationMethod:
    """Build an optimizer from its registered name."""
    try:
        cls = OPTIMIZERS[name.lower()]
    except KeyError:
        raise InvalidInputError(
            f"unknown optimizer {name!r}, expected one of: {', '.join(OPTIMIZERS)}"
        ) from None
    return cls(**kwargs)
