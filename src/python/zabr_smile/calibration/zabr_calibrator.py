"""
ZABR smile calibrator with deterministic multi-start search.

Fits the five ZABR parameters (any subset may be fixed) to the market
volatilities of a single expiry:

  1. Transform the starting point into unconstrained optimizer space
  2. Minimize the weighted volatility residuals over the free parameters
  3. Keep the best restart by RMS (or max) error
  4. Stop once the best error is within `error_accept` or the restart
     budget is spent

The first restart starts from the caller's guess, the following ones from a
seeded Halton sequence, so identical inputs always give identical fits.

Reference:
    Andreasen, J. & Huge, B. (2011). "ZABR - Expansions for the masses."
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from itertools import islice
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from ..errors import InvalidInputError
from ..models.smile_section import ZabrSmileSection
from ..models.zabr import EvaluationMode, ParameterGuess, ZabrParameters
from ..monitoring.logging import BoundLogger
from .objective import ProjectedObjective, WeightedResidual, uniform_weights
from .optimizers import (
    EndCriteria,
    LevenbergMarquardt,
    OptimizationMethod,
    TerminationStatus,
)
from .restarts import DEFAULT_SEED, starting_points
from .transform import ZabrParametersTransformation

logger = logging.getLogger(__name__)


@dataclass
class SmileContext:
    """
    Market context of a smile.

    The context is mutable and may be shared; a calibration reads a
    snapshot taken when it starts.

    Attributes:
        expiry: Option expiry in years (> 0)
        forward: Forward level (> 0)
    """

    expiry: float
    forward: float

    def snapshot(self) -> "SmileContext":
        """Copy of the current expiry and forward."""
        return replace(self)

    def validate(self) -> None:
        """Raise InvalidInputError unless expiry and forward are positive."""
        if not self.expiry > 0:
            raise InvalidInputError(f"expiry time must be positive: {self.expiry} not allowed")
        if not self.forward > 0:
            raise InvalidInputError(
                f"at the money forward must be positive: {self.forward} not allowed"
            )


@dataclass(frozen=True)
class FitResult:
    """
    Result of a ZABR calibration.

    Attributes:
        parameters: Best parameters (fixed ones unchanged)
        rms_error: RMS volatility error of the best parameters
        max_error: Max absolute volatility error of the best parameters
        termination_status: Optimizer status of the best restart
        section: Smile section built from the best parameters
        restarts_used: Number of restarts attempted
        best_restart: Index of the restart that produced the best parameters
        calibration_time: Wall time in seconds
        timestamp: Calibration timestamp
    """

    parameters: ZabrParameters
    rms_error: float
    max_error: float
    termination_status: TerminationStatus
    section: ZabrSmileSection
    restarts_used: int = 0
    best_restart: int = 0
    error_accept: float = 0.002
    calibration_time: float = field(default=0.0, compare=False)
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def success(self) -> bool:
        """Check if the fit converged (or needed no optimization) within threshold."""
        return self.termination_status in (
            TerminationStatus.CONVERGED,
            TerminationStatus.NO_OPTIMIZATION_NEEDED,
        ) and self.rms_error <= self.error_accept

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "parameters": self.parameters.to_dict(),
            "rms_error": self.rms_error,
            "max_error": self.max_error,
            "termination_status": self.termination_status.value,
            "expiry": self.section.expiry,
            "forward": self.section.forward,
            "evaluation": self.section.evaluation.value,
            "restarts_used": self.restarts_used,
            "best_restart": self.best_restart,
            "calibration_time": self.calibration_time,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
        }


class ZabrCalibrator:
    """
    Multi-start ZABR calibrator for a single expiry.

    Features:
        - Any subset of alpha, beta, nu, rho, gamma can be fixed
        - Domain constraints enforced by reparameterization, not bounds
        - Deterministic restarts from a seeded Halton sequence
        - Early stop once the error is acceptable
        - Optional wall-clock budget

    Example:
        >>> calibrator = ZabrCalibrator(error_accept=0.001, max_guesses=20)
        >>> result = calibrator.calibrate(
        ...     strikes=[0.03, 0.04, 0.05],
        ...     market_vols=[0.22, 0.20, 0.19],
        ...     context=SmileContext(expiry=5.0, forward=0.04),
        ... )
        >>> result.section.volatility(0.04)
    """

    def __init__(
        self,
        evaluation: Union[str, EvaluationMode] = EvaluationMode.SHORT_MATURITY_LOGNORMAL,
        optimizer: Optional[OptimizationMethod] = None,
        end_criteria: Optional[EndCriteria] = None,
        error_accept: float = 0.002,
        use_max_error: bool = False,
        max_guesses: int = 50,
        seed: Optional[int] = DEFAULT_SEED,
        max_calibration_time: Optional[float] = None,
    ):
        """
        Initialize ZABR calibrator.

        Args:
            evaluation: Smile evaluation mode
            optimizer: Local optimizer (default: Levenberg-Marquardt)
            end_criteria: Stopping rule of each local optimization
            error_accept: Error at or below which restarts stop
            use_max_error: Use max error instead of RMS error as criterion
            max_guesses: Maximum number of restarts (>= 1)
            seed: Seed of the restart sequence
            max_calibration_time: Optional wall-clock budget in seconds
        """
        if max_guesses < 1:
            raise InvalidInputError(f"max_guesses must be at least 1, got {max_guesses}")
        if max_calibration_time is not None and max_calibration_time < 0:
            raise InvalidInputError(
                f"max_calibration_time must be non-negative, got {max_calibration_time}"
            )

        self.evaluation = EvaluationMode.from_name(evaluation)
        self.optimizer = optimizer or LevenbergMarquardt()
        self.end_criteria = end_criteria or EndCriteria()
        self.error_accept = error_accept
        self.use_max_error = use_max_error
        self.max_guesses = max_guesses
        self.seed = seed
        self.max_calibration_time = max_calibration_time
        self.transformation = ZabrParametersTransformation()

        logger.debug(
            f"Initialized ZabrCalibrator with evaluation={self.evaluation.value}, "
            f"optimizer={self.optimizer.name}, error_accept={error_accept}, "
            f"max_guesses={max_guesses}"
        )

    def calibrate(
        self,
        strikes: Sequence[float],
        market_vols: Sequence[float],
        context: SmileContext,
        guess: Optional[ParameterGuess] = None,
        weights: Optional[Sequence[float]] = None,
    ) -> FitResult:
        """
        Calibrate ZABR parameters to one expiry.

        Args:
            strikes: Market strikes (> 0)
            market_vols: Market volatilities (> 0)
            context: Expiry and forward snapshot
            guess: Starting values and fixed flags (default: all free, defaults)
            weights: One weight per point (default: uniform)

        Returns:
            FitResult with the best parameters found

        Raises:
            InvalidInputError: If inputs or context are invalid
        """
        start_time = time.perf_counter()

        strikes, market_vols = validate_market_data(strikes, market_vols)
        context = context.snapshot()
        context.validate()
        guess = guess or ParameterGuess.create()
        if weights is None:
            weights = uniform_weights(len(strikes))

        residual = WeightedResidual(
            strikes, market_vols, weights, context.forward, self.evaluation
        )

        with BoundLogger(expiry=context.expiry, forward=context.forward):
            logger.info(
                f"Starting ZABR calibration with {residual.n_points} points, "
                f"{guess.n_free} free parameters, up to {self.max_guesses} restarts"
            )

            if guess.all_fixed:
                best = guess.parameters
                status = TerminationStatus.NO_OPTIMIZATION_NEEDED
                restarts_used, best_restart = 0, 0
            else:
                best, status, restarts_used, best_restart = self._search(
                    residual, guess, start_time
                )

            result = FitResult(
                parameters=best,
                rms_error=residual.rms_error(best),
                max_error=residual.max_error(best),
                termination_status=status,
                section=ZabrSmileSection(
                    best, context.expiry, context.forward, self.evaluation
                ),
                restarts_used=restarts_used,
                best_restart=best_restart,
                error_accept=self.error_accept,
                calibration_time=time.perf_counter() - start_time,
            )

            logger.info(
                f"ZABR calibration completed in {result.calibration_time:.3f}s: "
                f"RMSE={result.rms_error:.6f}, max error={result.max_error:.6f}, "
                f"status={status.value}, restarts={restarts_used}"
            )

        return result

    def _search(
        self,
        residual: WeightedResidual,
        guess: ParameterGuess,
        start_time: float,
    ):
        """Run the restart loop; return (best params, status, restarts, best index)."""
        objective = ProjectedObjective(residual, guess, self.transformation)
        starts = starting_points(guess, self.transformation, self.seed)

        best_params: Optional[ZabrParameters] = None
        best_error = np.inf
        best_status = TerminationStatus.UNKNOWN
        best_index = 0
        restarts_used = 0

        for index, start in enumerate(islice(starts, self.max_guesses)):
            restarts_used = index + 1
            x0 = objective.project(self.transformation.inverse(start))
            outcome = self.optimizer.minimize(objective.residuals, x0, self.end_criteria)
            params = objective.parameters(outcome.x)
            error = (
                residual.max_error(params) if self.use_max_error else residual.rms_error(params)
            )

            logger.debug(
                f"Restart {index}: error={error:.6e}, status={outcome.status.value}"
            )

            if best_params is None or error < best_error:
                best_params = params
                best_error = error
                best_status = outcome.status
                best_index = index

            if best_error <= self.error_accept:
                break

            if (
                self.max_calibration_time is not None
                and time.perf_counter() - start_time >= self.max_calibration_time
            ):
                logger.warning(
                    f"Calibration time budget of {self.max_calibration_time}s "
                    f"exhausted after {restarts_used} restarts"
                )
                break
        else:
            logger.warning(
                f"No restart reached error {self.error_accept} in {self.max_guesses} "
                f"attempts, best error={best_error:.6f}"
            )

        return best_params, best_status, restarts_used, best_index


def validate_market_data(strikes: Sequence[float], market_vols: Sequence[float]):
    """Return strikes and vols as float arrays, rejecting invalid points."""
    strikes = np.asarray(strikes, dtype=float).ravel()
    market_vols = np.asarray(market_vols, dtype=float).ravel()

    if len(strikes) == 0:
        raise InvalidInputError("at least one market point is required")
    if len(strikes) != len(market_vols):
        raise InvalidInputError(
            f"got {len(strikes)} strikes but {len(market_vols)} volatilities"
        )
    if np.any(~(strikes > 0)):
        raise InvalidInputError(f"strikes must be positive, got {strikes[~(strikes > 0)][0]}")
    if np.any(~(market_vols > 0)):
        raise InvalidInputError(
            f"volatilities must be positive, got {market_vols[~(market_vols > 0)][0]}"
        )

    return strikes, market_vols
